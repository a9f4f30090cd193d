from __future__ import annotations

import pytest

from pyartlog.alerts import Alert, AlertRegistry, LowVoltageRule
from pyartlog.models.frame import Reading


class TestLowVoltageRule:
    def test_fires_below_threshold(self, millivolts) -> None:
        alert = LowVoltageRule().evaluate(Reading(id=0x185, data=millivolts(12000)))

        assert alert == Alert(rule="low_voltage", message="LV battery is low!! (Measured voltage 12V).")
        assert alert.urgent is True

    def test_message_keeps_millivolt_precision(self, millivolts) -> None:
        alert = LowVoltageRule().evaluate(Reading(id=0x185, data=millivolts(12345)))
        assert alert is not None
        assert "12.345V" in alert.message

    def test_threshold_is_exclusive(self, millivolts) -> None:
        assert LowVoltageRule().evaluate(Reading(id=0x185, data=millivolts(12800))) is None
        assert LowVoltageRule().evaluate(Reading(id=0x185, data=millivolts(12799))) is not None

    def test_ignores_other_ids(self, millivolts) -> None:
        assert LowVoltageRule().evaluate(Reading(id=0x186, data=millivolts(1000))) is None

    def test_custom_threshold(self, millivolts) -> None:
        rule = LowVoltageRule(threshold=11.5)
        assert rule.evaluate(Reading(id=0x185, data=millivolts(12000))) is None
        assert rule.evaluate(Reading(id=0x185, data=millivolts(11000))) is not None


class TestAlertRegistry:
    def test_fires_once_per_fired_set(self, millivolts) -> None:
        registry = AlertRegistry()
        fired: set[str] = set()
        low = Reading(id=0x185, data=millivolts(12000))

        first = registry.evaluate([low, low], fired)
        second = registry.evaluate([low], fired)

        assert len(first) == 1
        assert second == []
        assert fired == {"low_voltage"}

    def test_fresh_fired_set_fires_again(self, millivolts) -> None:
        registry = AlertRegistry()
        low = Reading(id=0x185, data=millivolts(12000))

        assert len(registry.evaluate([low], set())) == 1
        assert len(registry.evaluate([low], set())) == 1

    def test_register_rejects_duplicate_name(self) -> None:
        registry = AlertRegistry()
        with pytest.raises(ValueError):
            registry.register(LowVoltageRule(threshold=10.0))

    def test_custom_rule(self) -> None:
        class _AnyId:
            name = "any_0x42"

            def evaluate(self, reading: Reading) -> Alert | None:
                if reading.id == 0x42:
                    return Alert(rule=self.name, message="seen 0x42", urgent=False)
                return None

        registry = AlertRegistry([])
        registry.register(_AnyId())

        alerts = registry.evaluate([Reading(id=0x41, data=bytes(8)), Reading(id=0x42, data=bytes(8))], set())

        assert [a.message for a in alerts] == ["seen 0x42"]
