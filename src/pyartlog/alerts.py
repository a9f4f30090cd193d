"""Threshold alert rules.

Rules are pure predicates over a single reading. Whether a rule may still
fire is decided by the caller through the per-session ``fired`` set, so each
rule fires at most once per session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from pyartlog._constants import DEFAULT_LOW_VOLTAGE_THRESHOLD, LOW_VOLTAGE_CAN_ID
from pyartlog._format import format_decimal
from pyartlog.models.frame import Reading
from pyartlog.state.session import LOW_VOLTAGE_RULE

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Alert:
    """A fired rule."""

    rule: str
    message: str
    urgent: bool = True


class AlertRule(Protocol):
    """Structural interface for alert rules."""

    name: str

    def evaluate(self, reading: Reading) -> Alert | None: ...


@dataclass(frozen=True)
class LowVoltageRule:
    """LV battery voltage below threshold.

    The battery monitor reports millivolts as a little-endian u16 in the
    first two data bytes of ``0x185``.
    """

    threshold: float = DEFAULT_LOW_VOLTAGE_THRESHOLD
    can_id: int = LOW_VOLTAGE_CAN_ID
    name: str = LOW_VOLTAGE_RULE

    def evaluate(self, reading: Reading) -> Alert | None:
        if reading.id != self.can_id or len(reading.data) < 2:
            return None
        volts = int.from_bytes(reading.data[:2], "little") / 1000
        if volts >= self.threshold:
            return None
        return Alert(
            rule=self.name,
            message=f"LV battery is low!! (Measured voltage {format_decimal(volts)}V).",
        )


class AlertRegistry:
    """Ordered collection of alert rules."""

    def __init__(self, rules: Iterable[AlertRule] | None = None) -> None:
        self._rules: list[AlertRule] = list(rules) if rules is not None else [LowVoltageRule()]

    @property
    def rules(self) -> tuple[AlertRule, ...]:
        return tuple(self._rules)

    def register(self, rule: AlertRule) -> None:
        if any(existing.name == rule.name for existing in self._rules):
            raise ValueError(f"alert rule {rule.name!r} already registered")
        self._rules.append(rule)

    def evaluate(self, readings: Iterable[Reading], fired: set[str]) -> list[Alert]:
        """Run every rule over every reading.

        Rules already in *fired* are skipped; rules that fire are added to it.
        """
        alerts: list[Alert] = []
        for reading in readings:
            for rule in self._rules:
                if rule.name in fired:
                    continue
                alert = rule.evaluate(reading)
                if alert is None:
                    continue
                _logger.debug("Alert rule %s fired on id=%s", rule.name, reading.id)
                fired.add(rule.name)
                alerts.append(alert)
        return alerts
