from __future__ import annotations

from pathlib import Path

import pytest

from pyartlog._constants import DEFAULT_WATCHDOG_TIMEOUT
from pyartlog.config import ArtLogConfig
from pyartlog.exceptions import ArtConfigError

_ENV_KEYS = (
    "ARTLOG_BROKER_URL",
    "ARTLOG_TOPIC",
    "ARTLOG_CLIENT_ID",
    "ARTLOG_MQTT_USERNAME",
    "ARTLOG_MQTT_PASSWORD",
    "ARTLOG_LOG_DIR",
    "ARTLOG_BOT_TOKEN",
    "ARTLOG_ALERT_CHANNEL",
    "ARTLOG_LOG_CHANNEL",
    "ARTLOG_ALERT_ROLE_ID",
    "ARTLOG_WATCHDOG_TIMEOUT",
    "ARTLOG_MQTT_KEEPALIVE",
    "ARTLOG_LOW_VOLTAGE_THRESHOLD",
    "ARTLOG_MAX_PENDING_EXPORTS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    config = ArtLogConfig.from_env()

    assert config.topic == "ART/status"
    assert config.watchdog_timeout == DEFAULT_WATCHDOG_TIMEOUT == 10.0
    assert config.low_voltage_threshold == 12.8
    assert config.log_dir == Path("./art_logs")
    assert config.discord_enabled is False


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ARTLOG_BROKER_URL", "mqtt://broker.local:1884")
    monkeypatch.setenv("ARTLOG_LOG_DIR", "/var/lib/artlog")
    monkeypatch.setenv("ARTLOG_BOT_TOKEN", "token")
    monkeypatch.setenv("ARTLOG_ALERT_CHANNEL", "111")
    monkeypatch.setenv("ARTLOG_LOG_CHANNEL", "222")
    monkeypatch.setenv("ARTLOG_ALERT_ROLE_ID", "333")
    monkeypatch.setenv("ARTLOG_WATCHDOG_TIMEOUT", "2.5")
    monkeypatch.setenv("ARTLOG_MQTT_KEEPALIVE", "30")

    config = ArtLogConfig.from_env()

    assert config.broker_url == "mqtt://broker.local:1884"
    assert config.log_dir == Path("/var/lib/artlog")
    assert config.alert_channel_id == "111"
    assert config.log_channel_id == "222"
    assert config.alert_role_id == "333"
    assert config.watchdog_timeout == 2.5
    assert config.mqtt_keepalive == 30
    assert config.discord_enabled is True


def test_overrides_win(monkeypatch) -> None:
    monkeypatch.setenv("ARTLOG_TOPIC", "from/env")
    monkeypatch.setenv("ARTLOG_WATCHDOG_TIMEOUT", "not-a-number")

    config = ArtLogConfig.from_env(topic="from/args", watchdog_timeout=1.0)

    assert config.topic == "from/args"
    assert config.watchdog_timeout == 1.0


def test_invalid_number_raises(monkeypatch) -> None:
    monkeypatch.setenv("ARTLOG_WATCHDOG_TIMEOUT", "ten")

    with pytest.raises(ArtConfigError, match="ARTLOG_WATCHDOG_TIMEOUT"):
        ArtLogConfig.from_env()


def test_non_positive_watchdog_rejected() -> None:
    with pytest.raises(ArtConfigError):
        ArtLogConfig(watchdog_timeout=0)
