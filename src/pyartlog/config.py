"""Runtime configuration for pyartlog."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pyartlog._constants import (
    DEFAULT_BROKER_URL,
    DEFAULT_CLIENT_ID,
    DEFAULT_LOG_DIR,
    DEFAULT_LOW_VOLTAGE_THRESHOLD,
    DEFAULT_MAX_PENDING_EXPORTS,
    DEFAULT_TOPIC,
    DEFAULT_WATCHDOG_TIMEOUT,
)
from pyartlog.exceptions import ArtConfigError


def _env_number(env: Mapping[str, str], key: str, cast: type) -> Any:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ArtConfigError(f"{key} must be a {cast.__name__}, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class ArtLogConfig:
    """Process configuration.

    Parameters
    ----------
    broker_url : str
        MQTT broker URL, ``mqtt://host:port`` or ``mqtts://host:port``.
    topic : str
        Topic carrying the raw telemetry frames.
    client_id : str
        MQTT client identifier.
    mqtt_username : str or None
        Broker username, if the broker requires authentication.
    mqtt_password : str or None
        Broker password.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    log_dir : Path
        Directory receiving one trace file per session.
    watchdog_timeout : float
        Seconds without a valid frame before the session is finalized.
    low_voltage_threshold : float
        LV battery voltage below which an alert fires once per session.
    max_pending_exports : int
        Failed trace exports kept in memory for retry.
    bot_token : str or None
        Discord bot token. Without it notifications are only logged.
    alert_channel_id : str or None
        Discord channel for session-start and alert messages.
    log_channel_id : str or None
        Discord channel receiving the finished trace files.
    alert_role_id : str or None
        Discord role mentioned on urgent notifications.
    """

    broker_url: str = DEFAULT_BROKER_URL
    topic: str = DEFAULT_TOPIC
    client_id: str = DEFAULT_CLIENT_ID
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_keepalive: int = 60
    log_dir: Path = Path(DEFAULT_LOG_DIR)
    watchdog_timeout: float = DEFAULT_WATCHDOG_TIMEOUT
    low_voltage_threshold: float = DEFAULT_LOW_VOLTAGE_THRESHOLD
    max_pending_exports: int = DEFAULT_MAX_PENDING_EXPORTS
    bot_token: str | None = None
    alert_channel_id: str | None = None
    log_channel_id: str | None = None
    alert_role_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.log_dir, Path):
            object.__setattr__(self, "log_dir", Path(self.log_dir))
        if self.watchdog_timeout <= 0:
            raise ArtConfigError(f"watchdog_timeout must be positive, got {self.watchdog_timeout}")
        if self.max_pending_exports < 0:
            raise ArtConfigError(f"max_pending_exports must be >= 0, got {self.max_pending_exports}")

    @property
    def discord_enabled(self) -> bool:
        """Whether enough Discord settings are present to post messages."""
        return bool(self.bot_token and (self.alert_channel_id or self.log_channel_id))

    @classmethod
    def from_env(cls, **overrides: Any) -> ArtLogConfig:
        """Create configuration from environment variables.

        Reads the optional ``ARTLOG_*`` variables. Explicit keyword
        arguments override environment values.

        Raises
        ------
        ArtConfigError
            When a numeric variable cannot be parsed.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "ARTLOG_BROKER_URL": "broker_url",
            "ARTLOG_TOPIC": "topic",
            "ARTLOG_CLIENT_ID": "client_id",
            "ARTLOG_MQTT_USERNAME": "mqtt_username",
            "ARTLOG_MQTT_PASSWORD": "mqtt_password",
            "ARTLOG_LOG_DIR": "log_dir",
            "ARTLOG_BOT_TOKEN": "bot_token",
            "ARTLOG_ALERT_CHANNEL": "alert_channel_id",
            "ARTLOG_LOG_CHANNEL": "log_channel_id",
            "ARTLOG_ALERT_ROLE_ID": "alert_role_id",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None and val.strip():
                config_kwargs[field_name] = val.strip()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "ARTLOG_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "ARTLOG_WATCHDOG_TIMEOUT": ("watchdog_timeout", float),
            "ARTLOG_LOW_VOLTAGE_THRESHOLD": ("low_voltage_threshold", float),
            "ARTLOG_MAX_PENDING_EXPORTS": ("max_pending_exports", int),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            if field_name in overrides:
                continue
            value = _env_number(env, env_key, cast)
            if value is not None:
                config_kwargs[field_name] = value

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
