"""Internal MQTT runtime delivering raw telemetry frames to an asyncio loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from pyartlog._redact import redact_for_log
from pyartlog.config import ArtLogConfig

_DEFAULT_PORTS = {"mqtt": 1883, "tcp": 1883, "mqtts": 8883, "ssl": 8883}


@dataclass(frozen=True)
class MqttBrokerSettings:
    """Broker connection details for the telemetry subscription."""

    host: str
    port: int
    tls: bool
    topic: str
    client_id: str
    username: str | None = None
    password: str | None = None


def parse_broker_url(raw_broker: str) -> tuple[str, int, bool]:
    """Split ``mqtt://host:port`` into ``(host, port, tls)``.

    A missing scheme means plain MQTT; a missing port takes the scheme default.
    """
    value = raw_broker.strip()
    if not value:
        raise ValueError("Broker value is empty")

    scheme = "mqtt"
    if "://" in value:
        scheme, value = value.split("://", 1)
        scheme = scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise ValueError(f"Unsupported broker scheme: {scheme!r}")
    if "/" in value:
        value = value.split("/", 1)[0]

    tls = scheme in {"mqtts", "ssl"}
    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return host, int(maybe_port), tls
    return value, _DEFAULT_PORTS[scheme], tls


def broker_settings_from_config(config: ArtLogConfig) -> MqttBrokerSettings:
    host, port, tls = parse_broker_url(config.broker_url)
    return MqttBrokerSettings(
        host=host,
        port=port,
        tls=tls,
        topic=config.topic,
        client_id=config.client_id,
        username=config.mqtt_username,
        password=config.mqtt_password,
    )


class ArtMqttRuntime:
    """Threaded paho-mqtt runtime that hands every payload to an asyncio loop.

    *on_message* is invoked on the loop thread, one call per inbound message,
    in arrival order.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[str, bytes], None],
        keepalive: int = 60,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_message = on_message
        self._keepalive = keepalive
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    def _dispatch(self, topic: str, payload: bytes) -> None:
        self._loop.call_soon_threadsafe(self._on_message, topic, payload)

    def start(self, settings: MqttBrokerSettings) -> None:
        """Connect and subscribe; paho re-subscribes on every reconnect."""
        self.stop()
        self._logger.debug("MQTT runtime start requested settings=%s", redact_for_log(vars(settings)))

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=settings.client_id,
            clean_session=True,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password or None)
        if settings.tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=1, max_delay=30)

        self._topic = settings.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.info("Connected to %s:%s", settings.host, settings.port)
            if self._topic:
                c.subscribe(self._topic, qos=0)

        def on_subscribe(
            _c: mqtt.Client,
            _userdata: Any,
            _mid: int,
            reason_codes: Any,
            _properties: Any,
        ) -> None:
            failures = [code for code in reason_codes if code.is_failure]
            if failures:
                self._logger.error("Error subscribing to topic=%s: %s", self._topic, failures)
            else:
                self._logger.info("Subscribed to topic=%s", self._topic)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._logger.debug("Received PUBLISH topic=%s bytes=%d", msg.topic, len(msg.payload))
            self._dispatch(msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.warning("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_subscribe = on_subscribe
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect(settings.host, settings.port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
