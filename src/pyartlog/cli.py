"""Command line entry point: subscribe to telemetry and record session logs."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from typing import Any

from pyartlog._mqtt import ArtMqttRuntime, broker_settings_from_config
from pyartlog._redact import redact_for_log
from pyartlog.config import ArtLogConfig
from pyartlog.engine import SessionManager
from pyartlog.exceptions import ArtConfigError
from pyartlog.notify import DiscordNotifier, LoggingNotifier, Notifier

_logger = logging.getLogger("pyartlog")


async def _consume(frames: asyncio.Queue[tuple[str, bytes]], engine: SessionManager) -> None:
    while True:
        topic, payload = await frames.get()
        try:
            await engine.handle_message(topic, payload)
        finally:
            frames.task_done()


async def run(config: ArtLogConfig, *, stop_event: asyncio.Event | None = None) -> None:
    """Run until *stop_event* is set (or SIGINT/SIGTERM)."""
    loop = asyncio.get_running_loop()
    frames: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
    stop = stop_event or asyncio.Event()

    async with contextlib.AsyncExitStack() as stack:
        notifier: Notifier
        if config.discord_enabled:
            notifier = await stack.enter_async_context(
                DiscordNotifier(
                    token=config.bot_token or "",
                    alert_channel_id=config.alert_channel_id,
                    log_channel_id=config.log_channel_id,
                    alert_role_id=config.alert_role_id,
                )
            )
        else:
            _logger.warning("Discord is not configured; notifications will only be logged")
            notifier = LoggingNotifier()

        engine = SessionManager.from_config(config, notifier=notifier)
        runtime = ArtMqttRuntime(
            loop=loop,
            on_message=lambda topic, payload: frames.put_nowait((topic, payload)),
            keepalive=config.mqtt_keepalive,
        )
        consumer = asyncio.create_task(_consume(frames, engine))

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, stop.set)

        await loop.run_in_executor(None, runtime.start, broker_settings_from_config(config))
        try:
            await stop.wait()
            _logger.info("Shutting down")
        finally:
            await loop.run_in_executor(None, runtime.stop)
            await frames.join()
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer
            await engine.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyartlog",
        description="Record CAN telemetry sessions from MQTT into Kvaser-style trace logs.",
    )
    parser.add_argument("--broker", dest="broker_url", help="MQTT broker URL (default: $ARTLOG_BROKER_URL)")
    parser.add_argument("--topic", help="Telemetry topic (default: $ARTLOG_TOPIC)")
    parser.add_argument("--log-dir", help="Directory for trace logs (default: $ARTLOG_LOG_DIR)")
    parser.add_argument(
        "--watchdog-timeout",
        type=float,
        help="Seconds of silence that end a session (default: $ARTLOG_WATCHDOG_TIMEOUT)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {
        key: value
        for key, value in (
            ("broker_url", args.broker_url),
            ("topic", args.topic),
            ("log_dir", args.log_dir),
            ("watchdog_timeout", args.watchdog_timeout),
        )
        if value is not None
    }
    try:
        config = ArtLogConfig.from_env(**overrides)
    except ArtConfigError as exc:
        parser.error(str(exc))

    _logger.debug("Configuration: %s", redact_for_log(vars(config)))
    asyncio.run(run(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
