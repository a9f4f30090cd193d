"""Session lifecycle engine.

Owns the watchdog, the current session's change log and alert flags, and
drives the decoder, bus state tracker, alert rules and trace exporter.

State machine::

    IDLE   --valid frame-->                         ACTIVE (notify start, arm watchdog)
    ACTIVE --valid frame-->                         ACTIVE (rearm, diff, alerts)
    ACTIVE --watchdog expired-->                    IDLE   (export, notify end)
    ACTIVE --frame shorter than previous frame-->   IDLE -> ACTIVE with that frame

Everything runs on one event loop; transitions are serialized by a single
:class:`asyncio.Lock`. Each watchdog arm bumps a generation counter and an
expiry only finalizes if its generation is still current.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from pyartlog._constants import DEFAULT_MAX_PENDING_EXPORTS, DEFAULT_TOPIC, DEFAULT_WATCHDOG_TIMEOUT
from pyartlog.alerts import AlertRegistry, LowVoltageRule
from pyartlog.config import ArtLogConfig
from pyartlog.decoder import decode_frame
from pyartlog.exceptions import ExportWriteError, MalformedFrameError
from pyartlog.models.frame import ChangeEvent, DecodedFrame
from pyartlog.models.notification import Notification, NotificationKind
from pyartlog.notify import Notifier
from pyartlog.state.session import SessionSnapshot, SessionState
from pyartlog.state.tracker import diff_readings
from pyartlog.trace import TraceArtifact, TraceLogExporter

_logger = logging.getLogger(__name__)


class TraceExporter(Protocol):
    async def export(self, events: Sequence[ChangeEvent], finalized_at: float | None = None) -> TraceArtifact: ...


@dataclass(frozen=True)
class _PendingExport:
    events: tuple[ChangeEvent, ...]
    finalized_at: float


def _format_wall_clock(epoch: float) -> str:
    return datetime.fromtimestamp(epoch, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


class SessionManager:
    """Turn a stream of telemetry frames into per-session trace logs."""

    def __init__(
        self,
        *,
        exporter: TraceExporter,
        notifier: Notifier,
        topic: str | None = DEFAULT_TOPIC,
        rules: AlertRegistry | None = None,
        watchdog_timeout: float = DEFAULT_WATCHDOG_TIMEOUT,
        max_pending_exports: int = DEFAULT_MAX_PENDING_EXPORTS,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self._exporter = exporter
        self._notifier = notifier
        self._topic = topic
        self._rules = rules if rules is not None else AlertRegistry()
        self._watchdog_timeout = watchdog_timeout
        self._clock = clock
        self._logger = logger or _logger

        self._lock = asyncio.Lock()
        self._session = SessionState()
        self._watchdog: asyncio.Task[None] | None = None
        self._watchdog_generation = 0
        self._malformed_frames = 0
        self._max_pending_exports = max_pending_exports
        self._pending_exports: deque[_PendingExport] = deque()
        self._notifications: asyncio.Queue[Notification] = asyncio.Queue()
        self._notify_worker: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        config: ArtLogConfig,
        *,
        notifier: Notifier,
        exporter: TraceExporter | None = None,
        logger: logging.Logger | None = None,
    ) -> SessionManager:
        return cls(
            exporter=exporter or TraceLogExporter(config.log_dir),
            notifier=notifier,
            topic=config.topic,
            rules=AlertRegistry([LowVoltageRule(threshold=config.low_voltage_threshold)]),
            watchdog_timeout=config.watchdog_timeout,
            max_pending_exports=config.max_pending_exports,
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._session.active

    @property
    def session(self) -> SessionState:
        """Current session record. Treat as read-only."""
        return self._session

    @property
    def watchdog_timeout(self) -> float:
        return self._watchdog_timeout

    def snapshot(self) -> SessionSnapshot:
        session = self._session
        return SessionSnapshot(
            active=session.active,
            started_at=session.started_at,
            frame_count=session.frame_count,
            change_count=len(session.change_log),
            tracked_ids=len(session.bus_state),
            fired_alerts=tuple(sorted(session.fired_alerts)),
            malformed_frames=self._malformed_frames,
            pending_exports=len(self._pending_exports),
        )

    # ------------------------------------------------------------------
    # Frame ingestion
    # ------------------------------------------------------------------

    async def handle_message(self, topic: str, payload: bytes) -> None:
        """Top-level transport callback. Never raises."""
        if self._topic is not None and topic != self._topic:
            self._logger.debug("Ignoring message on topic=%s", topic)
            return
        try:
            await self.handle_frame(payload)
        except MalformedFrameError as exc:
            self._malformed_frames += 1
            self._logger.warning("Dropping malformed frame: %s", exc)
        except Exception:
            self._logger.exception("Unexpected error while processing frame")

    async def handle_frame(self, payload: bytes) -> DecodedFrame:
        """Decode *payload* and apply it to the session.

        Raises
        ------
        MalformedFrameError
            The frame failed validation; no state was touched.
        """
        frame = decode_frame(payload)
        async with self._lock:
            await self._apply_frame(frame)
        return frame

    async def _apply_frame(self, frame: DecodedFrame) -> None:
        session = self._session
        previous_length = session.last_frame_length
        if session.active and previous_length is not None and frame.length < previous_length:
            self._logger.info(
                "Frame shorter than previous (%d < %d bytes); car restarted within the watchdog window",
                frame.length,
                previous_length,
            )
            await self._finalize(reason="restart")

        if not session.active:
            self._start()

        self._arm_watchdog()
        session.last_frame_length = frame.length
        session.frame_count += 1

        # Alerts look at every reading, changed or not.
        alerts = self._rules.evaluate(frame.readings, session.fired_alerts)

        changes, session.bus_state = diff_readings(session.bus_state, frame)
        session.change_log.extend(changes)
        self._logger.debug(
            "Frame time=%d readings=%d changes=%d",
            frame.timestamp,
            len(frame.readings),
            len(changes),
        )

        for alert in alerts:
            self._logger.warning("Alert %s: %s", alert.rule, alert.message)
            self._notify(
                Notification(
                    kind=NotificationKind.ALERT,
                    content=alert.message,
                    urgent=alert.urgent,
                    occurred_at=self._clock(),
                )
            )

    # ------------------------------------------------------------------
    # Lifecycle transitions (lock held)
    # ------------------------------------------------------------------

    def _start(self) -> None:
        session = self._session
        session.reset()
        session.active = True
        session.started_at = self._clock()
        self._logger.info("Session started at %s", _format_wall_clock(session.started_at))
        self._notify(
            Notification(
                kind=NotificationKind.SESSION_STARTED,
                content="Car started up! Recording log...",
                urgent=True,
                occurred_at=session.started_at,
            )
        )

    async def _finalize(self, *, reason: str) -> TraceArtifact | None:
        session = self._session
        self._cancel_watchdog()

        events = tuple(session.change_log)
        frame_count = session.frame_count
        finalized_at = self._clock()

        await self._retry_pending()

        artifact: TraceArtifact | None = None
        try:
            artifact = await self._exporter.export(events, finalized_at)
        except ExportWriteError:
            self._logger.error(
                "Failed to write trace log for session with %d changes",
                len(events),
                exc_info=True,
            )
            self._park(_PendingExport(events=events, finalized_at=finalized_at))

        # Only reset once the change log has been handed to the exporter.
        session.reset()
        self._logger.info(
            "Session ended reason=%s frames=%d changes=%d log=%s",
            reason,
            frame_count,
            len(events),
            artifact.path if artifact is not None else None,
        )

        ended_at = _format_wall_clock(finalized_at)
        if artifact is not None:
            content = f"Car session ended at {ended_at}, download log here:"
        else:
            content = f"Car session ended at {ended_at}, but the log could not be written."
        self._notify(
            Notification(
                kind=NotificationKind.SESSION_ENDED,
                content=content,
                occurred_at=finalized_at,
                attachment=artifact.path if artifact is not None else None,
            )
        )
        return artifact

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------

    def _arm_watchdog(self) -> None:
        self._cancel_watchdog()
        self._watchdog_generation += 1
        self._watchdog = asyncio.create_task(self._watchdog_expiry(self._watchdog_generation))

    def _cancel_watchdog(self) -> None:
        task = self._watchdog
        self._watchdog = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _watchdog_expiry(self, generation: int) -> None:
        await asyncio.sleep(self._watchdog_timeout)
        async with self._lock:
            if generation != self._watchdog_generation or not self._session.active:
                return
            self._watchdog = None
            self._logger.info("No frame for %.1fs; car assumed off", self._watchdog_timeout)
            try:
                await self._finalize(reason="watchdog")
            except Exception:
                self._logger.exception("Session finalize failed")

    # ------------------------------------------------------------------
    # Failed exports
    # ------------------------------------------------------------------

    def _park(self, pending: _PendingExport) -> None:
        if self._max_pending_exports <= 0:
            self._logger.error("Export retry disabled; dropping %d changes", len(pending.events))
            return
        if len(self._pending_exports) >= self._max_pending_exports:
            dropped = self._pending_exports.popleft()
            self._logger.error(
                "Too many failed exports; dropping session ended at %s",
                _format_wall_clock(dropped.finalized_at),
            )
        self._pending_exports.append(pending)

    async def _retry_pending(self) -> list[TraceArtifact]:
        artifacts: list[TraceArtifact] = []
        while self._pending_exports:
            pending = self._pending_exports[0]
            try:
                artifact = await self._exporter.export(pending.events, pending.finalized_at)
            except ExportWriteError as exc:
                self._logger.warning("Retrying failed export still failing: %s", exc)
                break
            self._pending_exports.popleft()
            artifacts.append(artifact)
            self._notify(
                Notification(
                    kind=NotificationKind.SESSION_ENDED,
                    content=f"Recovered log for car session ended at {_format_wall_clock(pending.finalized_at)}:",
                    occurred_at=pending.finalized_at,
                    attachment=artifact.path,
                )
            )
        return artifacts

    async def retry_failed_exports(self) -> list[TraceArtifact]:
        """Try again to write every parked change log, oldest first."""
        async with self._lock:
            return await self._retry_pending()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, notification: Notification) -> None:
        if self._notify_worker is None or self._notify_worker.done():
            self._notify_worker = asyncio.create_task(self._deliver_notifications())
        self._notifications.put_nowait(notification)

    async def _deliver_notifications(self) -> None:
        while True:
            notification = await self._notifications.get()
            try:
                await self._notifier.send(notification)
            except Exception:
                self._logger.warning("Failed to send %s notification", notification.kind, exc_info=True)
            finally:
                self._notifications.task_done()

    async def drain_notifications(self) -> None:
        """Wait until every queued notification has been handed to the notifier."""
        await self._notifications.join()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self, *, finalize: bool = True) -> None:
        """Stop the watchdog and, by default, finalize an active session."""
        async with self._lock:
            self._cancel_watchdog()
            if finalize and self._session.active:
                await self._finalize(reason="shutdown")
        await self.drain_notifications()

        worker = self._notify_worker
        self._notify_worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
