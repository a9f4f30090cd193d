"""Kvaser-style ASCII trace export.

One file per session: a fixed header block, a synthetic trigger line and one
fixed-column line per change event. The identifier column is written in
decimal even though the header announces HEX; existing tooling that reads
these logs expects exactly that.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from pyartlog._format import format_decimal
from pyartlog.exceptions import ExportWriteError
from pyartlog.models.frame import ChangeEvent

_logger = logging.getLogger(__name__)

TRACE_HEADER = (
    " " * 30 + "ARUS ART TELEMETRY Log\n"
    + " " * 30 + "======================\n"
    + " " * 56 + "\n"
    + "Settings:\n"
    + "   Format of data field: HEX\n"
    + "   Format of id field:   HEX\n"
    + "   Timestamp Offset:     0          s\n"
    + "   CAN channel:          1 \n"
    + "\n"
    + " " * 8 + "Time Chan   Identifier Flags        DLC  Data" + " " * 195 + "Counter\n"
    + "=" * 252 + "\n"
)
TRIGGER_LINE = "    0.000  Trigger (type=0x1, active=0x00, pre-trigger=0, post-trigger=-1)\n"

_CHANNEL = 1
_DIRECTION = "Rx"
_DLC = 8
_COUNTER_PADDING = " " * 190


def format_event_line(index: int, event: ChangeEvent) -> str:
    """Render one change event as a trace line (newline included)."""
    data = " ".join(f"{byte:02X}" for byte in event.data)
    return (
        f"    {format_decimal(event.time / 1000)}  {_CHANNEL}         {event.id}"
        f"    {_DIRECTION}            {_DLC}  {data}{_COUNTER_PADDING}{index}\n"
    )


def iter_trace_lines(events: Sequence[ChangeEvent]) -> Iterator[str]:
    yield TRACE_HEADER
    yield TRIGGER_LINE
    for index, event in enumerate(events):
        yield format_event_line(index, event)


def render_trace(events: Sequence[ChangeEvent]) -> str:
    """Render a complete trace document in memory."""
    return "".join(iter_trace_lines(events))


@dataclass(frozen=True)
class TraceArtifact:
    """A finished, closed trace file ready to be attached or uploaded."""

    path: Path
    event_count: int
    finalized_at: int


class TraceLogExporter:
    """Write session change logs to ``<log_dir>/<epoch seconds>.txt``.

    Files are created exclusively; if a file for the same second already
    exists a ``-1``, ``-2``... suffix is appended.
    """

    def __init__(self, log_dir: Path | str, *, logger: logging.Logger | None = None) -> None:
        self._log_dir = Path(log_dir)
        self._logger = logger or _logger

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    async def export(self, events: Sequence[ChangeEvent], finalized_at: float | None = None) -> TraceArtifact:
        """Write *events* without blocking the event loop.

        Returns only after the file has been closed.

        Raises
        ------
        ExportWriteError
            The file could not be created, written or closed.
        """
        stamp = int(finalized_at if finalized_at is not None else time.time())
        snapshot = list(events)
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, self._write, stamp, snapshot)
        self._logger.info("Trace log written path=%s events=%d", path, len(snapshot))
        return TraceArtifact(path=path, event_count=len(snapshot), finalized_at=stamp)

    def _write(self, stamp: int, events: Sequence[ChangeEvent]) -> Path:
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ExportWriteError(f"Cannot create log directory {self._log_dir}: {exc}", path=self._log_dir) from exc

        suffix = 0
        while True:
            name = f"{stamp}.txt" if suffix == 0 else f"{stamp}-{suffix}.txt"
            path = self._log_dir / name
            try:
                with path.open("x", encoding="ascii", newline="\n") as handle:
                    handle.writelines(iter_trace_lines(events))
            except FileExistsError:
                suffix += 1
                continue
            except (OSError, UnicodeError) as exc:
                raise ExportWriteError(f"Failed to write trace log {path}: {exc}", path=path) from exc
            return path
