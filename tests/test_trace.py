from __future__ import annotations

import pytest

from pyartlog.exceptions import ExportWriteError
from pyartlog.models.frame import ChangeEvent
from pyartlog.trace import (
    TRACE_HEADER,
    TRIGGER_LINE,
    TraceLogExporter,
    format_event_line,
    render_trace,
)

_PAD = " " * 190


def test_header_layout() -> None:
    lines = TRACE_HEADER.split("\n")

    assert lines[0] == " " * 30 + "ARUS ART TELEMETRY Log"
    assert lines[3] == "Settings:"
    assert lines[4] == "   Format of data field: HEX"
    assert lines[5] == "   Format of id field:   HEX"
    assert lines[7] == "   CAN channel:          1 "
    assert lines[9].startswith("        Time Chan   Identifier Flags        DLC  Data ")
    assert lines[9].endswith(" Counter")
    assert lines[10] == "=" * 252
    assert TRACE_HEADER.endswith("\n")


def test_empty_session_has_header_and_trigger_only() -> None:
    assert render_trace([]) == TRACE_HEADER + TRIGGER_LINE


def test_event_line_columns() -> None:
    event = ChangeEvent(time=1500, id=389, data=bytes([0x01, 0x0A, 0xFF, 0, 0x10, 0xAB, 0x7F, 0x80]))

    line = format_event_line(3, event)

    assert line == f"    1.5  1         389    Rx            8  01 0A FF 00 10 AB 7F 80{_PAD}3\n"


def test_identifier_written_in_decimal() -> None:
    line = format_event_line(0, ChangeEvent(time=0, id=0x185, data=bytes(8)))
    assert "         389    Rx" in line
    assert "185" not in line


@pytest.mark.parametrize(
    ("millis", "expected"),
    [(0, "0"), (2000, "2"), (1500, "1.5"), (1, "0.001"), (123456, "123.456"), (4294967295, "4294967.295")],
)
def test_time_column(millis: int, expected: str) -> None:
    line = format_event_line(0, ChangeEvent(time=millis, id=1, data=bytes(8)))
    assert line.startswith(f"    {expected}  1 ")


def test_missing_bytes_are_skipped() -> None:
    line = format_event_line(0, ChangeEvent(time=0, id=1, data=b"\x01\x02"))
    assert f"8  01 02{_PAD}0\n" in line


def test_counter_follows_position() -> None:
    events = [ChangeEvent(time=t, id=t, data=bytes(8)) for t in (30, 10, 20)]

    body = render_trace(events).split(TRIGGER_LINE, 1)[1]
    lines = body.splitlines()

    assert [line.split()[2] for line in lines] == ["30", "10", "20"]
    assert [line.rsplit(" ", 1)[1] for line in lines] == ["0", "1", "2"]


@pytest.mark.asyncio
async def test_export_writes_file_named_by_finalize_time(tmp_path) -> None:
    exporter = TraceLogExporter(tmp_path / "logs")
    events = [ChangeEvent(time=1000, id=1, data=bytes(8))]

    artifact = await exporter.export(events, finalized_at=1_760_000_000.9)

    assert artifact.path == tmp_path / "logs" / "1760000000.txt"
    assert artifact.event_count == 1
    assert artifact.finalized_at == 1_760_000_000
    assert artifact.path.read_text(encoding="ascii") == render_trace(events)


@pytest.mark.asyncio
async def test_export_does_not_overwrite_same_second(tmp_path) -> None:
    exporter = TraceLogExporter(tmp_path)

    first = await exporter.export([], finalized_at=100)
    second = await exporter.export([ChangeEvent(time=0, id=2, data=bytes(8))], finalized_at=100)

    assert first.path.name == "100.txt"
    assert second.path.name == "100-1.txt"
    assert first.path.read_text(encoding="ascii") == TRACE_HEADER + TRIGGER_LINE


@pytest.mark.asyncio
async def test_export_failure_raises_export_write_error(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    exporter = TraceLogExporter(blocker)

    with pytest.raises(ExportWriteError):
        await exporter.export([], finalized_at=1)
