from __future__ import annotations

import struct
from collections.abc import Callable, Sequence

import pytest

FrameBuilder = Callable[..., bytes]


def _build_frame(timestamp: int, readings: Sequence[tuple[int, bytes]] = (), *, reserved: int = 0) -> bytes:
    body = b"".join(struct.pack("<H", can_id) + data for can_id, data in readings)
    return bytes([reserved]) + struct.pack("<I", timestamp) + body


@pytest.fixture
def build_frame() -> FrameBuilder:
    """Encode ``(can_id, 8 data bytes)`` pairs into a raw telemetry frame."""
    return _build_frame


@pytest.fixture
def millivolts() -> Callable[[int], bytes]:
    """Data payload for the LV battery monitor (0x185) reporting *mv* millivolts."""

    def _encode(mv: int) -> bytes:
        return struct.pack("<H", mv) + bytes(6)

    return _encode
