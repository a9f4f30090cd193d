"""Telemetry frame decoding.

Wire layout (all integers little-endian)::

    offset 0      reserved byte
    offset 1..4   u32 timestamp, milliseconds since session epoch
    offset 5..    N x 10-byte readings: u16 CAN id + 8 data bytes

The payload after the 5-byte header must be an exact multiple of the
reading size; anything else is treated as a corrupted frame.
"""

from __future__ import annotations

import struct

from pyartlog._constants import FRAME_HEADER_SIZE, READING_SIZE, TIMESTAMP_OFFSET
from pyartlog.exceptions import DecodeRangeError, MalformedFrameError
from pyartlog.models.frame import DecodedFrame, Reading

_TIMESTAMP = struct.Struct("<I")
_READING = struct.Struct("<H8s")


def validate_frame_length(length: int) -> int:
    """Return the number of readings a frame of *length* bytes carries.

    Raises :class:`MalformedFrameError` when the length cannot be a valid frame.
    """
    body = length - FRAME_HEADER_SIZE
    if body < 0 or body % READING_SIZE != 0:
        raise MalformedFrameError(
            f"Frame length does not match, message possibly corrupted? ({length})",
            length=length,
        )
    return body // READING_SIZE


def decode_frame(payload: bytes) -> DecodedFrame:
    """Decode one raw telemetry message.

    Pure function: safe to call from any thread.

    Raises
    ------
    MalformedFrameError
        The frame length fails validation.
    DecodeRangeError
        A field would be read past the end of the buffer.
    """
    buffer = bytes(payload)
    count = validate_frame_length(len(buffer))

    try:
        (timestamp,) = _TIMESTAMP.unpack_from(buffer, TIMESTAMP_OFFSET)
        readings = tuple(
            Reading(id=can_id, data=data)
            for can_id, data in (
                _READING.unpack_from(buffer, FRAME_HEADER_SIZE + index * READING_SIZE) for index in range(count)
            )
        )
    except struct.error as exc:
        raise DecodeRangeError(f"Frame field out of range: {exc}", length=len(buffer)) from exc

    return DecodedFrame(timestamp=timestamp, readings=readings, length=len(buffer))
