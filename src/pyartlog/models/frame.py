"""Telemetry frame records.

A frame carries a device timestamp (milliseconds, session-relative) and an
ordered run of CAN readings. :class:`ChangeEvent` is what the bus state
tracker emits when a reading differs from the last known value.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from pyartlog._constants import READING_DATA_SIZE

_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFF_FFFF


class Reading(BaseModel):
    """One CAN identifier and its data payload.

    Parameters
    ----------
    id : int
        11/16-bit CAN identifier as sent by the gateway.
    data : bytes
        Data payload, exactly 8 bytes on the wire.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: int = Field(..., ge=0, le=_U16_MAX)
    data: bytes = Field(..., max_length=READING_DATA_SIZE)


class DecodedFrame(BaseModel):
    """Result of decoding one raw telemetry message."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: int = Field(..., ge=0, le=_U32_MAX, description="Device time in milliseconds")
    readings: tuple[Reading, ...] = ()
    length: int = Field(..., ge=0, description="Raw frame size in bytes")


class ChangeEvent(BaseModel):
    """A reading whose payload changed, stamped with its frame's timestamp."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    time: int = Field(..., ge=0, le=_U32_MAX)
    id: int = Field(..., ge=0, le=_U16_MAX)
    data: bytes = Field(..., max_length=READING_DATA_SIZE)
