from __future__ import annotations

import pytest

from pyartlog.decoder import decode_frame, validate_frame_length
from pyartlog.exceptions import DecodeRangeError, MalformedFrameError


@pytest.mark.parametrize("length", [0, 3, 4, 6, 14, 16, 24, 26])
def test_invalid_lengths_are_malformed(length: int) -> None:
    with pytest.raises(MalformedFrameError) as excinfo:
        decode_frame(bytes(length))
    assert excinfo.value.length == length


def test_header_only_frame_has_no_readings() -> None:
    frame = decode_frame(bytes(5))
    assert frame.readings == ()


def test_fifteen_byte_frame_carries_one_reading() -> None:
    frame = decode_frame(bytes(15))
    assert len(frame.readings) == 1
    assert frame.readings[0].id == 0
    assert frame.readings[0].data == bytes(8)


def test_reading_count_from_length() -> None:
    assert validate_frame_length(15) == 1
    assert validate_frame_length(25) == 2
    assert validate_frame_length(5) == 0


def test_timestamp_is_little_endian_after_reserved_byte(build_frame) -> None:
    raw = build_frame(0x12345678, reserved=0xAA)
    assert raw[1:5] == bytes([0x78, 0x56, 0x34, 0x12])

    frame = decode_frame(raw)

    assert frame.timestamp == 0x12345678
    assert frame.length == 5


def test_timestamp_is_unsigned(build_frame) -> None:
    frame = decode_frame(build_frame(0xFFFF_FFFF))
    assert frame.timestamp == 4_294_967_295


def test_readings_decoded_in_offset_order(build_frame) -> None:
    raw = build_frame(
        1000,
        [
            (0x185, bytes([0xE0, 0x2E, 0, 0, 0, 0, 0, 0xFF])),
            (0x010, bytes(range(8))),
        ],
    )

    frame = decode_frame(raw)

    assert len(raw) == 25
    assert [r.id for r in frame.readings] == [0x185, 0x010]
    assert frame.readings[0].data == bytes([0xE0, 0x2E, 0, 0, 0, 0, 0, 0xFF])
    assert frame.readings[1].data == bytes(range(8))


def test_reading_id_is_little_endian() -> None:
    raw = bytes(5) + bytes([0x85, 0x01]) + bytes(8)
    assert decode_frame(raw).readings[0].id == 0x185


def test_decode_accepts_bytearray(build_frame) -> None:
    raw = bytearray(build_frame(7, [(1, bytes(8))]))
    frame = decode_frame(raw)
    assert frame.timestamp == 7
    assert frame.readings[0].id == 1


def test_decode_range_error_is_malformed_frame() -> None:
    assert issubclass(DecodeRangeError, MalformedFrameError)
