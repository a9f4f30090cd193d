"""Bus state diffing.

The gateway publishes the full bus state in every frame, so the next state is
a replacement built from the new frame, not a merge: identifiers missing from
the frame are dropped.
"""

from __future__ import annotations

from collections.abc import Mapping

from pyartlog.models.frame import ChangeEvent, DecodedFrame

BusState = Mapping[int, bytes]
"""Last observed data payload per CAN identifier."""


def build_state(frame: DecodedFrame) -> dict[int, bytes]:
    """Build the bus state a frame describes.

    Duplicate identifiers keep the position of their first occurrence and the
    value of their last.
    """
    state: dict[int, bytes] = {}
    for reading in frame.readings:
        state[reading.id] = reading.data
    return state


def diff_readings(state: BusState, frame: DecodedFrame) -> tuple[list[ChangeEvent], dict[int, bytes]]:
    """Compare *frame* against *state*.

    Returns the change events in frame order and the new bus state.
    *state* is never mutated.
    """
    new_state = build_state(frame)
    changes = [
        ChangeEvent(time=frame.timestamp, id=can_id, data=data)
        for can_id, data in new_state.items()
        if state.get(can_id) != data
    ]
    return changes, new_state
