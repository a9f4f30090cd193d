"""Outbound notification model."""

from __future__ import annotations

import time
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class NotificationKind(StrEnum):
    SESSION_STARTED = "session_started"
    ALERT = "alert"
    SESSION_ENDED = "session_ended"


class Notification(BaseModel):
    """A short message for humans, optionally escalated.

    ``attachment`` references the finished trace file for
    :attr:`NotificationKind.SESSION_ENDED`; it is ``None`` when the export
    failed.
    """

    model_config = ConfigDict(frozen=True)

    kind: NotificationKind
    content: str
    urgent: bool = False
    occurred_at: float = Field(default_factory=time.time, description="Epoch seconds")
    attachment: Path | None = None
