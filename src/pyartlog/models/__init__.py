"""Data models for telemetry frames and notifications."""

from pyartlog.models.frame import ChangeEvent, DecodedFrame, Reading
from pyartlog.models.notification import Notification, NotificationKind

__all__ = [
    "ChangeEvent",
    "DecodedFrame",
    "Notification",
    "NotificationKind",
    "Reading",
]
