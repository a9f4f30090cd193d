"""Custom exception hierarchy for pyartlog."""

from __future__ import annotations

from pathlib import Path


class ArtLogError(Exception):
    """Base exception for all pyartlog errors."""


class ArtConfigError(ArtLogError):
    """Invalid or missing configuration."""


class MalformedFrameError(ArtLogError):
    """Telemetry frame failed length validation.

    The frame must be dropped without touching any session state.
    """

    def __init__(self, message: str, *, length: int) -> None:
        self.length = length
        super().__init__(message)


class DecodeRangeError(MalformedFrameError):
    """A field offset fell outside the frame buffer.

    Only reachable if length validation let a truncated buffer through;
    handled exactly like :class:`MalformedFrameError`.
    """


class ExportWriteError(ArtLogError):
    """A trace log could not be written or closed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class NotificationError(ArtLogError):
    """Notification channel rejected or failed to deliver a message."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        channel_id: str = "",
    ) -> None:
        self.status_code = status_code
        self.channel_id = channel_id
        super().__init__(message)
