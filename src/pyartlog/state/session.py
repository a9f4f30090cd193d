"""Per-session mutable state owned by the session manager."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from pyartlog.models.frame import ChangeEvent

LOW_VOLTAGE_RULE = "low_voltage"


@dataclass
class SessionState:
    """Everything the engine accumulates between power-on and power-off.

    Only :class:`pyartlog.engine.SessionManager` mutates this, always while
    holding its lock.
    """

    active: bool = False
    started_at: float | None = None
    change_log: list[ChangeEvent] = field(default_factory=list)
    bus_state: dict[int, bytes] = field(default_factory=dict)
    fired_alerts: set[str] = field(default_factory=set)
    last_frame_length: int | None = None
    frame_count: int = 0

    @property
    def low_voltage_alert_fired(self) -> bool:
        return LOW_VOLTAGE_RULE in self.fired_alerts

    def reset(self) -> None:
        """Return to the idle state with nothing accumulated."""
        self.active = False
        self.started_at = None
        self.change_log = []
        self.bus_state = {}
        self.fired_alerts = set()
        self.last_frame_length = None
        self.frame_count = 0


class SessionSnapshot(BaseModel):
    """Read-only view of the engine for logging and diagnostics."""

    model_config = ConfigDict(frozen=True)

    active: bool
    started_at: float | None = None
    frame_count: int = 0
    change_count: int = 0
    tracked_ids: int = 0
    fired_alerts: tuple[str, ...] = ()
    malformed_frames: int = 0
    pending_exports: int = 0
