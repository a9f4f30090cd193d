"""pyartlog - CAN telemetry session recorder for MQTT-connected vehicles."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyartlog")
except PackageNotFoundError:
    __version__ = "0+local"
from pyartlog.alerts import Alert, AlertRegistry, AlertRule, LowVoltageRule
from pyartlog.config import ArtLogConfig
from pyartlog.decoder import decode_frame
from pyartlog.engine import SessionManager
from pyartlog.exceptions import (
    ArtConfigError,
    ArtLogError,
    DecodeRangeError,
    ExportWriteError,
    MalformedFrameError,
    NotificationError,
)
from pyartlog.models import ChangeEvent, DecodedFrame, Notification, NotificationKind, Reading
from pyartlog.notify import DiscordNotifier, LoggingNotifier, Notifier
from pyartlog.state.tracker import BusState, diff_readings
from pyartlog.trace import TraceArtifact, TraceLogExporter, render_trace

__all__ = [
    "__version__",
    "Alert",
    "AlertRegistry",
    "AlertRule",
    "ArtConfigError",
    "ArtLogConfig",
    "ArtLogError",
    "BusState",
    "ChangeEvent",
    "DecodeRangeError",
    "DecodedFrame",
    "DiscordNotifier",
    "ExportWriteError",
    "LoggingNotifier",
    "LowVoltageRule",
    "MalformedFrameError",
    "Notification",
    "NotificationError",
    "NotificationKind",
    "Notifier",
    "Reading",
    "SessionManager",
    "TraceArtifact",
    "TraceLogExporter",
    "decode_frame",
    "diff_readings",
    "render_trace",
]
