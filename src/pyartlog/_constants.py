"""Internal constants shared across the library."""

DEFAULT_BROKER_URL = "mqtt://telemetry.arus.es:1883"
DEFAULT_TOPIC = "ART/status"
DEFAULT_CLIENT_ID = "discord_bot"
DEFAULT_LOG_DIR = "./art_logs"

DISCORD_API_BASE = "https://discord.com/api/v10"
USER_AGENT = "DiscordBot (pyartlog, 0.1)"

# ------------------------------------------------------------------
# Telemetry frame layout
# ------------------------------------------------------------------

#: Reserved leading byte + little-endian u32 timestamp.
FRAME_HEADER_SIZE = 5
TIMESTAMP_OFFSET = 1
#: Little-endian u16 id + 8 data bytes.
READING_SIZE = 10
READING_DATA_SIZE = 8

# ------------------------------------------------------------------
# Session lifecycle
# ------------------------------------------------------------------

#: Seconds of silence after which the car is assumed powered off.
DEFAULT_WATCHDOG_TIMEOUT: float = 10.0

#: How many failed trace exports are kept in memory for retry.
DEFAULT_MAX_PENDING_EXPORTS = 8

# ------------------------------------------------------------------
# Alerting
# ------------------------------------------------------------------

LOW_VOLTAGE_CAN_ID = 0x185
DEFAULT_LOW_VOLTAGE_THRESHOLD: float = 12.8
