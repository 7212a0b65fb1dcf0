"""Shared runtime constants for the DSUL daemon and client.

This is the canonical source of truth for protocol limits and runtime
defaults.  Other modules should import from here rather than defining
their own copies.
"""

# ---------------------------------------------------------------------------
# Protocol / validation limits
# ---------------------------------------------------------------------------

MIN_COLOR = 0
MAX_COLOR = 255
MIN_MODE = 1
TERMINATOR = 0x23  # '#'
READ_CHUNK = 64
OK_RESPONSE = "+!#"
TELEMETRY_MIN_LENGTH = 4  # responses longer than this carry telemetry

# ---------------------------------------------------------------------------
# Serial / runtime defaults
# ---------------------------------------------------------------------------

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD = 38400
MIN_BAUD = 9600
MAX_BAUD = 115200
DEFAULT_TIMEOUT = 2.0
SETTLE_DELAY = 2.0  # let the device boot after the port opens
WATCHDOG_INTERVAL = 30.0

# ---------------------------------------------------------------------------
# IPC defaults
# ---------------------------------------------------------------------------

IPC_NAME = "dsul"
DEFAULT_NETWORK_PORT = 9292
SEND_PACING = 1 / 30
MAX_SESSIONS = 16  # least recently seen peers are forgotten beyond this
CLIENT_CONNECT_TIMEOUT = 5.0
CLIENT_LINGER = 1.0  # give the daemon time to answer before exiting
