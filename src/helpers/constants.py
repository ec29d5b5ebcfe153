"""Common configuration constants used across the application."""

# HTTP and Network Constants
DEFAULT_TIMEOUT = 30.0
"""Default JSON-RPC request timeout in seconds"""

# Retry Configuration
MAX_RETRIES = 5
"""Default maximum number of retry attempts"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 60.0
"""Maximum delay between retries in seconds"""

# Range Loading
RANGE_STRIDE = 5
"""Number of block fetches issued concurrently per stride of a range load"""

ADDRESS_SCAN_BLOCKS = 5
"""Number of recent blocks scanned when looking up an address' transactions"""

# Streaming
NEW_BLOCKS_MIN_INTERVAL = 0.1
"""Shortest delay between two new-head polls in seconds"""

NEW_BLOCKS_MAX_INTERVAL = 2.0
"""Longest delay between two new-head polls while the head is unchanged"""

STATS_INTERVAL = 7.0
"""Delay between two network statistics pushes in seconds"""

DAILY_TRX_INTERVAL = 12 * 60 * 60.0
"""Delay between two daily transaction series pushes in seconds (12h)"""

DAILY_TRX_DAYS = 365
"""Number of days in the daily transaction series"""

DAILY_TRX_MIN = 1_000
"""Lower bound of a synthetic daily transaction count"""

DAILY_TRX_MAX = 50_000
"""Upper bound of a synthetic daily transaction count"""

# Serialization
MAX_SAFE_INTEGER = 2**53 - 1
"""Largest integer a JavaScript client can represent exactly"""

# Units
GWEI_DECIMALS = 9
"""Decimals between wei and gwei"""

ETHER_DECIMALS = 18
"""Decimals between wei and ether"""

SECONDS_PER_DAY = 24 * 60 * 60
"""Seconds in a notional 24h statistics window"""

# Service
DEFAULT_HOST = "0.0.0.0"  # noqa: S104
"""Interface the HTTP and WebSocket servers bind to"""

DEFAULT_HTTP_PORT = 3000
"""Port of the explorer HTTP API"""

DEFAULT_WS_PORT = 3001
"""Port of the live WebSocket streamer"""


__all__ = [
    "ADDRESS_SCAN_BLOCKS",
    "DAILY_TRX_DAYS",
    "DAILY_TRX_INTERVAL",
    "DAILY_TRX_MAX",
    "DAILY_TRX_MIN",
    "DEFAULT_HOST",
    "DEFAULT_HTTP_PORT",
    "DEFAULT_TIMEOUT",
    "DEFAULT_WS_PORT",
    "ETHER_DECIMALS",
    "GWEI_DECIMALS",
    "MAX_RETRIES",
    "MAX_SAFE_INTEGER",
    "NEW_BLOCKS_MAX_INTERVAL",
    "NEW_BLOCKS_MIN_INTERVAL",
    "RANGE_STRIDE",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
    "SECONDS_PER_DAY",
    "STATS_INTERVAL",
]
