"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Maximum rows the store returns per request.
DEFAULT_PAGE_SIZE = 1000
# Hard cap on rows a historical scan accumulates.
DEFAULT_HISTORY_CAP = 5000
DEFAULT_QUERY_LIMIT = 1000
DEFAULT_QUERY_WINDOW_DAYS = 30

DEFAULT_READ_RETRY_ATTEMPTS = 3
DEFAULT_READ_RETRY_BASE_DELAY = 0.2
DEFAULT_READ_RETRY_MAX_DELAY = 2.0

# Cached query scopes unused this long are dropped.
DEFAULT_SCOPE_IDLE_SECONDS = 15 * 60

TEMP_ID_PREFIX = "temp-"
