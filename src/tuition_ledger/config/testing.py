from .base import Config, db_config_from

DB_CONFIG = db_config_from(Config)

# Small pages so pagination paths are exercised with little data.
ATTENDANCE_PAGE_SIZE = 3
ATTENDANCE_HISTORY_CAP = 10
ATTENDANCE_QUERY_LIMIT = 50
ATTENDANCE_DEFAULT_WINDOW_DAYS = 30
READ_RETRY_ATTEMPTS = 2
READ_RETRY_BASE_DELAY = 0.0
SCOPE_IDLE_SECONDS = 60.0

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = False
