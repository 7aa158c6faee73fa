import os

from .base import Config, db_config_from

DB_CONFIG = db_config_from(Config)

ATTENDANCE_PAGE_SIZE = Config.ATTENDANCE_PAGE_SIZE
ATTENDANCE_HISTORY_CAP = Config.ATTENDANCE_HISTORY_CAP
ATTENDANCE_QUERY_LIMIT = Config.ATTENDANCE_QUERY_LIMIT
ATTENDANCE_DEFAULT_WINDOW_DAYS = Config.ATTENDANCE_DEFAULT_WINDOW_DAYS
READ_RETRY_ATTEMPTS = Config.READ_RETRY_ATTEMPTS
READ_RETRY_BASE_DELAY = Config.READ_RETRY_BASE_DELAY
SCOPE_IDLE_SECONDS = Config.SCOPE_IDLE_SECONDS

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, the schema is applied on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
