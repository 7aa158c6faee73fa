import os


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Config:
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = _env_int("DB_PORT", 3306)
    DB_USER = os.getenv("DB_USER", "root")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    DB_NAME = os.getenv("DB_NAME", "tuition_ledger")

    # Store page size and the hard cap of a historical scan.
    ATTENDANCE_PAGE_SIZE = _env_int("ATTENDANCE_PAGE_SIZE", 1000)
    ATTENDANCE_HISTORY_CAP = _env_int("ATTENDANCE_HISTORY_CAP", 5000)
    ATTENDANCE_QUERY_LIMIT = _env_int("ATTENDANCE_QUERY_LIMIT", 1000)
    ATTENDANCE_DEFAULT_WINDOW_DAYS = _env_int("ATTENDANCE_DEFAULT_WINDOW_DAYS", 30)

    READ_RETRY_ATTEMPTS = _env_int("READ_RETRY_ATTEMPTS", 3)
    READ_RETRY_BASE_DELAY = _env_float("READ_RETRY_BASE_DELAY", 0.2)

    # Idle time after which a cached query scope is dropped.
    SCOPE_IDLE_SECONDS = _env_float("SCOPE_IDLE_SECONDS", 15 * 60)

    AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))


def db_config_from(config: type) -> dict:
    return {
        "host": config.DB_HOST,
        "port": config.DB_PORT,
        "user": config.DB_USER,
        "password": config.DB_PASSWORD,
        "database": config.DB_NAME,
    }
