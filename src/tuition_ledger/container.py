from __future__ import annotations

from dataclasses import dataclass
from types import ModuleType
from typing import Optional

from .attendance.historical import HistoricalFetcher
from .attendance.mysql_store import MySQLAttendanceStore
from .attendance.store import AttendanceRecordStore
from .attendance.sync_engine import AttendanceSyncEngine
from .core import constants
from .database.connection import DBConfig, DatabaseConnection


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]
    attendance_store: AttendanceRecordStore
    historical_fetcher: HistoricalFetcher
    attendance_engine: AttendanceSyncEngine


def _setting(settings: Optional[ModuleType], name: str, default):
    return getattr(settings, name, default) if settings is not None else default


def build_container(
    *,
    db_config: Optional[dict] = None,
    settings: Optional[ModuleType] = None,
    store: Optional[AttendanceRecordStore] = None,
) -> Container:
    """Wire the attendance components.

    ``store`` overrides the MySQL store (tests, alternative backends);
    otherwise ``db_config`` is required.
    """
    conn: Optional[DatabaseConnection] = None
    if store is None:
        if db_config is None:
            raise ValueError("db_config is required when no store is given")
        conn = DatabaseConnection(DBConfig.from_mapping(db_config))
        store = MySQLAttendanceStore(conn)

    retry_attempts = int(_setting(settings, "READ_RETRY_ATTEMPTS", constants.DEFAULT_READ_RETRY_ATTEMPTS))
    retry_base_delay = float(_setting(settings, "READ_RETRY_BASE_DELAY", constants.DEFAULT_READ_RETRY_BASE_DELAY))

    historical_fetcher = HistoricalFetcher(
        store,
        page_size=int(_setting(settings, "ATTENDANCE_PAGE_SIZE", constants.DEFAULT_PAGE_SIZE)),
        max_records=int(_setting(settings, "ATTENDANCE_HISTORY_CAP", constants.DEFAULT_HISTORY_CAP)),
        retry_attempts=retry_attempts,
        retry_base_delay=retry_base_delay,
    )
    attendance_engine = AttendanceSyncEngine(
        store,
        historical=historical_fetcher,
        query_limit=int(_setting(settings, "ATTENDANCE_QUERY_LIMIT", constants.DEFAULT_QUERY_LIMIT)),
        default_window_days=int(
            _setting(settings, "ATTENDANCE_DEFAULT_WINDOW_DAYS", constants.DEFAULT_QUERY_WINDOW_DAYS)
        ),
        retry_attempts=retry_attempts,
        retry_base_delay=retry_base_delay,
        scope_idle_seconds=float(_setting(settings, "SCOPE_IDLE_SECONDS", constants.DEFAULT_SCOPE_IDLE_SECONDS)),
    )

    return Container(
        conn=conn,
        attendance_store=store,
        historical_fetcher=historical_fetcher,
        attendance_engine=attendance_engine,
    )
