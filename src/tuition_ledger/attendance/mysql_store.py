from __future__ import annotations

import asyncio
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional, Sequence

import mysql.connector
from mysql.connector import errors as mysql_errors

from ..core.enums import AttendanceStatus
from ..core.exceptions import ConflictError, NetworkError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceKey, AttendanceRecord, MarkInput
from .store import IDENTITY_COLUMNS, AttendanceRecordStore

_COLUMNS = "id, student_id, date, status, notes, subject_id, faculty_id, created_at, updated_at"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except mysql_errors.IntegrityError as exc:
        raise ConflictError(f"{action} rejected by the store: {exc.msg}") from exc
    except mysql.connector.Error as exc:
        raise NetworkError(f"{action} failed: {exc}") from exc


def _to_record(r: dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        id=str(r["id"]),
        student_id=str(r["student_id"]),
        date=r["date"],
        status=AttendanceStatus(r["status"]),
        notes=r.get("notes"),
        subject_id=r.get("subject_id"),
        faculty_id=r.get("faculty_id"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _nullable_clause(column: str, value: Optional[str], params: list[object]) -> str:
    if value is None:
        return f"{column} IS NULL"
    params.append(value)
    return f"{column}=%s"


class MySQLAttendanceStore(AttendanceRecordStore):
    """``student_attendance`` table over mysql-connector.

    The connector is blocking, so each call runs in a worker thread.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    async def find_by_identity(self, tenant_id: str, key: AttendanceKey) -> Optional[AttendanceRecord]:
        return await asyncio.to_thread(self._find_by_identity, tenant_id, key)

    async def insert(self, tenant_id: str, item: MarkInput) -> str:
        return await asyncio.to_thread(self._insert, tenant_id, item)

    async def update(
        self,
        tenant_id: str,
        record_id: str,
        *,
        status: AttendanceStatus,
        notes: Optional[str],
        updated_at: datetime,
    ) -> bool:
        # The row is stamped by the server clock, as bulk writes are.
        return await asyncio.to_thread(self._update, tenant_id, record_id, status, notes)

    async def bulk_upsert(
        self,
        tenant_id: str,
        items: Sequence[MarkInput],
        *,
        conflict_target: Sequence[str] = IDENTITY_COLUMNS,
    ) -> int:
        # MySQL resolves conflicts on the table's unique key; make sure it is the one asked for.
        if tuple(conflict_target) != IDENTITY_COLUMNS:
            raise ValueError(f"unsupported conflict target: {tuple(conflict_target)!r}")
        if not items:
            return 0
        return await asyncio.to_thread(self._bulk_upsert, tenant_id, list(items))

    async def fetch_range(
        self,
        tenant_id: str,
        *,
        start_date: Optional[date],
        end_date: Optional[date],
        student_id: Optional[str] = None,
        limit: int,
        offset: int = 0,
    ) -> Sequence[AttendanceRecord]:
        return await asyncio.to_thread(
            self._fetch_range, tenant_id, start_date, end_date, student_id, int(limit), int(offset)
        )

    def _find_by_identity(self, tenant_id: str, key: AttendanceKey) -> Optional[AttendanceRecord]:
        params: list[object] = [tenant_id, key.student_id, key.date]
        clauses = [
            "tenant_id=%s",
            "student_id=%s",
            "date=%s",
            _nullable_clause("subject_id", key.subject_id, params),
            _nullable_clause("faculty_id", key.faculty_id, params),
        ]
        with _translate_errors("attendance lookup"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM student_attendance WHERE {' AND '.join(clauses)} LIMIT 1",
                tuple(params),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def _insert(self, tenant_id: str, item: MarkInput) -> str:
        with _translate_errors("attendance insert"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO student_attendance(tenant_id, student_id, date, status, notes, subject_id, faculty_id)
                VALUES(%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    tenant_id,
                    item.student_id,
                    item.date,
                    item.status.value,
                    item.notes,
                    item.subject_id,
                    item.faculty_id,
                ),
            )
            return str(cur.lastrowid)

    def _update(
        self,
        tenant_id: str,
        record_id: str,
        status: AttendanceStatus,
        notes: Optional[str],
    ) -> bool:
        with _translate_errors("attendance update"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE student_attendance
                SET status=%s, notes=%s, updated_at=CURRENT_TIMESTAMP(6)
                WHERE id=%s AND tenant_id=%s
                """,
                (status.value, notes, int(record_id), tenant_id),
            )
            return cur.rowcount > 0

    def _bulk_upsert(self, tenant_id: str, items: list[MarkInput]) -> int:
        placeholders = ", ".join(["(%s,%s,%s,%s,%s,%s,%s)"] * len(items))
        params: list[object] = []
        for item in items:
            params.extend(
                [
                    tenant_id,
                    item.student_id,
                    item.date,
                    item.status.value,
                    item.notes,
                    item.subject_id,
                    item.faculty_id,
                ]
            )
        with _translate_errors("attendance bulk upsert"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO student_attendance(tenant_id, student_id, date, status, notes, subject_id, faculty_id)
                VALUES {placeholders}
                ON DUPLICATE KEY UPDATE
                    status=VALUES(status),
                    notes=VALUES(notes),
                    updated_at=CURRENT_TIMESTAMP(6)
                """,
                tuple(params),
            )
            return int(cur.rowcount)

    def _fetch_range(
        self,
        tenant_id: str,
        start_date: Optional[date],
        end_date: Optional[date],
        student_id: Optional[str],
        limit: int,
        offset: int,
    ) -> list[AttendanceRecord]:
        clauses = ["tenant_id=%s"]
        params: list[object] = [tenant_id]

        if start_date is not None:
            clauses.append("date >= %s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("date <= %s")
            params.append(end_date)
        if student_id is not None:
            clauses.append("student_id=%s")
            params.append(student_id)
        params.extend([limit, offset])

        with _translate_errors("attendance range query"), db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM student_attendance
                WHERE {' AND '.join(clauses)}
                ORDER BY date DESC, created_at DESC
                LIMIT %s OFFSET %s
                """,
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]
