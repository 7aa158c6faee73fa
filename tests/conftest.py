from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from tuition_ledger.attendance.matcher import matches
from tuition_ledger.attendance.model import AttendanceKey, AttendanceRecord, MarkInput
from tuition_ledger.attendance.store import IDENTITY_COLUMNS
from tuition_ledger.attendance.sync_engine import AttendanceSyncEngine
from tuition_ledger.core.enums import AttendanceStatus
from tuition_ledger.core.exceptions import ConflictError

NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
TENANT = "tuition-1"


@dataclass
class _Failure:
    exc: BaseException
    student_id: Optional[str]
    times: int


class InMemoryAttendanceStore:
    """Store fake honouring the contract's ordering and nullable-key rules."""

    def __init__(self):
        self._rows: dict[str, list[AttendanceRecord]] = {}
        self._next_id = 0
        self._failures: dict[str, list[_Failure]] = {}
        self._held: list[asyncio.Event] = []
        self.gate: Optional[asyncio.Event] = None
        # Per-method gates take precedence over `gate`.
        self.gates: dict[str, asyncio.Event] = {}
        self.after_fetch: Optional[Callable[[int], None]] = None
        self.calls: list[tuple[str, dict]] = []
        self.inserted = 0
        self.updated = 0

    # -- test helpers ----------------------------------------------------------

    def seed(
        self,
        student_id: str,
        day: date,
        status: AttendanceStatus = AttendanceStatus.PRESENT,
        *,
        subject_id: Optional[str] = None,
        faculty_id: Optional[str] = None,
        tenant_id: str = TENANT,
    ) -> AttendanceRecord:
        return self._create(
            tenant_id,
            MarkInput(student_id=student_id, date=day, status=status, subject_id=subject_id, faculty_id=faculty_id),
        )

    def rows(self, tenant_id: str = TENANT) -> list[AttendanceRecord]:
        return list(self._rows.get(tenant_id, []))

    def fail(self, method: str, exc: BaseException, *, student_id: Optional[str] = None, times: int = 1) -> None:
        self._failures.setdefault(method, []).append(_Failure(exc=exc, student_id=student_id, times=times))

    def hold_next_fetch(self) -> asyncio.Event:
        """The next fetch_range computes its rows, then waits for the returned event."""
        event = asyncio.Event()
        self._held.append(event)
        return event

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # -- contract ------------------------------------------------------------

    async def _enter(self, name: str, student_id: Optional[str] = None, **details) -> None:
        self.calls.append((name, details))
        gate = self.gates.get(name, self.gate)
        if gate is not None:
            await gate.wait()
        for failure in self._failures.get(name, []):
            if failure.times > 0 and failure.student_id in (None, student_id):
                failure.times -= 1
                raise failure.exc

    def _create(self, tenant_id: str, item: MarkInput) -> AttendanceRecord:
        self._next_id += 1
        created = NOW + timedelta(seconds=self._next_id)
        record = AttendanceRecord(
            id=str(self._next_id),
            student_id=item.student_id,
            date=item.date,
            status=item.status,
            notes=item.notes,
            subject_id=item.subject_id,
            faculty_id=item.faculty_id,
            created_at=created,
            updated_at=created,
        )
        self._rows.setdefault(tenant_id, []).append(record)
        return record

    def _find(self, tenant_id: str, key) -> Optional[AttendanceRecord]:
        for r in self._rows.get(tenant_id, []):
            if matches(r, key):
                return r
        return None

    def _replace(self, tenant_id: str, record: AttendanceRecord) -> None:
        rows = self._rows[tenant_id]
        rows[[r.id for r in rows].index(record.id)] = record

    async def find_by_identity(self, tenant_id: str, key: AttendanceKey):
        await self._enter("find_by_identity", key.student_id, key=key)
        return self._find(tenant_id, key)

    async def insert(self, tenant_id: str, item: MarkInput) -> str:
        await self._enter("insert", item.student_id, item=item)
        if self._find(tenant_id, item) is not None:
            raise ConflictError("duplicate identity")
        self.inserted += 1
        return self._create(tenant_id, item).id

    async def update(self, tenant_id: str, record_id: str, *, status, notes, updated_at) -> bool:
        current = next((r for r in self._rows.get(tenant_id, []) if r.id == record_id), None)
        await self._enter("update", current.student_id if current else None, record_id=record_id)
        if current is None:
            return False
        self.updated += 1
        self._replace(tenant_id, current.with_status(status, notes, updated_at))
        return True

    async def bulk_upsert(self, tenant_id: str, items, *, conflict_target=IDENTITY_COLUMNS) -> int:
        await self._enter("bulk_upsert", items=list(items), conflict_target=tuple(conflict_target))
        for item in items:
            existing = self._find(tenant_id, item)
            if existing is None:
                self.inserted += 1
                self._create(tenant_id, item)
            else:
                self.updated += 1
                self._replace(tenant_id, replace(existing, status=item.status, notes=item.notes, updated_at=NOW))
        return len(items)

    async def fetch_range(self, tenant_id: str, *, start_date, end_date, student_id=None, limit, offset=0):
        rows = [
            r
            for r in self._rows.get(tenant_id, [])
            if (start_date is None or r.date >= start_date)
            and (end_date is None or r.date <= end_date)
            and (student_id is None or r.student_id == student_id)
        ]
        rows.sort(key=lambda r: (r.date, r.created_at), reverse=True)
        page = rows[offset : offset + limit]
        held = self._held.pop(0) if self._held else None
        await self._enter("fetch_range", offset=offset, limit=limit, start_date=start_date, end_date=end_date)
        if held is not None:
            await held.wait()
        if self.after_fetch is not None:
            self.after_fetch(offset)
        return page


@pytest.fixture
def store() -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore()


@pytest.fixture
def engine(store) -> AttendanceSyncEngine:
    return AttendanceSyncEngine(store, retry_base_delay=0.0, clock=lambda: NOW)
