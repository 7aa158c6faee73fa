from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceKey, AttendanceRecord, MarkInput

# Unique constraint of the ledger table, used as the bulk upsert conflict target.
IDENTITY_COLUMNS = ("student_id", "date", "subject_id", "faculty_id")


class AttendanceRecordStore(Protocol):
    """Persistence contract the sync engine consumes.

    Every call is tenant-scoped through an explicit ``tenant_id``. Transport or
    backend failures surface as ``NetworkError``; a rejected write surfaces as
    ``ConflictError``.
    """

    async def find_by_identity(self, tenant_id: str, key: AttendanceKey) -> Optional[AttendanceRecord]:
        """Point query: equality on student/date, equality or IS NULL on subject/faculty."""
        raise NotImplementedError

    async def insert(self, tenant_id: str, item: MarkInput) -> str:
        raise NotImplementedError

    async def update(
        self,
        tenant_id: str,
        record_id: str,
        *,
        status: AttendanceStatus,
        notes: Optional[str],
        updated_at: datetime,
    ) -> bool:
        raise NotImplementedError

    async def bulk_upsert(
        self,
        tenant_id: str,
        items: Sequence[MarkInput],
        *,
        conflict_target: Sequence[str] = IDENTITY_COLUMNS,
    ) -> int:
        """Insert or update every item in one call; conflicts update, never skip."""
        raise NotImplementedError

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
        """Rows with ``start_date <= date <= end_date``, ordered date desc, created_at desc."""
        raise NotImplementedError
