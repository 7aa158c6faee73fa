from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceKey:
    """Composite identity of a ledger entry.

    ``subject_id``/``faculty_id`` are None when the entry is not scoped; None
    is a bucket of its own, never a wildcard.
    """

    student_id: str
    date: date
    subject_id: Optional[str] = None
    faculty_id: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """One student's status for one day, optionally scoped to a subject/faculty."""

    id: str
    student_id: str
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None
    subject_id: Optional[str] = None
    faculty_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def with_status(self, status: AttendanceStatus, notes: Optional[str], updated_at: datetime) -> "AttendanceRecord":
        return replace(self, status=status, notes=notes, updated_at=updated_at)


@dataclass(frozen=True)
class MarkInput:
    """Validated payload of a single mark."""

    student_id: str
    date: date
    status: AttendanceStatus
    notes: Optional[str] = None
    subject_id: Optional[str] = None
    faculty_id: Optional[str] = None

    @property
    def key(self) -> AttendanceKey:
        from .matcher import identity_key

        return identity_key(self)


@dataclass(frozen=True)
class AttendanceFilters:
    """Filters of a cached query; together with the tenant id it names a scope."""

    date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    student_id: Optional[str] = None
