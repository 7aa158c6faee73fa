"""Composite key matching for attendance identities.

This is the only place that decides whether two attendance identities denote
the same ledger entry. A missing subject or faculty id is its own bucket: an
unscoped mark never matches a scoped one, and two unscoped marks for the same
student and day always do.
"""

from __future__ import annotations

from typing import Optional, Protocol

from .model import AttendanceKey


class HasIdentity(Protocol):
    student_id: str
    date: object
    subject_id: Optional[str]
    faculty_id: Optional[str]


def _normalize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def identity_key(item: HasIdentity | AttendanceKey) -> AttendanceKey:
    """Build the normalised key of a record, mark payload or key."""
    return AttendanceKey(
        student_id=item.student_id,
        date=item.date,
        subject_id=_normalize(item.subject_id),
        faculty_id=_normalize(item.faculty_id),
    )


def matches(a: HasIdentity | AttendanceKey, b: HasIdentity | AttendanceKey) -> bool:
    return identity_key(a) == identity_key(b)
