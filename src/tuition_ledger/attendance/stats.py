from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord


@dataclass(frozen=True)
class AttendanceSummary:
    total: int
    present: int
    absent: int
    late: int
    excused: int
    attendance_rate: float


def summarize(records: Iterable[AttendanceRecord]) -> AttendanceSummary:
    """Count statuses; late students were there, so they count as attended."""
    counts = {status: 0 for status in AttendanceStatus}
    for r in records:
        counts[r.status] += 1

    total = sum(counts.values())
    attended = counts[AttendanceStatus.PRESENT] + counts[AttendanceStatus.LATE]
    rate = round(attended * 100 / total, 1) if total else 0.0
    return AttendanceSummary(
        total=total,
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
        excused=counts[AttendanceStatus.EXCUSED],
        attendance_rate=rate,
    )


def _streak(present_dates: set[date], today: date) -> int:
    if not present_dates:
        return 0
    current = max(present_dates)
    # Streak is broken once the latest present day is older than yesterday.
    if (today - current).days > 1:
        return 0
    streak = 0
    while current in present_dates:
        streak += 1
        current -= timedelta(days=1)
    return streak


def student_streak(records: Iterable[AttendanceRecord], student_id: str, *, today: date) -> int:
    """Consecutive days present, counted back from the student's latest present day."""
    present = {r.date for r in records if r.student_id == student_id and r.status == AttendanceStatus.PRESENT}
    return _streak(present, today)


def student_streaks(records: Iterable[AttendanceRecord], *, today: date) -> dict[str, int]:
    present_by_student: dict[str, set[date]] = {}
    for r in records:
        dates = present_by_student.setdefault(r.student_id, set())
        if r.status == AttendanceStatus.PRESENT:
            dates.add(r.date)
    return {student_id: _streak(dates, today) for student_id, dates in present_by_student.items()}
