from datetime import date, timedelta

from tuition_ledger.attendance.model import AttendanceRecord
from tuition_ledger.attendance.stats import student_streak, student_streaks, summarize
from tuition_ledger.core.enums import AttendanceStatus

TODAY = date(2024, 1, 15)
P = AttendanceStatus.PRESENT
A = AttendanceStatus.ABSENT


def _rec(student_id: str, days_ago: int, status: AttendanceStatus = P, subject_id=None) -> AttendanceRecord:
    return AttendanceRecord(
        id=f"{student_id}-{days_ago}-{subject_id}",
        student_id=student_id,
        date=TODAY - timedelta(days=days_ago),
        status=status,
        subject_id=subject_id,
    )


def test_summary_counts_late_as_attended():
    records = [_rec("S1", 0), _rec("S2", 0, A), _rec("S3", 0, AttendanceStatus.LATE), _rec("S4", 0, AttendanceStatus.EXCUSED)]

    summary = summarize(records)

    assert (summary.total, summary.present, summary.absent, summary.late, summary.excused) == (4, 1, 1, 1, 1)
    assert summary.attendance_rate == 50.0


def test_summary_of_nothing():
    assert summarize([]).attendance_rate == 0.0


def test_streak_counts_consecutive_present_days():
    records = [_rec("S1", 0), _rec("S1", 1), _rec("S1", 1, subject_id="MATH101"), _rec("S1", 2), _rec("S1", 4)]

    assert student_streak(records, "S1", today=TODAY) == 3


def test_streak_may_end_yesterday_but_not_earlier():
    assert student_streak([_rec("S1", 1), _rec("S1", 2)], "S1", today=TODAY) == 2
    assert student_streak([_rec("S1", 2), _rec("S1", 3)], "S1", today=TODAY) == 0


def test_absences_break_the_streak():
    records = [_rec("S1", 0), _rec("S1", 1, A), _rec("S1", 2)]

    assert student_streak(records, "S1", today=TODAY) == 1


def test_streaks_for_every_student():
    records = [_rec("S1", 0), _rec("S1", 1), _rec("S2", 0, A), _rec("S3", 1)]

    assert student_streaks(records, today=TODAY) == {"S1": 2, "S2": 0, "S3": 1}
