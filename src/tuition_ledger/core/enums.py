from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance status stored for a student on a given day."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"
