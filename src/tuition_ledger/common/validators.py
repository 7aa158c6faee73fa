from __future__ import annotations

from typing import Optional

from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError


def require_non_empty(value: object, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def normalize_optional_id(value: object, field_name: str) -> Optional[str]:
    """Blank ids mean "not scoped", so they collapse to None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} is invalid")
    return value.strip() or None


def normalize_notes(value: object) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("notes must be text")
    return value.strip() or None


def parse_status(value: AttendanceStatus | str) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"status must be one of: {allowed}") from exc
