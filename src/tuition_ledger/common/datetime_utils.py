from __future__ import annotations

from datetime import date, datetime, timezone

from ..core.exceptions import ValidationError


def parse_iso_date(value: date | str, field_name: str = "date") -> date:
    """Parse a YYYY-MM-DD string (or pass through a date) into a date."""
    if isinstance(value, datetime):
        raise ValidationError(f"{field_name} must be a calendar date without time")
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} is invalid")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be formatted as YYYY-MM-DD") from exc


def now_utc() -> datetime:
    """Current UTC time. Kept as a function so tests can patch it."""
    return datetime.now(timezone.utc)
