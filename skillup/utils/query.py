"""
Small helpers for building PostgREST queries from request parameters.
"""

from datetime import datetime, time, timezone

from dateutil import parser
from fastapi import HTTPException

# Characters with meaning inside a PostgREST `or=(...)` expression
_FILTER_SYNTAX = str.maketrans("", "", ",()%*\\")


def page_range(page: int, limit: int) -> tuple[int, int]:
    """Inclusive row window for `.range()`."""
    start = (page - 1) * limit
    return start, start + limit - 1


def ilike_any(columns: list[str], term: str) -> str | None:
    """`or_()` expression matching `term` case-insensitively in any column."""
    cleaned = term.translate(_FILTER_SYNTAX).strip()
    if not cleaned:
        return None
    return ",".join(f"{col}.ilike.%{cleaned}%" for col in columns)


def escape_like(value: str) -> str:
    """`ilike` pattern matching `value` literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def to_utc(value: datetime | str | None) -> datetime | None:
    """Parse store timestamps; naive values are taken as UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = parser.isoparse(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value: datetime | None) -> str | None:
    value = to_utc(value)
    return value.isoformat() if value else None


def _parse_param(value: str, name: str) -> datetime:
    try:
        return parser.isoparse(value)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"{name} must be an ISO 8601 date.")


def date_bounds(start: str | None, end: str | None) -> tuple[str | None, str | None]:
    """ISO bounds for a created_at filter. A date-only end covers the whole day."""
    lower = iso(_parse_param(start, "startDate")) if start else None
    upper = None
    if end:
        parsed = _parse_param(end, "endDate")
        if len(end) <= 10:
            parsed = datetime.combine(parsed.date(), time.max)
        upper = iso(parsed)
    return lower, upper
