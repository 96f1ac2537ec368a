from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from ..core.constants import MS_PER_HOUR


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_utc() -> datetime:
    """Current UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    # Stored values without tzinfo are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_aware(value).isoformat()


def elapsed_ms(start: datetime, end: datetime) -> int:
    return (ensure_aware(end) - ensure_aware(start)) // timedelta(milliseconds=1)


def ms_to_hours(ms: int | float, *, digits: int = 2) -> float:
    return round_half_up(ms / MS_PER_HOUR, digits)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a spreadsheet does (0.5 goes up), not banker's rounding."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end - timedelta(seconds=1)


def working_days_between(start: date, end: date) -> int:
    """Count Monday to Friday days in [start, end]."""
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days
