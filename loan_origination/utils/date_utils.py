"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone
from typing import Optional


def add_months(from_date: date, months: int) -> date:
    """
    Add calendar months, clamping to the last valid day of the target month.

    Example:
        2024-01-31 + 1 month → 2024-02-29
    """
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(from_date.day, last_day))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from stores without time zone support"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
