# tree_predict/date_utils.py
from __future__ import annotations

from datetime import date as _date, datetime
from typing import Any, Optional

DAYS_PER_YEAR = 365.25


def coerce_to_date(value: Any) -> Optional[_date]:
    """
    Best-effort conversion to datetime.date.

    Accepts date, datetime, ISO-8601 strings ('1950-01-31') and bare years
    (int or '1950', mapped to 1 July of that year).

    Args:
        value: Value to convert

    Returns:
        datetime.date if conversion successful, None otherwise
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, _date):
        return value
    if isinstance(value, int):
        return _date(value, 7, 1) if 1 <= value <= 9999 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return coerce_to_date(int(text))
        try:
            return _date.fromisoformat(text)
        except ValueError:
            return None
    return None


def years_between(earlier: Any, later: Any) -> Optional[float]:
    """
    Fractional years from `earlier` to `later` (negative if `later` is before).

    Returns:
        float years, or None if either date is unknown
    """
    a = coerce_to_date(earlier)
    b = coerce_to_date(later)
    if a is None or b is None:
        return None
    return (b - a).days / DAYS_PER_YEAR


def within(value: Optional[float], low: float, high: float) -> bool:
    """Inclusive range check that is False for unknown values."""
    return value is not None and low <= value <= high
