# godown_allocation/utils/date_utils.py
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

DateLike = Union[str, date, datetime, None]

# PostgREST trims trailing zeros from fractional seconds
_FRACTION = re.compile(r'\.(\d{1,6})(?=\d*(?:[+-]\d{2}:?\d{2})?$)')

def _pad_fraction(match) -> str:
    return '.' + match.group(1).ljust(6, '0')

def to_datetime(value: DateLike) -> Optional[datetime]:
    """Coerce a stored timestamp into a naive datetime.

    The hosted database returns ISO strings (with a trailing 'Z' or offset
    and 1 to 6 fractional digits); SQLAlchemy returns datetime objects.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)

    text = str(value).strip().replace('Z', '+00:00')
    text = _FRACTION.sub(_pad_fraction, text, count=1)
    return datetime.fromisoformat(text).replace(tzinfo=None)

def to_date(value: DateLike) -> Optional[date]:
    """Coerce a stored date or timestamp into a date."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return to_datetime(value).date()

def day_start(value: DateLike) -> Optional[datetime]:
    """First instant of the given day."""
    day = to_date(value)
    return datetime.combine(day, time.min) if day else None

def day_end(value: DateLike) -> Optional[datetime]:
    """Last instant of the given day, so 'to' filters include the whole day."""
    day = to_date(value)
    return datetime.combine(day, time.max) if day else None

def expiry_cutoff(within_days: int, today: Optional[date] = None) -> date:
    """Last expiry date that still counts as expiring within the window."""
    if within_days < 0:
        raise ValueError(f"Invalid expiry window: {within_days}")
    return (today or date.today()) + timedelta(days=within_days)
