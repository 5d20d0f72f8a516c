"""
Date parsing for admin input and CSV rows.
"""
from datetime import date, datetime
from typing import Optional

# MySQL-style zero dates show up in exported ledgers
EMPTY_DATES = ('', '0000-00-00', '0000-00-00 00:00:00')


def parse_date(value) -> Optional[date]:
    """
    Parse YYYY-MM-DD (or a datetime string) into a date.

    Returns None for empty and zero dates.

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if text in EMPTY_DATES:
        return None
    return datetime.fromisoformat(text.replace('T', ' ')[:19]).date()


def parse_datetime(value) -> Optional[datetime]:
    """Like parse_date, but keeps the time of day."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    text = str(value).strip()
    if text in EMPTY_DATES:
        return None
    return datetime.fromisoformat(text.replace('T', ' ')[:19])
