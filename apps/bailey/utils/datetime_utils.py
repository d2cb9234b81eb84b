"""
Datetime utility functions.
"""

from datetime import date, datetime
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def parse_iso_date(value: Optional[Union[str, date]]) -> Optional[date]:
    """
    Parse an ISO date ("2025-03-14") into a date.

    Empty strings and None map to None. Full ISO datetimes are accepted and
    truncated to their date part.

    Raises:
        ValueError: If the string is not an ISO date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    if len(value) > 10:
        return datetime.fromisoformat(value).date()
    return date.fromisoformat(value)


def isoformat_or_none(value: Optional[Union[date, datetime]]) -> Optional[str]:
    """Serialize a date/datetime for JSON responses."""
    return value.isoformat() if value is not None else None
