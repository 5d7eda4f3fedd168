"""
Date parsing, formatting and calendar arithmetic utilities.

All ledger dates are calendar days keyed as ``YYYY-MM-DD`` strings with no
time component.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional, Union

from ..core.exceptions import ValidationError

DateLike = Union[date, datetime, str]

DATE_KEY_FORMAT = '%Y-%m-%d'


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """
    Parse a date string into a date object.

    Handles various formats:
    - ISO format (YYYY-MM-DD)
    - ISO datetime (YYYY-MM-DDTHH:MM:SS)
    - Single digit month/day (2024-1-5)

    Args:
        date_str: Date string to parse

    Returns:
        Parsed date object or None if invalid
    """
    if not date_str:
        return None

    date_str = date_str.strip()

    # Take only date part if it's a datetime string
    if 'T' in date_str:
        date_str = date_str.split('T')[0]
    elif ' ' in date_str:
        date_str = date_str.split(' ')[0]

    # Remove timezone if present
    date_str = date_str.split('+')[0].split('Z')[0]

    try:
        return datetime.strptime(date_str, DATE_KEY_FORMAT).date()
    except ValueError:
        pass

    try:
        parts = date_str.split('-')
        if len(parts) == 3:
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
    except (ValueError, IndexError):
        pass

    return None


def format_date(d: Optional[date]) -> Optional[str]:
    """
    Format a date object as ISO string (YYYY-MM-DD).

    Args:
        d: Date object to format

    Returns:
        ISO formatted date string or None
    """
    if not d:
        return None

    return d.strftime(DATE_KEY_FORMAT)


def to_date(value: DateLike) -> date:
    """Coerce a date, datetime or date string to a calendar date.

    Raises:
        ValidationError: If the value cannot be interpreted as a date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
    raise ValidationError(f"Invalid date: {value!r}")


def to_date_key(value: DateLike) -> str:
    """Canonicalize a date-like value to its ``YYYY-MM-DD`` ledger key."""
    return to_date(value).strftime(DATE_KEY_FORMAT)


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    """Signed number of calendar days from ``start`` to ``end``."""
    return (end - start).days


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def js_weekday(d: date) -> int:
    """Weekday number with Sunday as 0 and Saturday as 6."""
    return (d.weekday() + 1) % 7


def start_of_week(d: date, week_starts_on: int = 1) -> date:
    """First day of the week containing ``d``.

    ``week_starts_on`` uses the Sunday=0 numbering.
    """
    offset = (js_weekday(d) - week_starts_on) % 7
    return d - timedelta(days=offset)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Union[str, datetime, None], strict: bool = False) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, tolerating a trailing ``Z``.

    Unparseable text gives None, or ValidationError when ``strict``.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        if strict:
            raise ValidationError(f"Invalid timestamp: {value!r}")
        return None

