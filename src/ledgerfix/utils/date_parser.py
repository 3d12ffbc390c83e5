"""Date parsing utilities."""

from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as date_parser


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports ISO and free-form absolute dates ("2024-01-15", "January 15, 2024")
    and the relative words "today", "yesterday" and "tomorrow".

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, OverflowError, TypeError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def to_date(value: Any) -> date:
    """Coerce a stored date (ISO string, timestamp string, date or datetime) to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return parse_date(value)
    raise ValueError(f"Not a date: {value!r}")


def end_of_previous_year(today: date | None = None) -> date:
    """Return 31 December of the year before ``today``."""
    today = today or date.today()
    return date(today.year - 1, 12, 31)


def start_of_year(today: date | None = None) -> date:
    today = today or date.today()
    return date(today.year, 1, 1)
