"""Tests for date parsing and coercion."""

import pytest
from datetime import date, datetime, timedelta

from ledgerfix.utils.date_parser import end_of_previous_year, parse_date, start_of_year, to_date


def test_parse_absolute_date():
    """Test parsing absolute dates."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)


def test_parse_relative_words():
    """Test parsing 'today', 'yesterday' and 'tomorrow'."""
    today = date.today()
    assert parse_date("today") == today
    assert parse_date("Yesterday") == today - timedelta(days=1)
    assert parse_date(" tomorrow ") == today + timedelta(days=1)


def test_parse_standard_formats():
    """Test parsing free-form absolute dates."""
    assert parse_date("January 15, 2024") == date(2024, 1, 15)
    assert parse_date("15 Jan 2024") == date(2024, 1, 15)


def test_parse_invalid_date():
    with pytest.raises(ValueError, match="Could not parse date"):
        parse_date("not a date")


def test_to_date_accepts_stored_shapes():
    """ISO strings, timestamps, dates and datetimes all become dates."""
    assert to_date("2024-06-01") == date(2024, 6, 1)
    assert to_date("2024-06-01T23:59:59.000Z") == date(2024, 6, 1)
    assert to_date(datetime(2024, 6, 1, 8, 30)) == date(2024, 6, 1)
    assert to_date(date(2024, 6, 1)) == date(2024, 6, 1)
    assert to_date("June 1, 2024") == date(2024, 6, 1)


def test_to_date_rejects_empty_values():
    for value in (None, "", 20240601):
        with pytest.raises(ValueError):
            to_date(value)


def test_year_boundaries():
    assert end_of_previous_year(date(2025, 1, 1)) == date(2024, 12, 31)
    assert end_of_previous_year(date(2025, 12, 31)) == date(2024, 12, 31)
    assert start_of_year(date(2025, 7, 4)) == date(2025, 1, 1)
