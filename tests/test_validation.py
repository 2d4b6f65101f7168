"""Tests for input validation."""

from datetime import date, datetime, time

import pytest
from wattshare.models import UsageSession
from wattshare.validation import (
    InvalidSessionError,
    ValidationError,
    parse_clock_time,
    parse_date,
    session_bounds,
    session_duration_hours,
    validate_amount,
    validate_device_name,
    validate_session,
    validate_wattage,
)


def test_parse_clock_time():
    assert parse_clock_time("7:05") == time(7, 5)
    assert parse_clock_time("23:59:30") == time(23, 59, 30)
    assert parse_clock_time(time(1, 2)) == time(1, 2)
    for bad in ("24:00", "12:60", "noon", "", None):
        with pytest.raises(InvalidSessionError):
            parse_clock_time(bad)


def test_parse_date():
    assert parse_date("2024-07-10") == date(2024, 7, 10)
    assert parse_date(datetime(2024, 7, 10, 12)) == date(2024, 7, 10)
    with pytest.raises(InvalidSessionError, match="YYYY-MM-DD"):
        parse_date("10/07/2024")


def test_session_bounds_crosses_midnight():
    start, end = session_bounds(date(2024, 7, 10), "23:00", "01:00")
    assert start == datetime(2024, 7, 10, 23)
    assert end == datetime(2024, 7, 11, 1)


def test_session_bounds_with_end_date():
    start, end = session_bounds(date(2024, 7, 10), "08:00", "09:00", date(2024, 7, 12))
    assert end - start == datetime(2024, 7, 12, 9) - datetime(2024, 7, 10, 8)
    assert session_duration_hours(date(2024, 7, 10), "08:00", "09:00", date(2024, 7, 12)) == 49


def test_validate_session():
    session = UsageSession("d1", date(2024, 7, 10), "22:00", "02:00", "home-1", "alice")
    assert validate_session(session) == (datetime(2024, 7, 10, 22), datetime(2024, 7, 11, 2))

    session.end_time = "22:00"
    with pytest.raises(InvalidSessionError, match="positive duration"):
        validate_session(session)


def test_validate_wattage():
    assert validate_wattage("150") == 150.0
    for bad in (0, -5, float("nan"), "abc", None):
        with pytest.raises(ValidationError):
            validate_wattage(bad)
    with pytest.raises(ValidationError, match="unusually high"):
        validate_wattage(50_001)


def test_validate_amount():
    assert validate_amount(99.5) == 99.5
    with pytest.raises(ValidationError):
        validate_amount(-1)


def test_validate_device_name():
    assert validate_device_name("  Heater ") == "Heater"
    for bad in ("", "   ", "x", "x" * 101):
        with pytest.raises(ValidationError):
            validate_device_name(bad)
