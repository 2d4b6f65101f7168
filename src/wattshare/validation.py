"""Input validation for sessions, devices and bills."""

import re
from datetime import date, datetime, time, timedelta

from .models import UsageSession

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")

MAX_WATTAGE = 50_000
MAX_BILL_AMOUNT = 100_000
MAX_DEVICE_NAME_LENGTH = 100
MAX_NAME_LENGTH = 100
MAX_BULK_KWH = 100_000
MAX_PRICE_PER_KWH = 10


class ValidationError(ValueError):
    """Raised when user input fails validation."""
    pass


class InvalidSessionError(ValidationError):
    """Raised for sessions with malformed times or no duration."""
    pass


def parse_clock_time(value: str | time) -> time:
    """Parse an HH:MM or HH:MM:SS clock time."""
    if isinstance(value, time):
        return value
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidSessionError(f"Invalid time format (use HH:MM): {value!r}")
    hours, minutes, seconds = match.groups()
    return time(int(hours), int(minutes), int(seconds or 0))


def parse_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidSessionError(f"Invalid date format (use YYYY-MM-DD): {value!r}")


def session_bounds(
    usage_date: date,
    start_time: str | time,
    end_time: str | time,
    end_date: date | None = None,
) -> tuple[datetime, datetime]:
    """Convert a session's date and clock times to absolute start and end.

    Without an explicit end date, an end time earlier than the start time
    means the session ran past midnight.
    """
    start = datetime.combine(usage_date, parse_clock_time(start_time))
    end_clock = parse_clock_time(end_time)
    if end_date is not None:
        end = datetime.combine(end_date, end_clock)
    else:
        end = datetime.combine(usage_date, end_clock)
        if end < start:
            end += timedelta(days=1)
    return start, end


def session_duration_hours(
    usage_date: date,
    start_time: str | time,
    end_time: str | time,
    end_date: date | None = None,
) -> float:
    """Duration of a session in hours."""
    start, end = session_bounds(usage_date, start_time, end_time, end_date)
    return (end - start).total_seconds() / 3600


def validate_session(session: UsageSession) -> tuple[datetime, datetime]:
    """Check a session is costable and return its absolute bounds."""
    usage_date = parse_date(session.usage_date)
    end_date = parse_date(session.end_date) if session.end_date is not None else None
    start, end = session_bounds(usage_date, session.start_time, session.end_time, end_date)
    if end <= start:
        raise InvalidSessionError(
            f"Session must have a positive duration ({session.start_time} - {session.end_time})"
        )
    return start, end


def validate_wattage(wattage: float) -> float:
    """Wattage must be a positive number no greater than MAX_WATTAGE."""
    try:
        value = float(wattage)
    except (TypeError, ValueError):
        raise ValidationError("Wattage is required")
    if value != value or value <= 0:
        raise ValidationError("Wattage must be greater than 0")
    if value > MAX_WATTAGE:
        raise ValidationError(f"Wattage seems unusually high (max {MAX_WATTAGE:,}W)")
    return value


def validate_amount(amount: float) -> float:
    """Bill amounts must be positive and plausible."""
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Amount is required")
    if value != value or value <= 0:
        raise ValidationError("Amount must be greater than 0")
    if value > MAX_BILL_AMOUNT:
        raise ValidationError(f"Amount seems unusually high (max ${MAX_BILL_AMOUNT:,})")
    return value


def validate_kwh(kwh: float) -> float:
    """Bulk energy totals must be positive and plausible."""
    try:
        value = float(kwh)
    except (TypeError, ValueError):
        raise ValidationError("kWh total is required")
    if value != value or value <= 0:
        raise ValidationError("kWh total must be greater than 0")
    if value > MAX_BULK_KWH:
        raise ValidationError(f"kWh total seems unusually high (max {MAX_BULK_KWH:,} kWh)")
    return value


def validate_price(price: float) -> float:
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise ValidationError("Rate is required")
    if value != value or value <= 0:
        raise ValidationError("Rate must be greater than 0")
    if value > MAX_PRICE_PER_KWH:
        raise ValidationError(f"Rate seems unusually high (max ${MAX_PRICE_PER_KWH}/kWh)")
    return value


def validate_device_name(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("Device name is required")
    name = name.strip()
    if len(name) < 2:
        raise ValidationError("Device name must be at least 2 characters")
    if len(name) > MAX_DEVICE_NAME_LENGTH:
        raise ValidationError(f"Device name is too long (max {MAX_DEVICE_NAME_LENGTH} characters)")
    return name


def validate_date_range(start: date, end: date) -> tuple[date, date]:
    """Check an inclusive date range is ordered."""
    start = parse_date(start)
    end = parse_date(end)
    if end < start:
        raise ValidationError("End date must not be before start date")
    return start, end


def validate_name(name: str, label: str = "Name") -> str:
    """Names of groups, templates and schedules."""
    if not name or not name.strip():
        raise ValidationError(f"{label} is required")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"{label} is too long (max {MAX_NAME_LENGTH} characters)")
    return name
