"""Time-of-use cost calculation for usage sessions."""

from ..models import Device, PeriodUsage, RateSchedule, SessionCost, SubInterval, UsageSession
from ..validation import validate_session, validate_wattage
from .splitting import split_span


class MissingDeviceError(ValueError):
    """A session references a device that does not exist."""
    pass


def kwh_for(wattage: float, hours: float) -> float:
    """Energy in kWh drawn by a device of the given wattage."""
    return wattage / 1000 * hours


def calculate_cost(wattage: float, intervals: list[SubInterval]) -> SessionCost:
    """Compute per-period and total energy and cost.

    Values are accumulated unrounded; round only for display.
    """
    breakdown: dict[str, PeriodUsage] = {}
    for interval in intervals:
        kwh = kwh_for(wattage, interval.duration_hours)
        usage = breakdown.setdefault(interval.period_id, PeriodUsage())
        usage.kwh += kwh
        usage.cost += kwh * interval.price_per_kwh

    return SessionCost(
        total_kwh=sum(usage.kwh for usage in breakdown.values()),
        calculated_cost=sum(usage.cost for usage in breakdown.values()),
        rate_breakdown=breakdown,
    )


def find_device(devices: dict[str, Device], device_id: str) -> Device:
    """Look up a device by id."""
    device = devices.get(device_id)
    if device is None:
        raise MissingDeviceError(f"Device {device_id} not found")
    return device


def compute_session_cost(
    device: Device | None, session: UsageSession, schedule: RateSchedule
) -> SessionCost:
    """Validate a session and cost it against a rate schedule."""
    if device is None or device.id != session.device_id:
        raise MissingDeviceError(f"Device {session.device_id} not found")

    start, end = validate_session(session)
    wattage = validate_wattage(device.wattage)
    return calculate_cost(wattage, split_span(start, end, schedule))
