"""Roll energy logs up by user, device, month or rate period."""

import logging
from datetime import date

from ..models import BULK_SOURCE, AggregateEntry, AggregationResult, Device, EnergyLog, PeriodUsage
from ..validation import InvalidSessionError, session_duration_hours
from .costing import MissingDeviceError, find_device, kwh_for

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("user", "device", "month", "period")

# Period key for estimated logs, which have no per-period breakdown
UNCLASSIFIED = "unclassified"


def user_allocation(log: EnergyLog) -> dict[str, float]:
    """Fraction of a log's usage attributed to each user.

    Explicit cost shares are normalised; otherwise the log is split evenly
    across its assigned users, or given entirely to its creator.
    """
    if log.cost_shares:
        weights = {user: w for user, w in log.cost_shares.items() if w > 0}
        total = sum(weights.values())
        if total > 0:
            return {user: w / total for user, w in weights.items()}

    users = list(dict.fromkeys(log.assigned_user_ids)) or [log.created_by]
    return {user: 1 / len(users) for user in users}


def log_usage(log: EnergyLog, devices: dict[str, Device]) -> tuple[dict[str, PeriodUsage], bool]:
    """Per-period usage for a log and whether it had to be estimated.

    Bulk entries carry their own totals. Other logs without a stored
    breakdown get their kWh from device wattage and session duration; their
    cost is whatever was stored, or zero.
    """
    if log.rate_breakdown:
        return log.rate_breakdown, False
    if log.source_type == BULK_SOURCE:
        usage = PeriodUsage(kwh=log.total_kwh or 0.0, cost=log.calculated_cost or 0.0)
        return {UNCLASSIFIED: usage}, False

    device = find_device(devices, log.device_id)
    hours = session_duration_hours(log.usage_date, log.start_time, log.end_time, log.end_date)
    if hours <= 0:
        raise InvalidSessionError(f"Log {log.id} has no duration")
    usage = PeriodUsage(kwh=kwh_for(device.wattage, hours), cost=log.calculated_cost or 0.0)
    return {UNCLASSIFIED: usage}, True


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def in_date_range(log: EnergyLog, date_range: tuple[date, date] | None) -> bool:
    if date_range is None:
        return True
    start, end = date_range
    return start <= log.usage_date <= end


def aggregate(
    logs: list[EnergyLog],
    group_by: str,
    date_range: tuple[date, date] | None = None,
    devices: dict[str, Device] | None = None,
) -> AggregationResult:
    """Sum kWh and cost per group key.

    Args:
        logs: Energy logs to roll up
        group_by: One of 'user', 'device', 'month', 'period'
        date_range: Optional inclusive (start, end) filter on usage date
        devices: Devices by id, needed only to estimate logs lacking a breakdown

    Returns:
        AggregationResult with one entry per group key
    """
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"group_by must be one of {', '.join(GROUP_BY_OPTIONS)}, got {group_by!r}")

    result = AggregationResult(group_by=group_by, groups={})

    for log in logs:
        if not in_date_range(log, date_range):
            continue

        try:
            usage, estimated = log_usage(log, devices or {})
        except (MissingDeviceError, InvalidSessionError) as e:
            logger.warning("Skipping log %s: %s", log.id, e)
            result.skipped_log_ids.append(log.id)
            continue

        kwh = sum(u.kwh for u in usage.values())
        cost = sum(u.cost for u in usage.values())

        if group_by == "period":
            contributions = [(period, u.kwh, u.cost) for period, u in usage.items()]
        elif group_by == "user":
            contributions = [
                (user, kwh * share, cost * share) for user, share in user_allocation(log).items()
            ]
        elif group_by == "device":
            contributions = [(log.device_id, kwh, cost)]
        else:
            contributions = [(month_key(log.usage_date), kwh, cost)]

        for key, key_kwh, key_cost in contributions:
            entry = result.groups.setdefault(key, AggregateEntry())
            entry.kwh += key_kwh
            entry.cost += key_cost
            entry.log_count += 1
            entry.is_estimated = entry.is_estimated or estimated

        result.total_kwh += kwh
        result.total_cost += cost
        if log.source_type == BULK_SOURCE:
            result.bulk_kwh += kwh
            result.bulk_cost += cost

    return result
