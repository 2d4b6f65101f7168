"""Dashboard summaries of household energy logs."""

from datetime import date

from ..models import AggregationResult, Device, EnergyLog, User
from .aggregation import aggregate


def _rows(result: AggregationResult, labels: dict[str, str] | None = None) -> list[dict]:
    labels = labels or {}
    rows = [
        {
            "key": key,
            "label": labels.get(key, key),
            "kwh": round(entry.kwh, 3),
            "cost": round(entry.cost, 2),
            "logs": entry.log_count,
            "estimated": entry.is_estimated,
        }
        for key, entry in result.groups.items()
    ]
    return sorted(rows, key=lambda r: r["cost"], reverse=True)


def get_period_summary(
    logs: list[EnergyLog],
    start: date,
    end: date,
    devices: dict[str, Device] | None = None,
    users: list[User] | None = None,
) -> dict:
    """Generate a summary for an inclusive date range."""
    date_range = (start, end)
    by_user = aggregate(logs, "user", date_range, devices)
    by_device = aggregate(logs, "device", date_range, devices)
    by_period = aggregate(logs, "period", date_range, devices)
    by_month = aggregate(logs, "month", date_range, devices)

    days = (end - start).days + 1
    user_names = {u.id: u.name for u in users or []}
    device_names = {d.id: d.name for d in (devices or {}).values()}

    return {
        "period": {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "days": days,
        },
        "totals": {
            "kwh": round(by_device.total_kwh, 3),
            "cost": round(by_device.total_cost, 2),
            "logs": sum(entry.log_count for entry in by_device.groups.values()),
            "estimated": by_device.is_estimated,
            "bulk_kwh": round(by_device.bulk_kwh, 3),
            "bulk_cost": round(by_device.bulk_cost, 2),
        },
        "averages": {
            "daily_kwh": round(by_device.total_kwh / days, 3) if days > 0 else 0,
            "daily_cost": round(by_device.total_cost / days, 2) if days > 0 else 0,
        },
        "by_user": _rows(by_user, user_names),
        "by_device": _rows(by_device, device_names),
        "by_period": _rows(by_period),
        "by_month": sorted(_rows(by_month), key=lambda r: r["key"]),
        "skipped_logs": by_device.skipped_log_ids,
    }


def format_period_summary_text(summary: dict) -> str:
    """Format a period summary as human-readable text."""
    lines = [
        f"Energy Summary: {summary['period']['start']} to {summary['period']['end']}",
        f"({summary['period']['days']} days, {summary['totals']['logs']} logs)",
        "",
        "Totals:",
        f"  - Consumption: {summary['totals']['kwh']} kWh",
        f"  - Cost: ${summary['totals']['cost']:.2f}",
    ]
    if summary["totals"]["bulk_kwh"]:
        lines.append(
            f"  - Bulk entries: {summary['totals']['bulk_kwh']} kWh, ${summary['totals']['bulk_cost']:.2f}"
        )
    lines += [
        "",
        "Daily Averages:",
        f"  - Consumption: {summary['averages']['daily_kwh']} kWh/day",
        f"  - Cost: ${summary['averages']['daily_cost']:.2f}/day",
    ]

    for title, key in (("By member", "by_user"), ("By device", "by_device"), ("By rate period", "by_period")):
        if summary[key]:
            lines.extend(["", f"{title}:"])
            for row in summary[key]:
                marker = " (estimated)" if row["estimated"] else ""
                lines.append(f"  - {row['label']}: {row['kwh']} kWh, ${row['cost']:.2f}{marker}")

    if summary["skipped_logs"]:
        lines.extend(["", f"Skipped {len(summary['skipped_logs'])} log(s) with unknown devices"])

    return "\n".join(lines)
