"""Export and import of household devices and energy logs."""

import csv
from datetime import datetime
from pathlib import Path

from .db import get_connection
from .household import get_household_devices
from .logs import breakdown_from_dict, get_logs_for_period, insert_logs
from .models import Device, EnergyLog
from .validation import ValidationError, parse_date

BACKUP_VERSION = 1

CSV_COLUMNS = [
    "date",
    "device",
    "start_time",
    "end_time",
    "total_kwh",
    "cost",
    "created_by",
    "assigned_users",
    "source",
]


def export_logs_csv(logs: list[EnergyLog], path: Path, devices: dict[str, Device] | None = None) -> int:
    """Write logs to a CSV file. Returns number of rows written."""
    devices = devices or {}
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for log in logs:
            device = devices.get(log.device_id)
            writer.writerow(
                [
                    log.usage_date.isoformat(),
                    device.name if device else log.device_id,
                    log.start_time,
                    log.end_time,
                    f"{log.total_kwh:.3f}" if log.total_kwh is not None else "",
                    f"{log.calculated_cost:.2f}" if log.calculated_cost is not None else "",
                    log.created_by,
                    ";".join(log.assigned_user_ids),
                    log.source_type,
                ]
            )
    return len(logs)


def _log_to_dict(log: EnergyLog) -> dict:
    return {
        "id": log.id,
        "device_id": log.device_id,
        "usage_date": log.usage_date.isoformat(),
        "start_time": log.start_time,
        "end_time": log.end_time,
        "end_date": log.end_date.isoformat() if log.end_date else None,
        "household_id": log.household_id,
        "created_by": log.created_by,
        "assigned_users": log.assigned_user_ids,
        "cost_shares": log.cost_shares,
        "total_kwh": log.total_kwh,
        "calculated_cost": log.calculated_cost,
        "rate_breakdown": (
            {period: usage.to_dict() for period, usage in log.rate_breakdown.items()}
            if log.rate_breakdown
            else None
        ),
        "source_type": log.source_type,
        "source_id": log.source_id,
    }


def export_backup(household_id: str, db_path: Path | None = None) -> dict:
    """Collect a household's devices and logs into a JSON-serialisable dict."""
    devices = get_household_devices(household_id, db_path)
    logs = get_logs_for_period(household_id, db_path=db_path)
    return {
        "version": BACKUP_VERSION,
        "exported_at": datetime.now().isoformat(),
        "household_id": household_id,
        "devices": [
            {
                "id": d.id,
                "name": d.name,
                "wattage": d.wattage,
                "is_shared": d.is_shared,
                "household_id": d.household_id,
                "created_by": d.created_by,
            }
            for d in devices.values()
        ],
        "energy_logs": [_log_to_dict(log) for log in logs],
    }


def validate_backup(data: dict) -> list[str]:
    """Check the shape of a backup. Returns a list of problems (empty if valid)."""
    errors = []
    if not isinstance(data, dict):
        return ["Backup must be a JSON object"]

    if data.get("version") != BACKUP_VERSION:
        errors.append(f"Unsupported backup version: {data.get('version')!r}")

    devices = data.get("devices")
    if not isinstance(devices, list):
        errors.append("Missing or invalid devices list")
        devices = []
    for i, device in enumerate(devices):
        for key in ("id", "name", "wattage", "household_id"):
            if key not in device:
                errors.append(f"Device {i}: missing {key}")
        if isinstance(device.get("wattage"), (int, float)) and device["wattage"] <= 0:
            errors.append(f"Device {i}: wattage must be greater than 0")

    logs = data.get("energy_logs")
    if not isinstance(logs, list):
        errors.append("Missing or invalid energy_logs list")
        logs = []
    for i, log in enumerate(logs):
        for key in ("id", "device_id", "usage_date", "start_time", "end_time", "household_id", "created_by"):
            if key not in log:
                errors.append(f"Log {i}: missing {key}")
        for key in ("usage_date", "end_date"):
            if log.get(key) is None:
                continue
            try:
                parse_date(log[key])
            except ValidationError:
                errors.append(f"Log {i}: invalid {key} {log[key]!r}")

    return errors


def _log_from_dict(entry: dict) -> EnergyLog:
    return EnergyLog(
        id=entry["id"],
        device_id=entry["device_id"],
        usage_date=parse_date(entry["usage_date"]),
        start_time=entry["start_time"],
        end_time=entry["end_time"],
        end_date=parse_date(entry["end_date"]) if entry.get("end_date") else None,
        household_id=entry["household_id"],
        created_by=entry["created_by"],
        assigned_user_ids=entry.get("assigned_users") or [],
        cost_shares=entry.get("cost_shares"),
        total_kwh=entry.get("total_kwh"),
        calculated_cost=entry.get("calculated_cost"),
        rate_breakdown=breakdown_from_dict(entry.get("rate_breakdown")),
        source_type=entry.get("source_type") or "import",
        source_id=entry.get("source_id"),
    )


def import_backup(data: dict, db_path: Path | None = None) -> dict:
    """Restore devices and logs from a backup, skipping ids already present.

    Everything is parsed before anything is written, and the restore is
    committed as a single transaction. Logs keep their stored costs; run
    logs.recalculate_logs to reprice them.
    """
    errors = validate_backup(data)
    if errors:
        raise ValueError("Invalid backup: " + "; ".join(errors))

    logs = [_log_from_dict(entry) for entry in data["energy_logs"]]

    devices_imported = 0
    devices_skipped = 0
    with get_connection(db_path) as conn:
        for d in data["devices"]:
            existing = conn.execute("SELECT id FROM devices WHERE id = ?", (d["id"],)).fetchone()
            if existing:
                devices_skipped += 1
                continue
            conn.execute(
                """INSERT INTO devices (id, name, wattage, is_shared, household_id, created_by)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    d["id"],
                    d["name"],
                    d["wattage"],
                    int(bool(d.get("is_shared"))),
                    d["household_id"],
                    d.get("created_by"),
                ),
            )
            devices_imported += 1
        result = insert_logs(conn, logs)
        conn.commit()

    return {
        "devices_imported": devices_imported,
        "devices_skipped": devices_skipped,
        "logs_imported": result["imported"],
        "logs_skipped": result["skipped"],
    }
