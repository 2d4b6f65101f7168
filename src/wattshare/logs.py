"""Energy log storage: cost sessions on the way in, read them back out."""

import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime, time
from pathlib import Path

from .analysis.costing import MissingDeviceError, compute_session_cost
from .db import get_connection
from .household import get_device
from .models import (
    BULK_SOURCE,
    PERIOD_IDS,
    Device,
    EnergyLog,
    PeriodUsage,
    RateSchedule,
    SessionCost,
    UsageSession,
)
from .tariffs import ScheduleGapError, load_tariffs_from_db, period_price, select_schedule
from .validation import (
    ValidationError,
    parse_date,
    validate_date_range,
    validate_kwh,
    validate_price,
    validate_session,
)

logger = logging.getLogger(__name__)

LOG_COLUMNS = """id, household_id, device_id, usage_date, start_time, end_time, end_date,
                 created_by, assigned_users, cost_shares, total_kwh, calculated_cost,
                 rate_breakdown, source_type, source_id, created_at"""

DATE_FIELDS = ("usage_date", "end_date")


def breakdown_from_dict(data: dict | None) -> dict[str, PeriodUsage] | None:
    if not data:
        return None
    return {period: PeriodUsage(kwh=v["kwh"], cost=v["cost"]) for period, v in data.items()}


def breakdown_from_json(text: str | None) -> dict[str, PeriodUsage] | None:
    return breakdown_from_dict(json.loads(text)) if text else None


def breakdown_to_json(breakdown: dict[str, PeriodUsage] | None) -> str | None:
    if breakdown is None:
        return None
    return json.dumps({period: usage.to_dict() for period, usage in breakdown.items()})


def _row_to_log(row: sqlite3.Row) -> EnergyLog:
    return EnergyLog(
        id=row["id"],
        household_id=row["household_id"],
        device_id=row["device_id"],
        usage_date=date.fromisoformat(row["usage_date"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
        created_by=row["created_by"],
        assigned_user_ids=json.loads(row["assigned_users"] or "[]"),
        cost_shares=json.loads(row["cost_shares"]) if row["cost_shares"] else None,
        total_kwh=row["total_kwh"],
        calculated_cost=row["calculated_cost"],
        rate_breakdown=breakdown_from_json(row["rate_breakdown"]),
        source_type=row["source_type"],
        source_id=row["source_id"],
        created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
    )


def cost_session(
    session: UsageSession, device: Device | None, schedules: list[RateSchedule]
) -> SessionCost:
    """Cost a session with the tariff in force when it started."""
    start, _ = validate_session(session)
    return compute_session_cost(device, session, select_schedule(schedules, start))


def _household_device(device_id: str, household_id: str, db_path: Path | None) -> Device:
    device = get_device(device_id, db_path)
    if device is None or device.household_id != household_id:
        raise MissingDeviceError(f"Device {device_id} not found in household")
    return device


def _load_schedules(schedules: list[RateSchedule] | None, db_path: Path | None) -> list[RateSchedule]:
    schedules = schedules if schedules is not None else load_tariffs_from_db(db_path)
    if not schedules:
        raise ScheduleGapError("No tariffs loaded; run 'wattshare tariff load' first")
    return schedules


def insert_log(conn: sqlite3.Connection, log: EnergyLog) -> None:
    """Insert a log row. The caller commits."""
    conn.execute(
        f"""INSERT INTO energy_logs ({LOG_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            log.id,
            log.household_id,
            log.device_id,
            log.usage_date.isoformat(),
            log.start_time,
            log.end_time,
            log.end_date.isoformat() if log.end_date else None,
            log.created_by,
            json.dumps(log.assigned_user_ids),
            json.dumps(log.cost_shares) if log.cost_shares else None,
            log.total_kwh,
            log.calculated_cost,
            breakdown_to_json(log.rate_breakdown),
            log.source_type,
            log.source_id,
            (log.created_at or datetime.now()).isoformat(),
        ),
    )


def build_log(
    session: UsageSession,
    db_path: Path | None = None,
    schedules: list[RateSchedule] | None = None,
    cost_shares: dict[str, float] | None = None,
    source_type: str = "manual",
    source_id: str | None = None,
) -> EnergyLog:
    """Cost a usage session into an energy log without storing it."""
    device = _household_device(session.device_id, session.household_id, db_path)
    cost = cost_session(session, device, _load_schedules(schedules, db_path))

    return EnergyLog(
        id=str(uuid.uuid4()),
        device_id=session.device_id,
        usage_date=parse_date(session.usage_date),
        start_time=session.start_time,
        end_time=session.end_time,
        end_date=parse_date(session.end_date) if session.end_date else None,
        household_id=session.household_id,
        created_by=session.created_by,
        assigned_user_ids=list(session.assigned_user_ids),
        total_kwh=cost.total_kwh,
        calculated_cost=cost.calculated_cost,
        rate_breakdown=cost.rate_breakdown,
        cost_shares=cost_shares,
        source_type=source_type,
        source_id=source_id,
        created_at=datetime.now(),
    )


def store_log(log: EnergyLog, db_path: Path | None = None, replaces: str | None = None) -> None:
    """Write a log, removing the log it replaces in the same transaction."""
    with get_connection(db_path) as conn:
        if replaces:
            conn.execute("DELETE FROM energy_logs WHERE id = ?", (replaces,))
        insert_log(conn, log)
        conn.commit()


def create_log(
    session: UsageSession,
    db_path: Path | None = None,
    schedules: list[RateSchedule] | None = None,
    cost_shares: dict[str, float] | None = None,
    source_type: str = "manual",
    source_id: str | None = None,
) -> EnergyLog:
    """Cost a usage session and store it as an energy log."""
    log = build_log(session, db_path, schedules, cost_shares, source_type, source_id)
    store_log(log, db_path)
    logger.debug("Created log %s: %.3f kWh, $%.4f", log.id, log.total_kwh, log.calculated_cost)
    return log


def create_bulk_log(
    device_id: str,
    household_id: str,
    created_by: str,
    total_kwh: float,
    period_id: str,
    start_date: date,
    end_date: date | None = None,
    price_per_kwh: float | None = None,
    assigned_user_ids: list[str] | None = None,
    db_path: Path | None = None,
    schedules: list[RateSchedule] | None = None,
) -> EnergyLog:
    """Store a kWh total for a date range, e.g. a month of car charging.

    The whole total is billed at one rate period. Without an explicit price
    the period's rate on start_date is used.
    """
    kwh = validate_kwh(total_kwh)
    if period_id not in PERIOD_IDS:
        raise ValidationError(f"Unknown rate period {period_id!r}")
    start_date, end_date = validate_date_range(start_date, end_date or start_date)
    _household_device(device_id, household_id, db_path)

    if price_per_kwh is not None:
        price = validate_price(price_per_kwh)
    else:
        schedule = select_schedule(
            _load_schedules(schedules, db_path), datetime.combine(start_date, time.min)
        )
        price = period_price(start_date, period_id, schedule)

    log = EnergyLog(
        id=str(uuid.uuid4()),
        device_id=device_id,
        usage_date=start_date,
        start_time="00:00",
        end_time="00:00",
        end_date=end_date if end_date != start_date else None,
        household_id=household_id,
        created_by=created_by,
        assigned_user_ids=list(assigned_user_ids or []),
        total_kwh=kwh,
        calculated_cost=kwh * price,
        rate_breakdown={period_id: PeriodUsage(kwh=kwh, cost=kwh * price)},
        source_type=BULK_SOURCE,
        created_at=datetime.now(),
    )
    store_log(log, db_path)
    return log


def insert_logs(conn: sqlite3.Connection, logs: list[EnergyLog]) -> dict:
    """Insert logs whose ids are not stored yet. The caller commits."""
    imported = 0
    skipped = 0
    for log in logs:
        existing = conn.execute("SELECT id FROM energy_logs WHERE id = ?", (log.id,)).fetchone()
        if existing:
            skipped += 1
            continue
        insert_log(conn, log)
        imported += 1
    return {"imported": imported, "skipped": skipped}


def get_log(log_id: str, db_path: Path | None = None) -> EnergyLog | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            f"SELECT {LOG_COLUMNS} FROM energy_logs WHERE id = ?", (log_id,)
        ).fetchone()
    return _row_to_log(row) if row else None


def get_logs_for_period(
    household_id: str,
    start: date | None = None,
    end: date | None = None,
    db_path: Path | None = None,
) -> list[EnergyLog]:
    """Get a household's logs, optionally within an inclusive date range."""
    query = f"SELECT {LOG_COLUMNS} FROM energy_logs WHERE household_id = ?"
    params: list = [household_id]

    if start:
        query += " AND usage_date >= ?"
        params.append(start.isoformat())
    if end:
        query += " AND usage_date <= ?"
        params.append(end.isoformat())

    query += " ORDER BY usage_date, start_time"

    with get_connection(db_path) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_log(row) for row in rows]


def find_source_log(
    source_type: str, source_id: str, usage_date: date, db_path: Path | None = None
) -> str | None:
    """Id of the log generated from a source on a date, if any."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT id FROM energy_logs
               WHERE source_type = ? AND source_id = ? AND usage_date = ?""",
            (source_type, source_id, usage_date.isoformat()),
        ).fetchone()
    return row["id"] if row else None


def update_log(
    log_id: str,
    db_path: Path | None = None,
    schedules: list[RateSchedule] | None = None,
    **changes,
) -> EnergyLog | None:
    """Edit a log and recompute its cost. Returns None if the log is missing.

    Accepts any EnergyLog session field (device_id, usage_date, start_time,
    end_time, end_date, assigned_user_ids) plus cost_shares. Dates may be
    given as YYYY-MM-DD strings.
    """
    log = get_log(log_id, db_path)
    if log is None:
        return None
    if log.source_type == BULK_SOURCE:
        raise ValidationError("Bulk entries have no usage session to recost")

    for key in DATE_FIELDS:
        if changes.get(key) is not None:
            changes[key] = parse_date(changes[key])

    log = replace(log, **changes)
    session = log.session
    device = _household_device(session.device_id, session.household_id, db_path)
    cost = cost_session(session, device, _load_schedules(schedules, db_path))

    with get_connection(db_path) as conn:
        conn.execute(
            """UPDATE energy_logs
               SET device_id = ?, usage_date = ?, start_time = ?, end_time = ?, end_date = ?,
                   assigned_users = ?, cost_shares = ?,
                   total_kwh = ?, calculated_cost = ?, rate_breakdown = ?
               WHERE id = ?""",
            (
                log.device_id,
                log.usage_date.isoformat(),
                log.start_time,
                log.end_time,
                log.end_date.isoformat() if log.end_date else None,
                json.dumps(log.assigned_user_ids),
                json.dumps(log.cost_shares) if log.cost_shares else None,
                cost.total_kwh,
                cost.calculated_cost,
                breakdown_to_json(cost.rate_breakdown),
                log.id,
            ),
        )
        conn.commit()

    return replace(
        log,
        total_kwh=cost.total_kwh,
        calculated_cost=cost.calculated_cost,
        rate_breakdown=cost.rate_breakdown,
    )


def delete_log(log_id: str, db_path: Path | None = None) -> bool:
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM energy_logs WHERE id = ?", (log_id,))
        conn.commit()
    return cursor.rowcount > 0


def recalculate_logs(household_id: str, db_path: Path | None = None) -> dict:
    """Recompute the cost of every session log of a household against stored tariffs.

    Bulk entries keep the rate they were entered with. Returns counts of
    updated, skipped and failed logs.
    """
    schedules = _load_schedules(None, db_path)
    updated = 0
    skipped = 0
    failed = 0

    for log in get_logs_for_period(household_id, db_path=db_path):
        if log.source_type == BULK_SOURCE:
            skipped += 1
            continue
        try:
            update_log(log.id, db_path, schedules=schedules)
            updated += 1
        except ValueError as e:
            logger.warning("Could not recalculate log %s: %s", log.id, e)
            failed += 1

    return {"updated": updated, "skipped": skipped, "failed": failed}
