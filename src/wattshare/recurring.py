"""Recurring usage schedules that generate energy logs."""

import json
import logging
import uuid
from datetime import date, timedelta
from pathlib import Path

from .db import get_connection
from .logs import build_log, find_source_log, store_log
from .models import RateSchedule, RecurringSchedule, UsageSession
from .validation import InvalidSessionError, ValidationError, parse_clock_time

logger = logging.getLogger(__name__)

SOURCE_TYPE = "recurring"


def matching_dates(schedule: RecurringSchedule, until: date) -> list[date]:
    """Dates the schedule runs on, from its start date up to and including until."""
    last = min(schedule.end_date, until) if schedule.end_date else until
    dates = []
    current = schedule.start_date
    while current <= last:
        if current.weekday() in schedule.days_of_week:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def session_for_date(schedule: RecurringSchedule, usage_date: date) -> UsageSession:
    return UsageSession(
        device_id=schedule.device_id,
        usage_date=usage_date,
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        household_id=schedule.household_id,
        created_by=schedule.created_by,
        assigned_user_ids=list(schedule.assigned_user_ids),
    )


def save_schedule(schedule: RecurringSchedule, db_path: Path | None = None) -> RecurringSchedule:
    """Validate and store a recurring schedule."""
    if not schedule.days_of_week or any(d not in range(7) for d in schedule.days_of_week):
        raise ValidationError("days_of_week must list weekdays 0 (Monday) to 6 (Sunday)")
    if parse_clock_time(schedule.start_time) == parse_clock_time(schedule.end_time):
        raise InvalidSessionError("End time must be different from start time")
    if schedule.end_date and schedule.end_date < schedule.start_date:
        raise ValidationError("Schedule end date is before its start date")

    schedule.id = schedule.id or str(uuid.uuid4())
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT OR REPLACE INTO recurring_schedules
               (id, household_id, name, device_id, days_of_week, start_time, end_time,
                start_date, end_date, assigned_users, is_active, created_by)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                schedule.id,
                schedule.household_id,
                schedule.name,
                schedule.device_id,
                json.dumps(sorted(set(schedule.days_of_week))),
                schedule.start_time,
                schedule.end_time,
                schedule.start_date.isoformat(),
                schedule.end_date.isoformat() if schedule.end_date else None,
                json.dumps(schedule.assigned_user_ids),
                int(schedule.is_active),
                schedule.created_by,
            ),
        )
        conn.commit()
    return schedule


def get_schedules(
    household_id: str, active_only: bool = False, db_path: Path | None = None
) -> list[RecurringSchedule]:
    query = "SELECT * FROM recurring_schedules WHERE household_id = ?"
    if active_only:
        query += " AND is_active = 1"
    query += " ORDER BY name"

    with get_connection(db_path) as conn:
        rows = conn.execute(query, (household_id,)).fetchall()

    return [
        RecurringSchedule(
            id=row["id"],
            household_id=row["household_id"],
            name=row["name"],
            device_id=row["device_id"],
            days_of_week=json.loads(row["days_of_week"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]) if row["end_date"] else None,
            assigned_user_ids=json.loads(row["assigned_users"] or "[]"),
            is_active=bool(row["is_active"]),
            created_by=row["created_by"],
        )
        for row in rows
    ]


def generate_logs(
    schedule: RecurringSchedule,
    until: date,
    replace_existing: bool = False,
    schedules: list[RateSchedule] | None = None,
    db_path: Path | None = None,
) -> dict:
    """Create energy logs for every date the schedule ran on up to until.

    Dates that already have a log from this schedule are skipped, or
    regenerated when replace_existing is set. A regenerated log only
    replaces the old one once it has been costed. Inactive schedules
    generate nothing.

    Returns dict with 'imported', 'skipped', 'replaced' and 'failed' counts.
    """
    imported = 0
    skipped = 0
    replaced = 0
    failed = 0

    if not schedule.is_active:
        logger.info("Schedule %s is paused, not generating logs", schedule.name)
        return {"imported": imported, "skipped": skipped, "replaced": replaced, "failed": failed}

    for usage_date in matching_dates(schedule, until):
        existing = find_source_log(SOURCE_TYPE, schedule.id, usage_date, db_path)
        if existing and not replace_existing:
            skipped += 1
            continue

        try:
            log = build_log(
                session_for_date(schedule, usage_date),
                db_path=db_path,
                schedules=schedules,
                source_type=SOURCE_TYPE,
                source_id=schedule.id,
            )
        except ValueError as e:
            logger.error("Failed to create log for %s on %s: %s", schedule.name, usage_date, e)
            failed += 1
            continue

        store_log(log, db_path, replaces=existing)
        imported += 1
        if existing:
            replaced += 1

    return {"imported": imported, "skipped": skipped, "replaced": replaced, "failed": failed}
