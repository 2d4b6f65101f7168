"""Saved device and time presets for logging the same usage again."""

import json
import logging
import uuid
from datetime import date
from pathlib import Path

from .db import get_connection
from .household import get_household_devices
from .logs import create_log
from .models import DeviceGroup, EnergyLog, RateSchedule, UsageSession, UsageTemplate
from .validation import InvalidSessionError, ValidationError, parse_clock_time, validate_name

logger = logging.getLogger(__name__)

SOURCE_TYPE = "template"

TEMPLATE_COLUMNS = "id, household_id, name, device_id, start_time, end_time, assigned_users, created_by"


def _row_to_template(row) -> UsageTemplate:
    return UsageTemplate(
        id=row["id"],
        household_id=row["household_id"],
        name=row["name"],
        device_id=row["device_id"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        created_by=row["created_by"],
        assigned_user_ids=json.loads(row["assigned_users"] or "[]"),
    )


def save_template(template: UsageTemplate, db_path: Path | None = None) -> UsageTemplate:
    """Validate and store a template, replacing one with the same id."""
    template.name = validate_name(template.name, "Template name")
    if parse_clock_time(template.start_time) == parse_clock_time(template.end_time):
        raise InvalidSessionError("End time must be different from start time")
    if template.device_id not in get_household_devices(template.household_id, db_path):
        raise ValidationError(f"Device {template.device_id} not found in household")

    template.id = template.id or str(uuid.uuid4())
    with get_connection(db_path) as conn:
        conn.execute(
            f"INSERT OR REPLACE INTO usage_templates ({TEMPLATE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                template.id,
                template.household_id,
                template.name,
                template.device_id,
                template.start_time,
                template.end_time,
                json.dumps(template.assigned_user_ids),
                template.created_by,
            ),
        )
        conn.commit()
    return template


def save_group_templates(
    name: str,
    group: DeviceGroup,
    start_time: str,
    end_time: str,
    created_by: str,
    assigned_user_ids: list[str] | None = None,
    db_path: Path | None = None,
) -> list[UsageTemplate]:
    """Create one template per device of a group.

    With more than one device each template is named "<name> - <device>".
    """
    if not group.device_ids:
        raise ValidationError(f"Group {group.name} has no devices")
    devices = get_household_devices(group.household_id, db_path)

    templates = []
    for device_id in group.device_ids:
        device = devices.get(device_id)
        label = device.name if device else device_id
        templates.append(
            save_template(
                UsageTemplate(
                    id="",
                    household_id=group.household_id,
                    name=f"{name} - {label}" if len(group.device_ids) > 1 else name,
                    device_id=device_id,
                    start_time=start_time,
                    end_time=end_time,
                    created_by=created_by,
                    assigned_user_ids=list(assigned_user_ids or []),
                ),
                db_path,
            )
        )
    return templates


def get_template(template_id: str, db_path: Path | None = None) -> UsageTemplate | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            f"SELECT {TEMPLATE_COLUMNS} FROM usage_templates WHERE id = ?", (template_id,)
        ).fetchone()
    return _row_to_template(row) if row else None


def get_templates(household_id: str, db_path: Path | None = None) -> list[UsageTemplate]:
    with get_connection(db_path) as conn:
        rows = conn.execute(
            f"SELECT {TEMPLATE_COLUMNS} FROM usage_templates WHERE household_id = ? ORDER BY name",
            (household_id,),
        ).fetchall()
    return [_row_to_template(row) for row in rows]


def delete_template(template_id: str, db_path: Path | None = None) -> bool:
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM usage_templates WHERE id = ?", (template_id,))
        conn.commit()
    return cursor.rowcount > 0


def session_from_template(
    template: UsageTemplate, usage_date: date | str, created_by: str | None = None
) -> UsageSession:
    return UsageSession(
        device_id=template.device_id,
        usage_date=usage_date,
        start_time=template.start_time,
        end_time=template.end_time,
        household_id=template.household_id,
        created_by=created_by or template.created_by,
        assigned_user_ids=list(template.assigned_user_ids),
    )


def create_log_from_template(
    template_id: str,
    usage_date: date | str,
    created_by: str | None = None,
    db_path: Path | None = None,
    schedules: list[RateSchedule] | None = None,
) -> EnergyLog:
    """Log a template's usage on a date."""
    template = get_template(template_id, db_path)
    if template is None:
        raise ValidationError(f"Template {template_id} not found")

    log = create_log(
        session_from_template(template, usage_date, created_by),
        db_path=db_path,
        schedules=schedules,
        source_type=SOURCE_TYPE,
        source_id=template.id,
    )
    logger.debug("Logged template %s on %s", template.name, log.usage_date)
    return log
