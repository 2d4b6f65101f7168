"""Household members and devices."""

import json
import logging
import uuid
from pathlib import Path

from .db import get_connection
from .models import Device, DeviceGroup, User
from .validation import ValidationError, validate_device_name, validate_name, validate_wattage

logger = logging.getLogger(__name__)


def _row_to_device(row) -> Device:
    return Device(
        id=row["id"],
        name=row["name"],
        wattage=row["wattage"],
        household_id=row["household_id"],
        is_shared=bool(row["is_shared"]),
        created_by=row["created_by"],
    )


def add_user(
    name: str,
    household_id: str,
    email: str | None = None,
    user_id: str | None = None,
    db_path: Path | None = None,
) -> User:
    """Add a member to a household."""
    if not name or not name.strip():
        raise ValidationError("Name is required")
    user = User(id=user_id or str(uuid.uuid4()), name=name.strip(), household_id=household_id, email=email)
    with get_connection(db_path) as conn:
        conn.execute(
            "INSERT INTO users (id, name, email, household_id) VALUES (?, ?, ?, ?)",
            (user.id, user.name, user.email, user.household_id),
        )
        conn.commit()
    return user


def get_household_users(household_id: str, db_path: Path | None = None) -> list[User]:
    with get_connection(db_path) as conn:
        rows = conn.execute(
            "SELECT id, name, email, household_id FROM users WHERE household_id = ? ORDER BY name",
            (household_id,),
        ).fetchall()
    return [
        User(id=row["id"], name=row["name"], household_id=row["household_id"], email=row["email"])
        for row in rows
    ]


def add_device(
    name: str,
    wattage: float,
    household_id: str,
    is_shared: bool = False,
    created_by: str | None = None,
    device_id: str | None = None,
    db_path: Path | None = None,
) -> Device:
    """Register a device for a household."""
    device = Device(
        id=device_id or str(uuid.uuid4()),
        name=validate_device_name(name),
        wattage=validate_wattage(wattage),
        household_id=household_id,
        is_shared=is_shared,
        created_by=created_by,
    )
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO devices (id, name, wattage, is_shared, household_id, created_by)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                device.id,
                device.name,
                device.wattage,
                int(device.is_shared),
                device.household_id,
                device.created_by,
            ),
        )
        conn.commit()
    return device


def get_device(device_id: str, db_path: Path | None = None) -> Device | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT id, name, wattage, is_shared, household_id, created_by
               FROM devices WHERE id = ?""",
            (device_id,),
        ).fetchone()
    return _row_to_device(row) if row else None


def get_household_devices(household_id: str, db_path: Path | None = None) -> dict[str, Device]:
    """All devices of a household keyed by id."""
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT id, name, wattage, is_shared, household_id, created_by
               FROM devices WHERE household_id = ? ORDER BY name""",
            (household_id,),
        ).fetchall()
    return {row["id"]: _row_to_device(row) for row in rows}


def update_device(
    device_id: str,
    name: str | None = None,
    wattage: float | None = None,
    is_shared: bool | None = None,
    db_path: Path | None = None,
) -> Device | None:
    """Update a device. Returns the updated device, or None if not found.

    Changing the wattage does not touch existing logs; run
    logs.recalculate_logs to reprice them.
    """
    device = get_device(device_id, db_path)
    if device is None:
        return None

    if name is not None:
        device.name = validate_device_name(name)
    if wattage is not None:
        device.wattage = validate_wattage(wattage)
        logger.info("Wattage of %s changed; existing logs keep their old cost", device.name)
    if is_shared is not None:
        device.is_shared = is_shared

    with get_connection(db_path) as conn:
        conn.execute(
            "UPDATE devices SET name = ?, wattage = ?, is_shared = ? WHERE id = ?",
            (device.name, device.wattage, int(device.is_shared), device.id),
        )
        conn.commit()
    return device


def delete_device(device_id: str, delete_logs: bool = False, db_path: Path | None = None) -> bool:
    """Remove a device. Returns False if it did not exist.

    Devices with logged usage are only removed together with their logs.
    Templates for the device go too, and it is dropped from any group.
    """
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT COUNT(*) as count FROM energy_logs WHERE device_id = ?", (device_id,)
        ).fetchone()
        if row["count"] and not delete_logs:
            raise ValidationError(
                f"Device has {row['count']} energy log(s); delete them too or keep the device"
            )
        conn.execute("DELETE FROM energy_logs WHERE device_id = ?", (device_id,))
        conn.execute("DELETE FROM usage_templates WHERE device_id = ?", (device_id,))
        for group in conn.execute("SELECT id, device_ids FROM device_groups").fetchall():
            members = json.loads(group["device_ids"] or "[]")
            if device_id in members:
                members.remove(device_id)
                conn.execute(
                    "UPDATE device_groups SET device_ids = ? WHERE id = ?", (json.dumps(members), group["id"])
                )
        cursor = conn.execute("DELETE FROM devices WHERE id = ?", (device_id,))
        conn.commit()
    return cursor.rowcount > 0


def _row_to_group(row) -> DeviceGroup:
    return DeviceGroup(
        id=row["id"],
        name=row["name"],
        household_id=row["household_id"],
        device_ids=json.loads(row["device_ids"] or "[]"),
        created_by=row["created_by"],
    )


def add_device_group(
    name: str,
    device_ids: list[str],
    household_id: str,
    created_by: str | None = None,
    group_id: str | None = None,
    db_path: Path | None = None,
) -> DeviceGroup:
    """Save a named set of household devices used together."""
    device_ids = list(dict.fromkeys(device_ids))
    if not device_ids:
        raise ValidationError("Please select at least one device")

    devices = get_household_devices(household_id, db_path)
    unknown = [d for d in device_ids if d not in devices]
    if unknown:
        raise ValidationError(f"Device(s) not found in household: {', '.join(unknown)}")

    group = DeviceGroup(
        id=group_id or str(uuid.uuid4()),
        name=validate_name(name, "Group name"),
        household_id=household_id,
        device_ids=device_ids,
        created_by=created_by,
    )
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO device_groups (id, household_id, name, device_ids, created_by)
               VALUES (?, ?, ?, ?, ?)""",
            (group.id, group.household_id, group.name, json.dumps(group.device_ids), group.created_by),
        )
        conn.commit()
    return group


def get_device_group(group_id: str, db_path: Path | None = None) -> DeviceGroup | None:
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT id, name, household_id, device_ids, created_by FROM device_groups WHERE id = ?",
            (group_id,),
        ).fetchone()
    return _row_to_group(row) if row else None


def get_device_groups(household_id: str, db_path: Path | None = None) -> list[DeviceGroup]:
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT id, name, household_id, device_ids, created_by
               FROM device_groups WHERE household_id = ? ORDER BY name""",
            (household_id,),
        ).fetchall()
    return [_row_to_group(row) for row in rows]


def delete_device_group(group_id: str, db_path: Path | None = None) -> bool:
    """Remove a group. Its devices and their logs are untouched."""
    with get_connection(db_path) as conn:
        cursor = conn.execute("DELETE FROM device_groups WHERE id = ?", (group_id,))
        conn.commit()
    return cursor.rowcount > 0
