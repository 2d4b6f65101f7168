"""Tests for CSV export and JSON backups."""

import csv
import json
from datetime import date

import pytest
from wattshare.backup import BACKUP_VERSION, export_backup, export_logs_csv, import_backup, validate_backup
from wattshare.db import init_db
from wattshare.household import get_household_devices
from wattshare.logs import create_bulk_log, create_log, get_logs_for_period
from wattshare.models import UsageSession

from conftest import HOUSEHOLD, SUMMER_WEEKDAY


@pytest.fixture
def logged_db(household_db):
    create_log(
        UsageSession("heater", SUMMER_WEEKDAY, "20:00", "22:00", HOUSEHOLD, "alice", ["alice", "bob"]),
        household_db,
    )
    create_log(UsageSession("lamp", date(2024, 7, 11), "16:00", "21:00", HOUSEHOLD, "bob"), household_db)
    return household_db


def test_export_logs_csv(logged_db, tmp_path):
    path = tmp_path / "logs.csv"
    logs = get_logs_for_period(HOUSEHOLD, db_path=logged_db)
    assert export_logs_csv(logs, path, get_household_devices(HOUSEHOLD, logged_db)) == 2

    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["device"] == "Heater"
    assert rows[0]["cost"] == "0.80"
    assert rows[0]["assigned_users"] == "alice;bob"
    assert rows[1]["total_kwh"] == "0.750"


def test_backup_restores_into_empty_db(logged_db, tmp_path):
    data = json.loads(json.dumps(export_backup(HOUSEHOLD, logged_db)))
    assert data["version"] == BACKUP_VERSION
    assert validate_backup(data) == []

    restored = tmp_path / "restored.db"
    init_db(restored)
    result = import_backup(data, restored)
    assert result == {"devices_imported": 2, "devices_skipped": 0, "logs_imported": 2, "logs_skipped": 0}

    original = get_logs_for_period(HOUSEHOLD, db_path=logged_db)
    copied = get_logs_for_period(HOUSEHOLD, db_path=restored)
    assert [log.id for log in copied] == [log.id for log in original]
    assert copied[0].rate_breakdown == original[0].rate_breakdown
    assert copied[0].assigned_user_ids == ["alice", "bob"]


def test_import_skips_existing_records(logged_db):
    data = export_backup(HOUSEHOLD, logged_db)
    result = import_backup(data, logged_db)
    assert result == {"devices_imported": 0, "devices_skipped": 2, "logs_imported": 0, "logs_skipped": 2}


def test_validate_backup():
    assert validate_backup([]) == ["Backup must be a JSON object"]

    errors = validate_backup(
        {
            "version": 99,
            "devices": [{"id": "d1", "name": "Heater", "wattage": 0}],
            "energy_logs": [{"id": "l1"}],
        }
    )
    assert "Unsupported backup version: 99" in errors
    assert "Device 0: missing household_id" in errors
    assert "Device 0: wattage must be greater than 0" in errors
    assert "Log 0: missing device_id" in errors


def test_import_rejects_invalid_backup(db_path):
    with pytest.raises(ValueError, match="Invalid backup"):
        import_backup({"version": BACKUP_VERSION}, db_path)


def test_bad_log_date_leaves_restore_unapplied(logged_db, tmp_path):
    data = export_backup(HOUSEHOLD, logged_db)
    data["energy_logs"][1]["usage_date"] = "2024-13-01"
    assert validate_backup(data) == ["Log 1: invalid usage_date '2024-13-01'"]

    restored = tmp_path / "restored.db"
    init_db(restored)
    with pytest.raises(ValueError, match="invalid usage_date"):
        import_backup(data, restored)
    assert get_household_devices(HOUSEHOLD, restored) == {}
    assert get_logs_for_period(HOUSEHOLD, db_path=restored) == []


def test_import_restores_bulk_entries(household_db, tmp_path):
    create_bulk_log(
        "heater", HOUSEHOLD, "alice", 40, "offPeak", date(2024, 7, 1), date(2024, 7, 31), db_path=household_db
    )
    restored = tmp_path / "restored.db"
    init_db(restored)
    import_backup(export_backup(HOUSEHOLD, household_db), restored)

    [log] = get_logs_for_period(HOUSEHOLD, db_path=restored)
    assert log.source_type == "bulk"
    assert log.end_date == date(2024, 7, 31)
    assert log.rate_breakdown["offPeak"].cost == pytest.approx(10.0)
