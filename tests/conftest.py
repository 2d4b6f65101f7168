"""Shared fixtures: the bundled tariff config and scratch databases."""

from datetime import date
from pathlib import Path

import pytest
from wattshare.db import init_db
from wattshare.household import add_device, add_user
from wattshare.tariffs import load_tariffs_from_yaml, save_tariffs_to_db

CONFIG_PATH = Path(__file__).parent.parent / "config" / "tariffs.yaml"

HOUSEHOLD = "home-1"

# 2024-07-10 is a Wednesday, 2024-07-13 a Saturday, 2024-01-15 a Monday
SUMMER_WEEKDAY = date(2024, 7, 10)
SUMMER_WEEKEND = date(2024, 7, 13)
WINTER_WEEKDAY = date(2024, 1, 15)


@pytest.fixture
def schedules():
    return load_tariffs_from_yaml(CONFIG_PATH)


@pytest.fixture
def schedule(schedules):
    return schedules[0]


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "test.db"
    init_db(path)
    return path


@pytest.fixture
def household_db(db_path, schedules):
    """Database with tariffs, two members and two devices."""
    save_tariffs_to_db(schedules, db_path)
    add_user("Alice", HOUSEHOLD, user_id="alice", db_path=db_path)
    add_user("Bob", HOUSEHOLD, user_id="bob", db_path=db_path)
    add_device("Heater", 1000, HOUSEHOLD, created_by="alice", device_id="heater", db_path=db_path)
    add_device("Lamp", 150, HOUSEHOLD, created_by="bob", device_id="lamp", db_path=db_path)
    return db_path
