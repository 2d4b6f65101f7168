"""Database connection and schema management."""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "wattshare" / "wattshare.db"

SCHEMA = """
-- Household members
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT,
    household_id TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Appliances whose usage is logged
CREATE TABLE IF NOT EXISTS devices (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    wattage REAL NOT NULL CHECK (wattage > 0),
    is_shared INTEGER NOT NULL DEFAULT 0,
    household_id TEXT NOT NULL,
    created_by TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Usage sessions with their computed time-of-use cost
CREATE TABLE IF NOT EXISTS energy_logs (
    id TEXT PRIMARY KEY,
    household_id TEXT NOT NULL,
    device_id TEXT NOT NULL,
    usage_date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    end_date TEXT,
    created_by TEXT NOT NULL,
    assigned_users TEXT NOT NULL DEFAULT '[]',
    cost_shares TEXT,
    total_kwh REAL,
    calculated_cost REAL,
    rate_breakdown TEXT,
    source_type TEXT NOT NULL DEFAULT 'manual',
    source_id TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (device_id) REFERENCES devices(id)
);

-- Tariff definitions
CREATE TABLE IF NOT EXISTS tariffs (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    valid_from TEXT NOT NULL,
    valid_to TEXT,
    seasons TEXT,
    UNIQUE(name, valid_from)
);

-- Tariff rate bands, in resolution order
CREATE TABLE IF NOT EXISTS tariff_rates (
    id INTEGER PRIMARY KEY,
    tariff_id INTEGER NOT NULL,
    position INTEGER NOT NULL,
    period_id TEXT NOT NULL,
    season TEXT NOT NULL DEFAULT 'all',
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    price_per_kwh REAL NOT NULL,
    days TEXT DEFAULT '*',
    FOREIGN KEY (tariff_id) REFERENCES tariffs(id)
);

-- Repeating usage patterns
CREATE TABLE IF NOT EXISTS recurring_schedules (
    id TEXT PRIMARY KEY,
    household_id TEXT NOT NULL,
    name TEXT NOT NULL,
    device_id TEXT NOT NULL,
    days_of_week TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT,
    assigned_users TEXT NOT NULL DEFAULT '[]',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_by TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Named device and time presets for quick logging
CREATE TABLE IF NOT EXISTS usage_templates (
    id TEXT PRIMARY KEY,
    household_id TEXT NOT NULL,
    name TEXT NOT NULL,
    device_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    assigned_users TEXT NOT NULL DEFAULT '[]',
    created_by TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Named sets of devices used together
CREATE TABLE IF NOT EXISTS device_groups (
    id TEXT PRIMARY KEY,
    household_id TEXT NOT NULL,
    name TEXT NOT NULL,
    device_ids TEXT NOT NULL DEFAULT '[]',
    created_by TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Saved bill allocations
CREATE TABLE IF NOT EXISTS bill_splits (
    id TEXT PRIMARY KEY,
    household_id TEXT NOT NULL,
    period_start TEXT NOT NULL,
    period_end TEXT NOT NULL,
    total_bill_amount REAL NOT NULL,
    user_allocations TEXT NOT NULL,
    created_by TEXT,
    created_at TEXT
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_logs_household_date ON energy_logs(household_id, usage_date);
CREATE INDEX IF NOT EXISTS idx_logs_source ON energy_logs(source_type, source_id, usage_date);
CREATE INDEX IF NOT EXISTS idx_devices_household ON devices(household_id);
CREATE INDEX IF NOT EXISTS idx_users_household ON users(household_id);
"""


def get_db_path() -> Path:
    """Get the database path, creating parent directories if needed."""
    db_path = Path(os.environ.get("WATTSHARE_DB") or DEFAULT_DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


@contextmanager
def get_connection(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Get a database connection with row factory enabled."""
    path = db_path or get_db_path()
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    with get_connection(db_path) as conn:
        conn.executescript(SCHEMA)
        conn.commit()


def get_stats(db_path: Path | None = None) -> dict:
    """Get database statistics."""
    with get_connection(db_path) as conn:
        stats = {}

        # Energy logs
        row = conn.execute(
            """SELECT COUNT(*) as count, MIN(usage_date) as earliest, MAX(usage_date) as latest,
                      SUM(CASE WHEN rate_breakdown IS NULL THEN 1 ELSE 0 END) as uncosted
               FROM energy_logs"""
        ).fetchone()
        stats["energy_logs"] = {
            "count": row["count"],
            "earliest": row["earliest"],
            "latest": row["latest"],
            "uncosted": row["uncosted"] or 0,
        }

        # By source
        rows = conn.execute(
            "SELECT source_type, COUNT(*) as count FROM energy_logs GROUP BY source_type"
        ).fetchall()
        stats["logs_by_source"] = {row["source_type"]: row["count"] for row in rows}

        for table in (
            "users",
            "devices",
            "device_groups",
            "usage_templates",
            "recurring_schedules",
            "bill_splits",
            "tariffs",
        ):
            row = conn.execute(f"SELECT COUNT(*) as count FROM {table}").fetchone()
            stats[table] = {"count": row["count"]}

        return stats
