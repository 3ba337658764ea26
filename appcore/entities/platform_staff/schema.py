from __future__ import annotations

from appcore.core.db.sqlite import SQLiteStore

TABLE = "app_platform_staff"
USERS_TABLE = "app_users"

DEPARTMENTS = ("IT", "Finance", "HR", "Marketing", "Operations", "Sales", "Support", "Management")

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {USERS_TABLE} (
    id INTEGER PRIMARY KEY,
    user_login TEXT NOT NULL UNIQUE,
    user_email TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS {TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL UNIQUE,
    employee_id TEXT NOT NULL UNIQUE,
    full_name TEXT NOT NULL,
    department TEXT NULL,
    hire_date TEXT NULL,
    phone TEXT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_{TABLE}_department ON {TABLE} (department);
CREATE INDEX IF NOT EXISTS idx_{TABLE}_status ON {TABLE} (status);
"""


def install(db: SQLiteStore) -> None:
    db.executescript(SCHEMA)
