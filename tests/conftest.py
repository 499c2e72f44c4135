"""
Shared fixtures: an in-memory SQLite store that speaks the same
cursor(dictionary=True) / %s-placeholder dialect as app.db.ConnectionWrapper.
"""
import sqlite3
from datetime import date, datetime, timedelta

import pytest

from config import (
    TEST_STAFF, TEST_ANALYST, TEST_ADMIN, TEST_SUPERADMIN,
    ACTIVE_MEMBER, EXPIRED_MEMBER, NO_SUB_MEMBER, INACTIVE_MEMBER, SOON_MEMBER,
    TRAINER, INACTIVE_TRAINER_ID,
)

sqlite3.register_adapter(date, lambda d: d.isoformat())
sqlite3.register_adapter(datetime, lambda d: d.isoformat(sep=" "))
sqlite3.register_converter("DATE", lambda b: date.fromisoformat(b.decode()))
sqlite3.register_converter("DATETIME", lambda b: datetime.fromisoformat(b.decode()))

# Mirrors database/schema.sql; the partial unique index stands in for the
# generated active_owner column
SCHEMA = """
CREATE TABLE tenants (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL);
CREATE TABLE branches (
    id INTEGER PRIMARY KEY AUTOINCREMENT, tenant_id INTEGER, name TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE tenant_members (
    id INTEGER PRIMARY KEY AUTOINCREMENT, tenant_id INTEGER NOT NULL, user_id TEXT NOT NULL
);
CREATE TABLE user_roles (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id TEXT NOT NULL, role TEXT NOT NULL);
CREATE TABLE staff (
    id INTEGER PRIMARY KEY AUTOINCREMENT, auth_user_id TEXT, full_name TEXT NOT NULL,
    phone TEXT, role TEXT NOT NULL DEFAULT 'trainer', is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE staff_branch_assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT, staff_id INTEGER NOT NULL, branch_id INTEGER NOT NULL,
    is_primary INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE staff_permissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT, staff_id INTEGER NOT NULL UNIQUE,
    can_view_members INTEGER NOT NULL DEFAULT 0, can_manage_members INTEGER NOT NULL DEFAULT 0,
    can_access_ledger INTEGER NOT NULL DEFAULT 0, can_access_payments INTEGER NOT NULL DEFAULT 0,
    can_access_analytics INTEGER NOT NULL DEFAULT 0, can_change_settings INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE members (
    id INTEGER PRIMARY KEY AUTOINCREMENT, branch_id INTEGER NOT NULL, name TEXT NOT NULL,
    phone TEXT NOT NULL, UNIQUE (phone, branch_id)
);
CREATE TABLE subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT, member_id INTEGER NOT NULL,
    start_date DATE NOT NULL, end_date DATE NOT NULL, status TEXT NOT NULL DEFAULT 'active'
);
CREATE TABLE personal_trainers (
    id INTEGER PRIMARY KEY AUTOINCREMENT, branch_id INTEGER, name TEXT NOT NULL,
    specialization TEXT, monthly_fee REAL NOT NULL, is_active INTEGER NOT NULL DEFAULT 1
);
CREATE TABLE pt_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT, member_id INTEGER NOT NULL,
    personal_trainer_id INTEGER NOT NULL, start_date DATE NOT NULL, end_date DATE NOT NULL,
    status TEXT NOT NULL DEFAULT 'active'
);
CREATE TABLE attendance_devices (
    id INTEGER PRIMARY KEY AUTOINCREMENT, user_type TEXT NOT NULL, member_id INTEGER,
    staff_id INTEGER, branch_id INTEGER NOT NULL, device_fingerprint TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1, registered_at DATETIME NOT NULL,
    reset_at DATETIME, reset_by TEXT, created_at DATETIME, updated_at DATETIME
);
CREATE UNIQUE INDEX uq_attendance_devices_active ON attendance_devices
    (user_type, COALESCE(member_id, 0), COALESCE(staff_id, 0), branch_id) WHERE is_active = 1;
CREATE TABLE attendance_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT, branch_id INTEGER NOT NULL, user_type TEXT NOT NULL,
    member_id INTEGER, staff_id INTEGER, date DATE NOT NULL, check_in_at DATETIME NOT NULL,
    check_out_at DATETIME, total_hours REAL, status TEXT NOT NULL, subscription_status TEXT,
    device_fingerprint TEXT, created_at DATETIME, updated_at DATETIME
);
"""


class SQLiteCursor:
    def __init__(self, conn):
        self._cursor = conn.cursor()

    def execute(self, sql, params=()):
        self._cursor.execute(sql.replace("%s", "?"), tuple(params))

    def fetchone(self):
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetchall(self):
        return [dict(row) for row in self._cursor.fetchall()]

    @property
    def rowcount(self):
        return self._cursor.rowcount

    @property
    def lastrowid(self):
        return self._cursor.lastrowid

    def close(self):
        self._cursor.close()


class SQLiteConnection:
    """Stays open across requests; the routers' close() is a no-op"""

    IntegrityError = sqlite3.IntegrityError

    def __init__(self):
        self._conn = sqlite3.connect(
            ":memory:",
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row

    def cursor(self, dictionary=False):
        return SQLiteCursor(self._conn)

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        pass

    def executescript(self, script):
        self._conn.executescript(script)

    def shutdown(self):
        self._conn.close()


def seed(db, today: date):
    cursor = db.cursor()
    rows = [
        ("INSERT INTO tenants (id, name) VALUES (%s, %s)", [(1, "Iron House"), (2, "Rival Gym")]),
        (
            "INSERT INTO branches (id, tenant_id, name, is_active) VALUES (%s, %s, %s, %s)",
            [(1, 1, "Downtown", 1), (2, 1, "Uptown", 1), (3, 2, "Elsewhere", 1)],
        ),
        ("INSERT INTO tenant_members (tenant_id, user_id) VALUES (%s, %s)", [(1, TEST_ADMIN["auth_user_id"])]),
        (
            "INSERT INTO user_roles (user_id, role) VALUES (%s, %s)",
            [(TEST_ADMIN["auth_user_id"], "admin"), (TEST_SUPERADMIN["auth_user_id"], "super_admin")],
        ),
        (
            "INSERT INTO staff (id, auth_user_id, full_name, phone, role, is_active) VALUES (%s, %s, %s, %s, %s, %s)",
            [
                (TEST_STAFF["staff_id"], TEST_STAFF["auth_user_id"], TEST_STAFF["name"], TEST_STAFF["phone"], "trainer", 1),
                (TEST_ANALYST["staff_id"], TEST_ANALYST["auth_user_id"], TEST_ANALYST["name"], TEST_ANALYST["phone"], "manager", 1),
                (3, "retired-user", "Rex Retired", "9876500003", "trainer", 0),
            ],
        ),
        (
            "INSERT INTO staff_branch_assignments (staff_id, branch_id, is_primary) VALUES (%s, %s, %s)",
            [(1, 1, 1), (2, 1, 1), (2, 2, 0)],
        ),
        (
            "INSERT INTO staff_permissions (staff_id, can_view_members, can_access_analytics) VALUES (%s, %s, %s)",
            [(1, 1, 0), (2, 1, 1)],
        ),
        (
            "INSERT INTO members (id, branch_id, name, phone) VALUES (%s, %s, %s, %s)",
            [
                (m["id"], 1, m["name"], m["phone"])
                for m in (ACTIVE_MEMBER, EXPIRED_MEMBER, NO_SUB_MEMBER, INACTIVE_MEMBER, SOON_MEMBER)
            ],
        ),
        (
            "INSERT INTO subscriptions (member_id, start_date, end_date, status) VALUES (%s, %s, %s, %s)",
            [
                (ACTIVE_MEMBER["id"], today - timedelta(days=400), today - timedelta(days=35), "expired"),
                (ACTIVE_MEMBER["id"], today - timedelta(days=30), today + timedelta(days=60), "active"),
                (EXPIRED_MEMBER["id"], today - timedelta(days=95), today - timedelta(days=5), "active"),
                (INACTIVE_MEMBER["id"], today - timedelta(days=10), today + timedelta(days=80), "inactive"),
                (SOON_MEMBER["id"], today - timedelta(days=25), today + timedelta(days=5), "active"),
            ],
        ),
        (
            "INSERT INTO personal_trainers (id, branch_id, name, monthly_fee, is_active) VALUES (%s, %s, %s, %s, %s)",
            [
                (TRAINER["id"], 1, TRAINER["name"], TRAINER["monthly_fee"], 1),
                (INACTIVE_TRAINER_ID, 1, "Gone Trainer", 2500, 0),
            ],
        ),
    ]
    for sql, values in rows:
        for params in values:
            cursor.execute(sql, params)
    cursor.close()
    db.commit()


@pytest.fixture
def today():
    return date.today()


@pytest.fixture
def db(today):
    conn = SQLiteConnection()
    conn.executescript(SCHEMA)
    seed(conn, today)
    yield conn
    conn.shutdown()


@pytest.fixture
def alerts(monkeypatch):
    """Captures expired check-in alerts instead of queueing scheduler jobs"""
    sent = []
    monkeypatch.setattr("app.routers.checkin.dispatch_expired_checkin_alert", sent.append)
    return sent


@pytest.fixture
def fastapi_app(db, alerts, monkeypatch):
    from main import app

    for target in (
        "app.routers.checkin.get_db_connection",
        "app.routers.pt.get_db_connection",
        "app.tasks.subscription_jobs.get_db_connection",
    ):
        monkeypatch.setattr(target, lambda: db)
    return app


@pytest.fixture
def client(fastapi_app):
    from utils import APIClient

    return APIClient(fastapi_app)
