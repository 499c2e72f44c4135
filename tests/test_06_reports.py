"""
Test Case 06: Attendance Logs & Insights
- Branch-scoped paginated logs
- Filters, defaults and validation
- In-memory insight aggregation
"""
from datetime import date, datetime, time, timedelta

import pytest

from app.services.attendance import reconcile, Subject
from app.services.attendance_reports import compute_insights

from config import (
    TEST_STAFF, TEST_ANALYST, TEST_ADMIN, TEST_SUPERADMIN, ACTIVE_MEMBER, EXPIRED_MEMBER,
    BRANCH_ID, SECOND_BRANCH_ID, FOREIGN_BRANCH_ID,
)
from utils import error_code


@pytest.fixture
def visits(db, today):
    """
    Yesterday at branch 1: a completed member visit, an expired member visit
    and a completed staff shift. Today: one open visit each at branches 2 and 3.
    """
    yesterday = today - timedelta(days=1)
    member = Subject("member", ACTIVE_MEMBER["id"], ACTIVE_MEMBER["name"], ACTIVE_MEMBER["phone"])
    expired = Subject("member", EXPIRED_MEMBER["id"], EXPIRED_MEMBER["name"], EXPIRED_MEMBER["phone"])
    staff = Subject("staff", TEST_STAFF["staff_id"], TEST_STAFF["name"])

    def at(day, hour, minute=0):
        return datetime.combine(day, time(hour, minute))

    reconcile(db, staff, BRANCH_ID, now=at(yesterday, 8))
    reconcile(db, member, BRANCH_ID, now=at(yesterday, 9))
    reconcile(db, member, BRANCH_ID, now=at(yesterday, 10, 30))
    reconcile(db, staff, BRANCH_ID, now=at(yesterday, 16))
    reconcile(db, expired, BRANCH_ID, now=at(yesterday, 18))
    reconcile(db, member, SECOND_BRANCH_ID, now=at(today, 7))
    reconcile(db, member, FOREIGN_BRANCH_ID, now=at(today, 7, 30))
    return {"from": yesterday.isoformat(), "to": today.isoformat()}


# ===== Insight aggregation =====

def test_compute_insights():
    day1, day2 = date(2025, 3, 1), date(2025, 3, 2)
    rows = [
        {"user_type": "member", "member_id": 1, "staff_id": None, "date": day1,
         "check_in_at": datetime(2025, 3, 1, 7, 5), "total_hours": 1.25, "status": "checked_out",
         "subscription_status": "active"},
        {"user_type": "member", "member_id": 1, "staff_id": None, "date": day2,
         "check_in_at": datetime(2025, 3, 2, 7, 40), "total_hours": 1.75, "status": "checked_out",
         "subscription_status": "expiring_soon"},
        {"user_type": "member", "member_id": 2, "staff_id": None, "date": day2,
         "check_in_at": datetime(2025, 3, 2, 19, 0), "total_hours": None, "status": "expired",
         "subscription_status": "no_subscription"},
        {"user_type": "staff", "member_id": None, "staff_id": 7, "date": day1,
         "check_in_at": datetime(2025, 3, 1, 6, 0), "total_hours": 8.5, "status": "checked_out",
         "subscription_status": "active"},
        {"user_type": "staff", "member_id": None, "staff_id": 7, "date": day2,
         "check_in_at": datetime(2025, 3, 2, 6, 0), "total_hours": 4.25, "status": "checked_out",
         "subscription_status": "active"},
    ]

    insights = compute_insights(rows, day1, day2)

    assert insights["daily_footfall"] == [{"date": "2025-03-01", "count": 1}, {"date": "2025-03-02", "count": 2}]
    assert insights["peak_hours"] == [{"hour": 6, "count": 2}, {"hour": 7, "count": 2}, {"hour": 19, "count": 1}]
    assert insights["avg_visit_duration"] == 1.5
    assert insights["staff_working_hours"] == {"7": 12.75}
    assert insights["unique_members"] == 2
    assert insights["total_check_ins"] == 5
    assert insights["expired_check_ins"] == 1
    assert insights["period"] == {"from": "2025-03-01", "to": "2025-03-02"}


def test_compute_insights_empty():
    insights = compute_insights([], date(2025, 3, 1), date(2025, 3, 1))
    assert insights["avg_visit_duration"] == 0
    assert insights["daily_footfall"] == []
    assert insights["total_check_ins"] == 0


# ===== Logs endpoint =====

def test_staff_logs_limited_to_assigned_branch(client, visits):
    client.login_as(TEST_STAFF["auth_user_id"])
    response = client.check_in_get("attendance-logs", date_from=visits["from"], date_to=visits["to"])

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert {row["branch_id"] for row in data["data"]} == {BRANCH_ID}
    assert [row["member_name"] or row["staff_name"] for row in data["data"]] == [
        EXPIRED_MEMBER["name"], ACTIVE_MEMBER["name"], TEST_STAFF["name"],
    ]


def test_log_rows_carry_visit_details(client, visits):
    client.login_as(TEST_STAFF["auth_user_id"])
    rows = client.check_in_get("attendance-logs", date_from=visits["from"], date_to=visits["to"]).json()["data"]

    by_name = {row["member_name"] or row["staff_name"]: row for row in rows}
    assert by_name[ACTIVE_MEMBER["name"]]["total_hours"] == 1.5
    assert by_name[ACTIVE_MEMBER["name"]]["member_phone"] == ACTIVE_MEMBER["phone"]
    assert by_name[TEST_STAFF["name"]]["staff_role"] == "trainer"
    assert by_name[TEST_STAFF["name"]]["total_hours"] == 8.0
    assert by_name[EXPIRED_MEMBER["name"]]["status"] == "expired"


def test_admin_logs_scoped_to_tenant(client, visits):
    client.login_as(TEST_ADMIN["auth_user_id"])
    data = client.check_in_get("attendance-logs", date_from=visits["from"], date_to=visits["to"]).json()
    assert data["total"] == 4

    data = client.check_in_get(
        "attendance-logs", date_from=visits["from"], date_to=visits["to"], branch_id=SECOND_BRANCH_ID,
    ).json()
    assert data["total"] == 1

    client.login_as(TEST_SUPERADMIN["auth_user_id"])
    data = client.check_in_get("attendance-logs", date_from=visits["from"], date_to=visits["to"]).json()
    assert data["total"] == 5


def test_logs_filter_by_user_type(client, visits):
    client.login_as(TEST_STAFF["auth_user_id"])
    data = client.check_in_get(
        "attendance-logs", date_from=visits["from"], date_to=visits["to"], user_type="staff",
    ).json()

    assert data["total"] == 1
    assert data["data"][0]["staff_name"] == TEST_STAFF["name"]


def test_logs_pagination(client, visits):
    client.login_as(TEST_STAFF["auth_user_id"])
    data = client.check_in_get(
        "attendance-logs", date_from=visits["from"], date_to=visits["to"], page=2, limit=2,
    ).json()

    assert data["page"] == 2
    assert data["limit"] == 2
    assert data["total_pages"] == 2
    assert len(data["data"]) == 1

    data = client.check_in_get("attendance-logs", date_from=visits["from"], limit=1000).json()
    assert data["limit"] == 200


def test_logs_default_to_today(client, visits):
    client.login_as(TEST_ADMIN["auth_user_id"])
    data = client.check_in_get("attendance-logs").json()

    assert data["total"] == 1
    assert data["data"][0]["branch_id"] == SECOND_BRANCH_ID


@pytest.mark.parametrize("params, code", [
    ({"date_from": "2025-03-10", "date_to": "2025-03-01"}, "INVALID_DATE_RANGE"),
    ({"date_from": "yesterday"}, "INVALID_DATE"),
    ({"user_type": "visitor"}, "INVALID_USER_TYPE"),
    ({"page": 0}, "VALIDATION_ERROR"),
])
def test_logs_validation(client, params, code):
    client.login_as(TEST_ADMIN["auth_user_id"])
    response = client.check_in_get("attendance-logs", **params)

    assert response.status_code == 400
    assert error_code(response) == code


def test_logs_access(client):
    response = client.check_in_get("attendance-logs")
    assert response.status_code == 401

    client.login_as(TEST_STAFF["auth_user_id"])
    response = client.check_in_get("attendance-logs", branch_id=SECOND_BRANCH_ID)
    assert response.status_code == 403


# ===== Insights endpoint =====

def test_insights_require_analytics_capability(client, visits):
    client.login_as(TEST_STAFF["auth_user_id"])
    response = client.check_in_get("attendance-insights")

    assert response.status_code == 403
    assert error_code(response) == "PERMISSION_DENIED"


def test_insights_for_analyst(client, visits, today):
    client.login_as(TEST_ANALYST["auth_user_id"])
    response = client.check_in_get("attendance-insights")

    assert response.status_code == 200
    data = response.json()
    assert data["total_check_ins"] == 4
    assert data["unique_members"] == 2
    assert data["expired_check_ins"] == 1
    assert data["avg_visit_duration"] == 1.5
    assert data["staff_working_hours"] == {str(TEST_STAFF["staff_id"]): 8.0}
    assert data["daily_footfall"] == [
        {"date": visits["from"], "count": 2},
        {"date": visits["to"], "count": 1},
    ]
    assert [p["hour"] for p in data["peak_hours"]] == [7, 8, 9, 18]
    assert data["period"] == {"from": (today - timedelta(days=30)).isoformat(), "to": today.isoformat()}


def test_insights_for_one_branch(client, visits):
    client.login_as(TEST_ADMIN["auth_user_id"])
    data = client.check_in_get("attendance-insights", branch_id=BRANCH_ID).json()
    assert data["total_check_ins"] == 3
