"""
Attendance logs and insights, scoped to the caller's branches
"""
import logging
from collections import Counter, defaultdict
from datetime import date
from typing import Optional, List

from app.context import AuthContext
from app.services.subscriptions import BLOCKING_STATUSES

logger = logging.getLogger(__name__)


def _scope_filter(auth: AuthContext, branch_id: Optional[int], alias: str = "al"):
    """
    WHERE fragments restricting rows to the requested branch and the caller's scope.
    """
    clauses = []
    params = []

    if branch_id is not None:
        clauses.append(f"{alias}.branch_id = %s")
        params.append(branch_id)

    if auth.branch_ids is not None:
        if not auth.branch_ids:
            clauses.append("1 = 0")
        else:
            placeholders = ", ".join(["%s"] * len(auth.branch_ids))
            clauses.append(f"{alias}.branch_id IN ({placeholders})")
            params.extend(auth.branch_ids)

    return clauses, params


def list_logs(conn, auth: AuthContext, date_from: date, date_to: date,
              branch_id: Optional[int] = None, user_type: Optional[str] = None,
              page: int = 1, limit: int = 50) -> dict:
    """Paginated attendance rows, newest check-in first"""
    where_clauses = ["al.date >= %s", "al.date <= %s"]
    params = [date_from, date_to]

    if user_type:
        where_clauses.append("al.user_type = %s")
        params.append(user_type)

    scope_clauses, scope_params = _scope_filter(auth, branch_id)
    where_clauses.extend(scope_clauses)
    params.extend(scope_params)

    where_sql = " WHERE " + " AND ".join(where_clauses)

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"SELECT COUNT(*) as total FROM attendance_logs al{where_sql}",
            params,
        )
        total = cursor.fetchone()["total"]

        offset = (page - 1) * limit
        cursor.execute(
            f"""
            SELECT al.*, m.name as member_name, m.phone as member_phone,
                   s.full_name as staff_name, s.phone as staff_phone, s.role as staff_role
            FROM attendance_logs al
            LEFT JOIN members m ON al.member_id = m.id
            LEFT JOIN staff s ON al.staff_id = s.id
            {where_sql}
            ORDER BY al.check_in_at DESC, al.id DESC
            LIMIT %s OFFSET %s
            """,
            params + [limit, offset],
        )
        rows = cursor.fetchall()
    finally:
        cursor.close()

    for row in rows:
        if row.get("total_hours") is not None:
            row["total_hours"] = float(row["total_hours"])

    return {
        "data": rows,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }


def fetch_insight_rows(conn, auth: AuthContext, date_from: date, date_to: date,
                       branch_id: Optional[int] = None) -> List[dict]:
    where_clauses = ["al.date >= %s", "al.date <= %s"]
    params = [date_from, date_to]

    scope_clauses, scope_params = _scope_filter(auth, branch_id)
    where_clauses.extend(scope_clauses)
    params.extend(scope_params)

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT al.id, al.user_type, al.member_id, al.staff_id, al.date,
                   al.check_in_at, al.total_hours, al.status, al.subscription_status
            FROM attendance_logs al
            WHERE {" AND ".join(where_clauses)}
            """,
            params,
        )
        return cursor.fetchall()
    finally:
        cursor.close()


def compute_insights(rows: List[dict], date_from: date, date_to: date) -> dict:
    """
    Aggregate footfall, peak hours and durations over a fetched row set.
    """
    member_rows = [r for r in rows if r["user_type"] == "member"]
    staff_rows = [r for r in rows if r["user_type"] == "staff"]

    footfall = Counter(str(r["date"]) for r in member_rows)
    hours = Counter(r["check_in_at"].hour for r in rows)

    completed = [float(r["total_hours"]) for r in member_rows if r.get("total_hours")]
    avg_duration = round(sum(completed) / len(completed), 2) if completed else 0

    staff_hours = defaultdict(float)
    for r in staff_rows:
        if r.get("staff_id") is not None and r.get("total_hours"):
            staff_hours[str(r["staff_id"])] += float(r["total_hours"])

    return {
        "daily_footfall": [{"date": d, "count": c} for d, c in sorted(footfall.items())],
        "peak_hours": [{"hour": h, "count": c} for h, c in sorted(hours.items())],
        "avg_visit_duration": avg_duration,
        "staff_working_hours": {k: round(v, 2) for k, v in staff_hours.items()},
        "unique_members": len({r["member_id"] for r in member_rows}),
        "total_check_ins": len(rows),
        "expired_check_ins": sum(
            1 for r in member_rows if r.get("subscription_status") in BLOCKING_STATUSES
        ),
        "period": {"from": str(date_from), "to": str(date_to)},
    }
