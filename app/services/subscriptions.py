"""
Subscription Status Classifier

The stored subscriptions.status column is a cache; date comparison is the
ground truth, except for an explicit 'inactive' which always wins.
"""
import logging
from datetime import date, timedelta
from typing import Optional

from app.config import EXPIRING_SOON_DAYS

logger = logging.getLogger(__name__)

ACTIVE = "active"
EXPIRING_SOON = "expiring_soon"
EXPIRED = "expired"
NO_SUBSCRIPTION = "no_subscription"
INACTIVE = "inactive"

# Statuses that must be flagged instead of checked in normally
BLOCKING_STATUSES = (EXPIRED, NO_SUBSCRIPTION)


def _as_date(value) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if hasattr(value, "date") and callable(value.date):
        return value.date()
    return value


def classify_subscription(subscription: Optional[dict], as_of: date,
                          expiring_soon_days: int = EXPIRING_SOON_DAYS) -> str:
    """
    Classify the authoritative subscription row.

    Args:
        subscription: row with `status` and `end_date`, or None
        as_of: the day to classify for

    Returns:
        one of active, expiring_soon, expired, no_subscription
    """
    if not subscription:
        return NO_SUBSCRIPTION

    # An explicit inactive is authoritative regardless of dates
    if subscription.get("status") == INACTIVE:
        return EXPIRED

    end_date = _as_date(subscription["end_date"])
    if end_date < as_of:
        return EXPIRED
    if (end_date - as_of).days <= expiring_soon_days:
        return EXPIRING_SOON
    return ACTIVE


def may_check_in_normally(subscription_status: str) -> bool:
    return subscription_status not in BLOCKING_STATUSES


def get_latest_subscription(conn, member_id: int) -> Optional[dict]:
    """Subscription row with the latest end_date, or None"""
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT id, member_id, start_date, end_date, status
            FROM subscriptions
            WHERE member_id = %s
            ORDER BY end_date DESC, id DESC
            LIMIT 1
            """,
            (member_id,),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def classify(conn, member_id: int, as_of: Optional[date] = None) -> str:
    as_of = as_of or date.today()
    return classify_subscription(get_latest_subscription(conn, member_id), as_of)


def refresh_statuses(conn, today: Optional[date] = None) -> int:
    """
    Recompute the cached status column from dates.
    Rows marked inactive are left alone.

    Returns:
        Number of rows updated
    """
    today = today or date.today()
    soon = today + timedelta(days=EXPIRING_SOON_DAYS)
    cursor = conn.cursor(dictionary=True)
    try:
        updated = 0
        cursor.execute(
            """
            UPDATE subscriptions SET status = %s
            WHERE status NOT IN (%s, %s) AND end_date < %s
            """,
            (EXPIRED, INACTIVE, EXPIRED, today),
        )
        updated += cursor.rowcount
        cursor.execute(
            """
            UPDATE subscriptions SET status = %s
            WHERE status NOT IN (%s, %s) AND end_date >= %s AND end_date <= %s
            """,
            (EXPIRING_SOON, INACTIVE, EXPIRING_SOON, today, soon),
        )
        updated += cursor.rowcount
        cursor.execute(
            """
            UPDATE subscriptions SET status = %s
            WHERE status NOT IN (%s, %s) AND end_date > %s
            """,
            (ACTIVE, INACTIVE, ACTIVE, soon),
        )
        updated += cursor.rowcount
        conn.commit()
        return updated
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()
