"""
Attendance Reconciliation

Decides whether a scan is a check-in, a check-out, a suppressed duplicate,
or a check-in flagged for an expired membership, and persists the result.
Every decision is re-evaluated from a fresh read of the latest row for
(user, branch). The anti-passback window applies across midnight; only a
visit opened today can be closed, so a visit left open on an earlier day
stays open and the next scan starts a new one.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Callable

from app.config import ANTI_PASSBACK_MINUTES, RENEWAL_REDIRECT_TEMPLATE
from app.errors import InternalError
from app.services import subscriptions

logger = logging.getLogger(__name__)

LOG_CHECKED_IN = "checked_in"
LOG_CHECKED_OUT = "checked_out"
LOG_EXPIRED = "expired"
OPEN_STATUSES = (LOG_CHECKED_IN, LOG_EXPIRED)


class Outcome(str, Enum):
    DUPLICATE = "duplicate"
    CHECKED_OUT = "checked_out"
    CHECKED_IN = "checked_in"
    EXPIRED_CHECKED_IN = "expired"


@dataclass(frozen=True)
class Subject:
    user_type: str
    user_id: int
    name: str
    phone: Optional[str] = None

    @property
    def member_id(self) -> Optional[int]:
        return self.user_id if self.user_type == "member" else None

    @property
    def staff_id(self) -> Optional[int]:
        return self.user_id if self.user_type == "staff" else None


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    wait_minutes: Optional[int] = None
    total_hours: Optional[float] = None


def decide(latest_log: Optional[dict], now: datetime, subscription_status: str,
           window_minutes: int = ANTI_PASSBACK_MINUTES) -> Decision:
    """
    Pure transition function for one scan.

    The anti-passback window is checked before anything else: a scan inside
    it is never a transition, even when it would otherwise be a checkout.
    """
    if latest_log:
        last_time = latest_log.get("check_out_at") or latest_log["check_in_at"]
        elapsed_minutes = (now - last_time).total_seconds() / 60

        if elapsed_minutes < window_minutes:
            return Decision(Outcome.DUPLICATE, wait_minutes=math.ceil(window_minutes - elapsed_minutes))

        opened_today = latest_log["check_in_at"].date() == now.date()
        if opened_today and latest_log["status"] in OPEN_STATUSES and not latest_log.get("check_out_at"):
            hours = (now - latest_log["check_in_at"]).total_seconds() / 3600
            return Decision(Outcome.CHECKED_OUT, total_hours=round(hours, 2))

    if subscriptions.may_check_in_normally(subscription_status):
        return Decision(Outcome.CHECKED_IN)
    return Decision(Outcome.EXPIRED_CHECKED_IN)


def get_latest_log(conn, subject: Subject, branch_id: int, day=None) -> Optional[dict]:
    """Most recent row for (subject, branch), limited to one date when day is given"""
    column = "member_id" if subject.user_type == "member" else "staff_id"
    query = f"""
        SELECT *
        FROM attendance_logs
        WHERE branch_id = %s AND user_type = %s AND {column} = %s
    """
    params = [branch_id, subject.user_type, subject.user_id]
    if day is not None:
        query += " AND date = %s"
        params.append(day)
    query += " ORDER BY check_in_at DESC, id DESC LIMIT 1"

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(query, params)
        return cursor.fetchone()
    finally:
        cursor.close()


def _close_log(conn, log: dict, now: datetime, total_hours: float) -> None:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            UPDATE attendance_logs
            SET check_out_at = %s, total_hours = %s, status = %s, updated_at = %s
            WHERE id = %s
            """,
            (now, total_hours, LOG_CHECKED_OUT, now, log["id"]),
        )
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Error closing attendance log {log['id']}: {e}", exc_info=True)
        raise InternalError("Failed to log attendance", "ATTENDANCE_WRITE_FAILED")
    finally:
        cursor.close()


def _open_log(conn, subject: Subject, branch_id: int, now: datetime, status: str,
              subscription_status: str, fingerprint: Optional[str]) -> int:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            INSERT INTO attendance_logs
            (branch_id, user_type, member_id, staff_id, check_in_at, date,
             device_fingerprint, status, subscription_status, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                branch_id, subject.user_type, subject.member_id, subject.staff_id,
                now, now.date(), fingerprint, status, subscription_status, now, now,
            ),
        )
        log_id = cursor.lastrowid
        conn.commit()
        return log_id
    except Exception as e:
        conn.rollback()
        logger.error(f"Error inserting attendance log: {e}", exc_info=True)
        raise InternalError("Failed to log attendance", "ATTENDANCE_WRITE_FAILED")
    finally:
        cursor.close()


def _get_branch_name(conn, branch_id: int) -> Optional[str]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute("SELECT name FROM branches WHERE id = %s", (branch_id,))
        branch = cursor.fetchone()
        return branch["name"] if branch else None
    finally:
        cursor.close()


def reconcile(conn, subject: Subject, branch_id: int, fingerprint: Optional[str] = None,
              now: Optional[datetime] = None,
              notify: Optional[Callable[[dict], None]] = None) -> dict:
    """
    Process one scan for (subject, branch).

    Args:
        conn: database connection
        subject: who is scanning
        branch_id: where
        fingerprint: device fingerprint stored on a new row, if any
        now: scan time (defaults to the current time)
        notify: receives an alert dict on an expired check-in; failures are swallowed

    Returns:
        Response payload with `status` set to the outcome value
    """
    now = now or datetime.now()
    today = now.date()

    if subject.user_type == "member":
        subscription_status = subscriptions.classify(conn, subject.user_id, today)
    else:
        subscription_status = subscriptions.ACTIVE

    latest = get_latest_log(conn, subject, branch_id)
    decision = decide(latest, now, subscription_status)

    if decision.outcome == Outcome.DUPLICATE:
        return {
            "status": Outcome.DUPLICATE.value,
            "message": f"Please wait {decision.wait_minutes} minutes before scanning again.",
            "wait_minutes": decision.wait_minutes,
            "check_in_at": latest["check_in_at"].isoformat(),
            "name": subject.name,
        }

    if decision.outcome == Outcome.CHECKED_OUT:
        _close_log(conn, latest, now, decision.total_hours)
        logger.info(f"{subject.user_type} {subject.user_id} checked out at branch {branch_id} ({decision.total_hours}h)")
        return {
            "status": Outcome.CHECKED_OUT.value,
            "message": f"Checked out successfully. Total: {decision.total_hours} hours.",
            "check_in_at": latest["check_in_at"].isoformat(),
            "check_out_at": now.isoformat(),
            "total_hours": decision.total_hours,
            "name": subject.name,
            "subscription_status": subscription_status,
            "attendance_id": latest["id"],
        }

    expired = decision.outcome == Outcome.EXPIRED_CHECKED_IN
    log_status = LOG_EXPIRED if expired else LOG_CHECKED_IN
    log_id = _open_log(conn, subject, branch_id, now, log_status, subscription_status, fingerprint)
    logger.info(f"{subject.user_type} {subject.user_id} {log_status} at branch {branch_id}")

    response = {
        "status": decision.outcome.value,
        "message": (
            "Checked in. Your membership has expired. Please renew."
            if expired
            else f"Welcome {subject.name}! Checked in successfully."
        ),
        "check_in_at": now.isoformat(),
        "name": subject.name,
        "subscription_status": subscription_status,
        "attendance_id": log_id,
    }

    if expired:
        response["redirect"] = RENEWAL_REDIRECT_TEMPLATE.format(branch_id=branch_id)
        if notify:
            try:
                notify({
                    "name": subject.name,
                    "phone": subject.phone,
                    "branch_id": branch_id,
                    "branch_name": _get_branch_name(conn, branch_id),
                    "checked_in_at": now,
                })
            except Exception as e:
                logger.warning(f"Failed to dispatch expired check-in alert: {e}")

    return response
