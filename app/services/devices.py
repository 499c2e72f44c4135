"""
Device Binding Ledger

At most one active binding per (user, branch). A reset deactivates the
binding but keeps the row for audit; the next bind inserts a fresh row.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Optional

from app.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

USER_TYPES = ("member", "staff")


class BindResult(str, Enum):
    OK = "ok"
    CONFLICT = "conflict"


def _owner_column(user_type: str) -> str:
    if user_type == "member":
        return "member_id"
    if user_type == "staff":
        return "staff_id"
    raise ValidationFailed("user_type must be 'member' or 'staff'", "INVALID_USER_TYPE")


def get_active_binding(conn, user_type: str, user_id: int, branch_id: int) -> Optional[dict]:
    column = _owner_column(user_type)
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            SELECT id, user_type, member_id, staff_id, branch_id, device_fingerprint, registered_at
            FROM attendance_devices
            WHERE user_type = %s AND {column} = %s AND branch_id = %s AND is_active = 1
            ORDER BY id DESC
            LIMIT 1
            """,
            (user_type, user_id, branch_id),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def get_binding(conn, device_id: int) -> Optional[dict]:
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT id, user_type, member_id, staff_id, branch_id, device_fingerprint,
                   is_active, reset_at, reset_by
            FROM attendance_devices
            WHERE id = %s
            """,
            (device_id,),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def _insert_binding(cursor, user_type: str, user_id: int, branch_id: int,
                    fingerprint: str, now: datetime) -> int:
    column = _owner_column(user_type)
    cursor.execute(
        f"""
        INSERT INTO attendance_devices
        (user_type, {column}, branch_id, device_fingerprint, is_active, registered_at, created_at, updated_at)
        VALUES (%s, %s, %s, %s, 1, %s, %s, %s)
        """,
        (user_type, user_id, branch_id, fingerprint, now, now, now),
    )
    return cursor.lastrowid


def bind(conn, user_type: str, user_id: int, branch_id: int, fingerprint: str,
         now: Optional[datetime] = None) -> BindResult:
    """
    Bind a device to a user at a branch.

    Returns:
        BindResult.OK when the binding was created or already matches,
        BindResult.CONFLICT when another device holds the active binding.
    """
    if not fingerprint:
        raise ValidationFailed("device_fingerprint is required", "DEVICE_FINGERPRINT_REQUIRED")

    now = now or datetime.now()

    existing = get_active_binding(conn, user_type, user_id, branch_id)
    if existing:
        if existing["device_fingerprint"] == fingerprint:
            return BindResult.OK
        logger.info(f"Device conflict for {user_type} {user_id} at branch {branch_id}")
        return BindResult.CONFLICT

    cursor = conn.cursor(dictionary=True)
    try:
        _insert_binding(cursor, user_type, user_id, branch_id, fingerprint, now)
        conn.commit()
        logger.info(f"Device registered for {user_type} {user_id} at branch {branch_id}")
        return BindResult.OK
    except conn.IntegrityError:
        # Lost a race with a concurrent first registration; the winner decides
        conn.rollback()
        logger.warning(f"Concurrent device registration for {user_type} {user_id} at branch {branch_id}")
    finally:
        cursor.close()

    winner = get_active_binding(conn, user_type, user_id, branch_id)
    if winner and winner["device_fingerprint"] == fingerprint:
        return BindResult.OK
    return BindResult.CONFLICT


def find_member_by_session_token(conn, session_token: str, branch_id: int) -> Optional[dict]:
    """Active member binding whose fingerprint equals the kiosk session token"""
    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            """
            SELECT id, member_id, branch_id, device_fingerprint
            FROM attendance_devices
            WHERE device_fingerprint = %s AND branch_id = %s
              AND user_type = 'member' AND is_active = 1
            ORDER BY id DESC
            LIMIT 1
            """,
            (session_token, branch_id),
        )
        return cursor.fetchone()
    finally:
        cursor.close()


def _deactivate(cursor, device_id: int, actor_id: str, now: datetime) -> int:
    cursor.execute(
        """
        UPDATE attendance_devices
        SET is_active = 0, reset_at = %s, reset_by = %s, updated_at = %s
        WHERE id = %s AND is_active = 1
        """,
        (now, actor_id, now, device_id),
    )
    return cursor.rowcount


def register_device(conn, user_type: str, user_id: int, branch_id: int, fingerprint: str,
                    actor_id: str, now: Optional[datetime] = None) -> int:
    """
    Register a device for (user_type, user, branch).

    The same fingerprint again is a no-op. A different fingerprint replaces
    the active binding: the old row is deactivated with reset_at/reset_by
    and kept, and a fresh row is inserted. Replacing is admin-only; the
    caller enforces it.

    Returns:
        id of the active binding row
    """
    if not fingerprint:
        raise ValidationFailed("device_fingerprint is required", "DEVICE_FINGERPRINT_REQUIRED")

    now = now or datetime.now()
    existing = get_active_binding(conn, user_type, user_id, branch_id)
    if existing and existing["device_fingerprint"] == fingerprint:
        return existing["id"]

    cursor = conn.cursor(dictionary=True)
    try:
        if existing:
            _deactivate(cursor, existing["id"], actor_id, now)
        device_id = _insert_binding(cursor, user_type, user_id, branch_id, fingerprint, now)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()

    if existing:
        logger.info(f"Device {existing['id']} for {user_type} {user_id} at branch {branch_id} replaced by {actor_id}")
    return device_id


def reset_device(conn, actor_id: str, device_id: Optional[int] = None,
                 user_type: Optional[str] = None, user_id: Optional[int] = None,
                 branch_id: Optional[int] = None, now: Optional[datetime] = None) -> int:
    """
    Deactivate a binding. Admin-only; the caller enforces the capability.

    Target either by device_id, or by (user_type, user_id, branch_id).

    Returns:
        Number of bindings deactivated
    """
    now = now or datetime.now()

    if device_id is not None:
        where_sql = "id = %s"
        params = [device_id]
    elif user_type and user_id is not None:
        if branch_id is None:
            raise ValidationFailed("branch_id is required", "BRANCH_ID_REQUIRED")
        column = _owner_column(user_type)
        where_sql = f"user_type = %s AND {column} = %s AND branch_id = %s"
        params = [user_type, user_id, branch_id]
    else:
        raise ValidationFailed("Provide device_id, member_id, or staff_id", "DEVICE_TARGET_REQUIRED")

    cursor = conn.cursor(dictionary=True)
    try:
        cursor.execute(
            f"""
            UPDATE attendance_devices
            SET is_active = 0, reset_at = %s, reset_by = %s, updated_at = %s
            WHERE {where_sql} AND is_active = 1
            """,
            [now, actor_id, now] + params,
        )
        affected = cursor.rowcount
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()

    if not affected:
        raise NotFound("No active device binding found", "DEVICE_NOT_FOUND")

    logger.info(f"Device binding reset by {actor_id} ({where_sql} {params})")
    return affected
