"""
Check-in Router - single action-dispatched endpoint for kiosks and the dashboard
"""
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request

from app.config import DEFAULT_LOG_PAGE_SIZE, MAX_LOG_PAGE_SIZE, INSIGHTS_DEFAULT_DAYS
from app.context import RequestContext
from app.db import get_db_connection
from app.errors import ServiceError, InternalError, NoProfile, NotFound, ValidationFailed
from app.middleware import (
    get_branch_id, get_json_body, parse_branch_id, check_branch_access, check_capability, require_admin,
)
from app.services import attendance, attendance_reports, devices, identity
from app.services.attendance import Subject
from app.services.devices import BindResult
from app.tasks.notification_jobs import dispatch_expired_checkin_alert

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Check-in"])


class CheckinAction(str, Enum):
    CHECK_IN = "check-in"
    MEMBER_CHECK_IN = "member-check-in"
    REGISTER_DEVICE = "register-device"
    RESET_DEVICE = "reset-device"
    ATTENDANCE_LOGS = "attendance-logs"
    ATTENDANCE_INSIGHTS = "attendance-insights"


# ============== Helpers ==============

def _require_branch(ctx: RequestContext) -> int:
    if ctx.branch_id is not None:
        return ctx.branch_id
    if ctx.body.get("branch_id") not in (None, ""):
        return parse_branch_id(ctx.body["branch_id"])
    raise ValidationFailed("branch_id is required", "BRANCH_ID_REQUIRED")


def _optional_int(value, field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be a number", "VALIDATION_ERROR")


def _body_branch(ctx: RequestContext) -> Optional[int]:
    """Body branch_id, falling back to the query/header branch"""
    branch_id = _optional_int(ctx.body.get("branch_id"), "branch_id")
    return ctx.branch_id if branch_id is None else branch_id


def _parse_date(value, field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(f"{field} must be a date (YYYY-MM-DD)", "INVALID_DATE")


def _device_mismatch(message: str) -> dict:
    return {"status": "device_mismatch", "message": message}


# ============== Handlers ==============

def handle_staff_check_in(ctx: RequestContext) -> dict:
    """Authenticated self check-in; only an active staff record may use it."""
    branch_id = _require_branch(ctx)
    auth = identity.resolve_credential(ctx.conn, ctx.authorization)
    if not auth.is_staff:
        # Admins (gym owners) do not check in
        raise NoProfile("No member or staff profile found for this user", "NO_PROFILE")
    check_branch_access(auth, branch_id)

    fingerprint = ctx.body.get("device_fingerprint") or None
    if fingerprint:
        bound = devices.bind(ctx.conn, "staff", auth.staff_id, branch_id, fingerprint, ctx.now)
        if bound == BindResult.CONFLICT:
            return _device_mismatch("This account is registered on another device. Contact admin to reset.")

    subject = Subject("staff", auth.staff_id, auth.name, auth.phone)
    return attendance.reconcile(ctx.conn, subject, branch_id, fingerprint, ctx.now)


def handle_member_check_in(ctx: RequestContext) -> dict:
    """
    Kiosk flow. Returning visitors send the session_token they were given;
    first visits identify by phone and optionally bind the device.
    """
    branch_id = _require_branch(ctx)
    session_token = ctx.body.get("session_token")

    if session_token:
        device = devices.find_member_by_session_token(ctx.conn, session_token, branch_id)
        if not device or not device.get("member_id"):
            return _device_mismatch("Device not recognized. Please login again.")

        member = identity.get_member(ctx.conn, device["member_id"])
        if not member:
            raise NotFound("Member not found", "MEMBER_NOT_FOUND")

        subject = Subject("member", member["id"], member["name"], member["phone"])
        return attendance.reconcile(
            ctx.conn, subject, branch_id, session_token, ctx.now,
            notify=dispatch_expired_checkin_alert,
        )

    phone = ctx.body.get("phone")
    if not phone:
        raise ValidationFailed("Phone number is required for first check-in", "PHONE_REQUIRED")

    member = identity.find_member_by_phone(ctx.conn, str(phone), branch_id)
    if not member:
        return {"status": "not_found", "message": "No member found with this phone number at this branch."}

    fingerprint = ctx.body.get("device_fingerprint") or None
    if fingerprint:
        bound = devices.bind(ctx.conn, "member", member["id"], branch_id, fingerprint, ctx.now)
        if bound == BindResult.CONFLICT:
            return _device_mismatch("This account is registered on another device. Contact admin to reset.")

    subject = Subject("member", member["id"], member["name"], member["phone"])
    result = attendance.reconcile(
        ctx.conn, subject, branch_id, fingerprint, ctx.now,
        notify=dispatch_expired_checkin_alert,
    )
    result["session_token"] = fingerprint
    result["member_name"] = member["name"]
    return result


def handle_register_device(ctx: RequestContext) -> dict:
    """Register a device; replacing a different active device needs an admin."""
    auth = identity.resolve_credential(ctx.conn, ctx.authorization)

    user_type = ctx.body.get("user_type")
    fingerprint = ctx.body.get("device_fingerprint")
    branch_id = _body_branch(ctx)
    if user_type not in devices.USER_TYPES or not fingerprint or branch_id is None:
        raise ValidationFailed("Missing required fields", "MISSING_FIELDS")

    user_id = _optional_int(ctx.body.get(f"{user_type}_id"), f"{user_type}_id")
    if user_id is None:
        raise ValidationFailed(f"{user_type}_id is required", "MISSING_FIELDS")

    check_branch_access(auth, branch_id)

    existing = devices.get_active_binding(ctx.conn, user_type, user_id, branch_id)
    if existing and existing["device_fingerprint"] != fingerprint:
        require_admin(auth)

    device_id = devices.register_device(
        ctx.conn, user_type, user_id, branch_id, fingerprint, auth.user_id, ctx.now,
    )
    logger.info(f"Device {device_id} registered for {user_type} {user_id} at branch {branch_id} by {auth.user_id}")
    return {"success": True, "device_id": device_id}


def handle_reset_device(ctx: RequestContext) -> dict:
    auth = identity.resolve_credential(ctx.conn, ctx.authorization)
    require_admin(auth)

    device_id = _optional_int(ctx.body.get("device_id"), "device_id")
    member_id = _optional_int(ctx.body.get("member_id"), "member_id")
    staff_id = _optional_int(ctx.body.get("staff_id"), "staff_id")
    branch_id = _body_branch(ctx)

    if device_id is not None:
        binding = devices.get_binding(ctx.conn, device_id)
        if not binding:
            raise NotFound("No active device binding found", "DEVICE_NOT_FOUND")
        check_branch_access(auth, binding["branch_id"])
        count = devices.reset_device(ctx.conn, auth.user_id, device_id=device_id, now=ctx.now)
    elif member_id is not None or staff_id is not None:
        user_type, user_id = ("member", member_id) if member_id is not None else ("staff", staff_id)
        check_branch_access(auth, branch_id)
        count = devices.reset_device(
            ctx.conn, auth.user_id, user_type=user_type, user_id=user_id,
            branch_id=branch_id, now=ctx.now,
        )
    else:
        raise ValidationFailed("Provide device_id, member_id, or staff_id", "DEVICE_TARGET_REQUIRED")

    return {"success": True, "reset_count": count}


def handle_attendance_logs(ctx: RequestContext) -> dict:
    auth = identity.resolve_credential(ctx.conn, ctx.authorization)
    check_branch_access(auth, ctx.branch_id)

    date_from = _parse_date(ctx.params.get("date_from"), "date_from") or ctx.now.date()
    date_to = _parse_date(ctx.params.get("date_to"), "date_to") or date_from
    if date_from > date_to:
        raise ValidationFailed("date_from must be on or before date_to", "INVALID_DATE_RANGE")

    user_type = ctx.params.get("user_type") or None
    if user_type is not None and user_type not in devices.USER_TYPES:
        raise ValidationFailed("user_type must be 'member' or 'staff'", "INVALID_USER_TYPE")

    page = _optional_int(ctx.params.get("page"), "page")
    limit = _optional_int(ctx.params.get("limit"), "limit")
    page = 1 if page is None else page
    limit = DEFAULT_LOG_PAGE_SIZE if limit is None else limit
    if page < 1 or limit < 1:
        raise ValidationFailed("page and limit must be positive", "VALIDATION_ERROR")
    limit = min(limit, MAX_LOG_PAGE_SIZE)

    return attendance_reports.list_logs(
        ctx.conn, auth, date_from, date_to,
        branch_id=ctx.branch_id, user_type=user_type, page=page, limit=limit,
    )


def handle_attendance_insights(ctx: RequestContext) -> dict:
    auth = identity.resolve_credential(ctx.conn, ctx.authorization)
    check_capability(auth, "can_access_analytics")
    check_branch_access(auth, ctx.branch_id)

    date_to = _parse_date(ctx.params.get("date_to"), "date_to") or ctx.now.date()
    date_from = (
        _parse_date(ctx.params.get("date_from"), "date_from")
        or date_to - timedelta(days=INSIGHTS_DEFAULT_DAYS)
    )
    if date_from > date_to:
        raise ValidationFailed("date_from must be on or before date_to", "INVALID_DATE_RANGE")

    rows = attendance_reports.fetch_insight_rows(ctx.conn, auth, date_from, date_to, ctx.branch_id)
    return attendance_reports.compute_insights(rows, date_from, date_to)


HANDLERS = {
    CheckinAction.CHECK_IN: handle_staff_check_in,
    CheckinAction.MEMBER_CHECK_IN: handle_member_check_in,
    CheckinAction.REGISTER_DEVICE: handle_register_device,
    CheckinAction.RESET_DEVICE: handle_reset_device,
    CheckinAction.ATTENDANCE_LOGS: handle_attendance_logs,
    CheckinAction.ATTENDANCE_INSIGHTS: handle_attendance_insights,
}


# ============== Endpoint ==============

@router.api_route("/check-in", methods=["GET", "POST"])
def check_in(
    request: Request,
    action: str = Query(CheckinAction.CHECK_IN.value),
    body: dict = Depends(get_json_body),
    authorization: Optional[str] = Header(None),
    branch_id: Optional[int] = Depends(get_branch_id),
):
    """Dispatch a check-in action. Outcomes such as duplicate or device_mismatch are 200 responses."""
    try:
        selected = CheckinAction(action)
    except ValueError:
        raise ValidationFailed("Unknown action", "UNKNOWN_ACTION")

    conn = get_db_connection()
    ctx = RequestContext(
        conn=conn,
        branch_id=branch_id,
        body=body,
        params=dict(request.query_params),
        authorization=authorization,
    )

    try:
        return HANDLERS[selected](ctx)
    except ServiceError:
        raise
    except Exception as e:
        conn.rollback()
        logger.error(f"Error handling check-in action {selected.value}: {e}", exc_info=True)
        raise InternalError("Internal error", "CHECKIN_FAILED")
    finally:
        conn.close()
