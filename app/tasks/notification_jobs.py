"""
Notification jobs - best-effort admin alerts handed to the scheduler's worker pool
"""
import logging

from app import config
from app.utils.whatsapp import send_whatsapp_text

logger = logging.getLogger(__name__)


def build_expired_checkin_message(alert: dict) -> str:
    time_str = alert["checked_in_at"].strftime("%I:%M %p")
    branch = alert.get("branch_name") or alert.get("branch_id")
    return (
        "⚠️ *Expired Member Check-in*\n\n"
        f"👤 *Name:* {alert.get('name')}\n"
        f"📱 *Phone:* {alert.get('phone') or '-'}\n"
        f"📍 *Branch:* {branch}\n"
        f"🕐 *Time:* {time_str}\n\n"
        "The member has been redirected to the renewal page."
    )


def job_send_expired_checkin_alert(alert: dict) -> bool:
    """Send the expired check-in alert to the admin WhatsApp number. Never raises."""
    if not config.ADMIN_WHATSAPP_NUMBER:
        logger.info("ADMIN_WHATSAPP_NUMBER not set, skipping expired check-in alert")
        return False

    try:
        ok, error = send_whatsapp_text(config.ADMIN_WHATSAPP_NUMBER, build_expired_checkin_message(alert))
    except Exception as e:
        logger.warning("Failed to send expired member WhatsApp notification: %s", e)
        return False

    if not ok:
        logger.warning("Failed to send expired member WhatsApp notification: %s", error)
    return ok


def dispatch_expired_checkin_alert(alert: dict) -> None:
    """
    Queue the alert as a one-shot job so the check-in response never waits
    on the gateway.
    """
    from app.tasks.scheduler import scheduler

    try:
        scheduler.add_job(
            job_send_expired_checkin_alert,
            args=[alert],
            name="Expired check-in alert",
            misfire_grace_time=None,
        )
    except Exception as e:
        logger.warning("Could not queue expired check-in alert: %s", e)
