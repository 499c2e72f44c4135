"""
Subscription cron jobs:
  1. Refresh the cached subscriptions.status column from dates
"""
import logging
from datetime import date

from app.db import get_db_connection
from app.services.subscriptions import refresh_statuses

logger = logging.getLogger(__name__)


def job_refresh_subscription_statuses():
    """
    Recompute active / expiring_soon / expired from end_date.
    Rows explicitly marked inactive keep their status.
    """
    today = date.today()
    conn = get_db_connection()
    try:
        updated = refresh_statuses(conn, today)
        logger.info("Subscription refresh job done - %d rows updated", updated)
    except Exception as e:
        logger.error("Error in job_refresh_subscription_statuses: %s", e)
    finally:
        conn.close()
