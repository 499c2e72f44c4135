"""
WhatsApp Utility
Sends plain text messages through the Periskope gateway
"""
import logging
from typing import Optional, Tuple

import requests

from app import config
from app.utils.helpers import format_whatsapp_number

logger = logging.getLogger(__name__)


def gateway_configured() -> bool:
    return bool(config.PERISKOPE_API_KEY and config.PERISKOPE_PHONE)


def send_whatsapp_text(destination: str, text: str) -> Tuple[bool, Optional[str]]:
    """
    Send a WhatsApp text message.

    Args:
        destination: recipient phone number (any formatting)
        text: message body

    Returns:
        (ok, error) - error is None when the gateway accepted the message
    """
    if not gateway_configured():
        return False, "WhatsApp configuration missing (api key/phone)"

    chat_id = f"{format_whatsapp_number(destination)}@c.us"
    headers = {
        "Authorization": f"Bearer {config.PERISKOPE_API_KEY}",
        "x-phone": config.PERISKOPE_PHONE,
        "Content-Type": "application/json",
    }
    payload = {"chat_id": chat_id, "message": text}

    try:
        r = requests.post(
            config.WHATSAPP_API_URL,
            headers=headers,
            json=payload,
            timeout=config.WHATSAPP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning(f"WhatsApp request error: {e}")
        return False, f"request error: {e}"

    if 200 <= r.status_code < 300:
        logger.info(f"WhatsApp message sent to {chat_id}")
        return True, None

    logger.warning(f"WhatsApp gateway rejected message: {r.status_code} {r.text[:200]}")
    return False, f"{r.status_code}: {r.text[:200]}"
