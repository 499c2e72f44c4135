import re
from typing import Optional

from app.config import DEFAULT_COUNTRY_CODE

NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> str:
    """
    Normalize a member phone number for lookup.
    Strips every non-digit, then a single leading zero (09876... -> 9876...).

    Args:
        phone: phone number string as typed on the kiosk

    Returns:
        Digits-only phone number ("" when nothing usable was given)
    """
    if not phone:
        return ""

    digits = NON_DIGITS.sub("", phone)
    if digits.startswith("0"):
        return digits[1:]
    return digits


def format_whatsapp_number(phone: Optional[str], country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Format phone number to international format for the gateway.
    A bare 10-digit number gets the default country code (98765xxxxx -> 9198765xxxxx).

    Args:
        phone: phone number string

    Returns:
        Formatted phone number
    """
    digits = NON_DIGITS.sub("", phone or "")
    if len(digits) == 10:
        return country_code + digits
    return digits
