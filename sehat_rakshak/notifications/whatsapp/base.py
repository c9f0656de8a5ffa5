# sehat_rakshak/notifications/whatsapp/base.py
"""
Share links handed to the client. Nothing is sent from the server: the
browser opens WhatsApp or the local mail client with the text prefilled.
"""

import re
from typing import Optional
from urllib.parse import quote

WHATSAPP_BASE_URL = "https://wa.me/"


def phone_digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def build_whatsapp_link(mobile: Optional[str], message: str) -> Optional[str]:
    """https://wa.me/<digits>?text=<urlencoded>; None when the number has no digits."""
    digits = phone_digits(mobile)
    if not digits:
        return None
    return f"{WHATSAPP_BASE_URL}{digits}?text={quote(message, safe='')}"


def build_mailto_link(address: Optional[str], subject: str, body: str) -> str:
    """mailto:<address>?subject=..&body=.. (address may be empty)."""
    return f"mailto:{(address or '').strip()}?subject={quote(subject, safe='')}&body={quote(body, safe='')}"
