# sehat_rakshak/notifications/email/emailjs_client.py
import logging
from typing import Optional

import httpx

from sehat_rakshak.notifications.email.base import EmailProviderConfig

logger = logging.getLogger(__name__)


def send_via_emailjs(
    config: EmailProviderConfig,
    template_params: dict[str, str],
    transport: Optional[httpx.BaseTransport] = None,
) -> None:
    """
    Send email via the EmailJS REST API.
    The provider renders the stored template with template_params.
    """
    payload = {
        "service_id": config.service_id,
        "template_id": config.template_id,
        "user_id": config.public_key,
        "template_params": template_params,
    }

    try:
        with httpx.Client(transport=transport, timeout=config.timeout_seconds) as client:
            response = client.post(config.api_url, json=payload)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("[EMAILJS ERROR] Failed to send email: %s", exc)
        raise
