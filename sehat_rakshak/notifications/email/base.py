# sehat_rakshak/notifications/email/base.py
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from sehat_rakshak.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_EMAILJS_API_URL = "https://api.emailjs.com/api/v1.0/email/send"


@dataclass(frozen=True)
class EmailProviderConfig:
    """
    Credentials and behaviour of the outbound email provider.

    Built from settings at the HTTP edge and passed down; services never read
    settings themselves.
    """

    public_key: Optional[str] = None
    service_id: Optional[str] = None
    template_id: Optional[str] = None
    api_url: str = DEFAULT_EMAILJS_API_URL
    sandbox_mode: bool = False
    test_recipient: Optional[str] = None
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.public_key and self.service_id and self.template_id)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailProviderConfig":
        return cls(
            public_key=settings.emailjs_public_key,
            service_id=settings.emailjs_service_id,
            template_id=settings.emailjs_template_id,
            api_url=settings.emailjs_api_url,
            sandbox_mode=settings.email_sandbox_mode,
            test_recipient=settings.email_test_recipient,
            timeout_seconds=settings.notification_timeout_seconds,
        )


class EmailNotConfiguredError(RuntimeError):
    pass


def send_email(
    config: EmailProviderConfig,
    to_email: str,
    template_params: dict[str, str],
    *,
    reason: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """
    Send one templated email through the provider.

    - If sandbox_mode is True:
        the email goes to test_recipient (if set) instead of to_email.
    Returns the address actually used. Raises on any delivery failure.
    """
    if not config.is_configured:
        raise EmailNotConfiguredError("Email provider is not configured")

    debug_reason = f" [{reason}]" if reason else ""

    actual_recipient = to_email
    if config.sandbox_mode and config.test_recipient:
        actual_recipient = config.test_recipient
        logger.info(
            "[EMAIL SANDBOX%s] Original: %s, Redirected to: %s",
            debug_reason,
            to_email,
            actual_recipient,
        )

    from sehat_rakshak.notifications.email.emailjs_client import send_via_emailjs

    send_via_emailjs(
        config,
        template_params={**template_params, "to_email": actual_recipient},
        transport=transport,
    )

    logger.info("[EMAIL SENT%s] To: %s, Subject: %r", debug_reason, actual_recipient, template_params.get("subject"))
    return actual_recipient
