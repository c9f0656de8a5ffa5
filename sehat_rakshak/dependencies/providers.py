# sehat_rakshak/dependencies/providers.py
"""
Outbound provider configuration, resolved once per request at the HTTP edge.

Tests override these dependencies to inject fake transports.
"""

from typing import Optional

import httpx
from fastapi import Depends

from sehat_rakshak.core.config import Settings, get_settings
from sehat_rakshak.notifications.email.base import EmailProviderConfig
from sehat_rakshak.services.assistant_service import AssistantConfig


def get_email_config(settings: Settings = Depends(get_settings)) -> EmailProviderConfig:
    return EmailProviderConfig.from_settings(settings)


def get_email_transport() -> Optional[httpx.BaseTransport]:
    return None


def get_assistant_config(settings: Settings = Depends(get_settings)) -> AssistantConfig:
    return AssistantConfig.from_settings(settings)


def get_assistant_transport() -> Optional[httpx.BaseTransport]:
    return None
