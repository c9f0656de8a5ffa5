# sehat_rakshak/schemas/notification.py
from pydantic import BaseModel

from sehat_rakshak.models.notification import NotificationChannel, NotificationStatus


class NotificationResult(BaseModel):
    """Outcome of one delivery attempt; failures are reported, never raised."""

    channel: NotificationChannel
    status: NotificationStatus
    recipient: str | None = None
    detail: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == NotificationStatus.SENT

