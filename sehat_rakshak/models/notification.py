# sehat_rakshak/models/notification.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    DateTime,
    Enum,
    ForeignKey,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sehat_rakshak.models.base import Base
from sehat_rakshak.models.user import User


class NotificationChannel(str, PyEnum):
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"


class NotificationStatus(str, PyEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class Notification(Base):
    """
    Delivery log for prescription notifications.

    One row per attempt. FAILED rows are what an operator (or a later retry
    job) looks at; the prescription itself is never touched by delivery.
    """

    __tablename__ = "notifications"

    # Primary Key
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # Foreign Keys
    hospital_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("hospitals.id", ondelete="CASCADE"),
        nullable=True,
    )
    prescription_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("prescriptions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    triggered_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Notification Details
    channel: Mapped[NotificationChannel] = mapped_column(
        Enum(NotificationChannel, name="notification_channel_enum"),
        nullable=False,
    )
    recipient: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        doc="Email address or phone number.",
    )
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)

    # Status
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(NotificationStatus, name="notification_status_enum"),
        nullable=False,
        server_default=text("'PENDING'"),
    )
    error_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    triggered_by: Mapped["User"] = relationship("User")
