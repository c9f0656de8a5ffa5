# sehat_rakshak/models/patient.py
import uuid
from datetime import datetime, date
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    String,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sehat_rakshak.models.base import Base
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.user import User


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Patient(Base):
    """
    Hospital-scoped patient entity.

    NOTE:
    - Identity fields (mrn, qr_code_id, date_of_birth, gender) are set at registration.
    - Never hard-deleted: is_active=False deactivates, is_discharged closes a care episode.
    """

    __tablename__ = "patients"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    hospital_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("hospitals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    mrn: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    qr_code_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Gender] = mapped_column(
        SAEnum(Gender, name="gender_enum"),
        nullable=False,
    )
    blood_group: Mapped[str | None] = mapped_column(String(10), nullable=True)
    allergies: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    mobile: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    emergency_contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    emergency_contact_mobile: Mapped[str | None] = mapped_column(String(50), nullable=True)

    assigned_doctor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("doctors.id", ondelete="SET NULL"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    is_discharged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    discharge_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=func.now(),
    )

    assigned_doctor: Mapped["Doctor"] = relationship("Doctor")
    created_by: Mapped["User"] = relationship("User")
