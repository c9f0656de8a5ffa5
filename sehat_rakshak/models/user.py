# sehat_rakshak/models/user.py
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sehat_rakshak.models.base import Base
from sehat_rakshak.models.hospital import Hospital


class AppRole(str, PyEnum):
    SUPERADMIN = "superadmin"
    HOSPITALADMIN = "hospitaladmin"
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"
    CAREMANAGER = "caremanager"
    PATIENT = "patient"


class User(Base):
    """
    Profile row for an account of the hosted auth platform.

    - id is the auth platform's user id (the JWT `sub`), not generated here.
    - superadmin: hospital_id is NULL
    - Hospital users (hospitaladmin, doctor, ...): hospital_id references Hospital.id
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    hospital_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("hospitals.id", ondelete="CASCADE"),
        nullable=True,
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    mobile: Mapped[str | None] = mapped_column(String(50), nullable=True)

    role: Mapped[AppRole] = mapped_column(
        Enum(AppRole, name="app_role_enum"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
        doc="If false, the profile cannot use the API. Use this instead of hard delete.",
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

    hospital: Mapped["Hospital"] = relationship("Hospital", backref="users")
