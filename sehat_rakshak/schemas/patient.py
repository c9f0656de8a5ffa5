# sehat_rakshak/schemas/patient.py
import re
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from sehat_rakshak.models.patient import Gender


def normalize_phone(phone: str) -> str:
    """Normalize phone number: remove spaces, dashes, parentheses, keep + and digits."""
    if not phone:
        return ""
    return re.sub(r"[\s\-\(\)]", "", phone)


def validate_phone_digits(phone: str) -> bool:
    """Check if phone has 8-15 digits after normalization."""
    normalized = normalize_phone(phone)
    digits = normalized[1:] if normalized.startswith("+") else normalized
    digit_count = sum(c.isdigit() for c in digits)
    return 8 <= digit_count <= 15


def _clean_allergies(v: Optional[list[str]]) -> Optional[list[str]]:
    if v is None:
        return None
    seen: list[str] = []
    for item in v:
        item = item.strip()
        if item and item.lower() not in {s.lower() for s in seen}:
            seen.append(item)
    return seen


class PatientCreate(BaseModel):
    full_name: str
    date_of_birth: date
    gender: Gender
    mobile: str
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    allergies: list[str] = Field(default_factory=list)
    emergency_contact_name: Optional[str] = None
    emergency_contact_mobile: Optional[str] = None
    assigned_doctor_id: Optional[UUID] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("Full name must be 1-200 characters")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v

    @field_validator("mobile", "emergency_contact_mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not validate_phone_digits(v):
            raise ValueError("Phone must be 8-15 digits (remove spaces or symbols)")
        return normalize_phone(v)

    @field_validator("allergies")
    @classmethod
    def validate_allergies(cls, v: list[str]) -> list[str]:
        return _clean_allergies(v) or []


class PatientUpdate(BaseModel):
    """Mutable contact/medical fields only. MRN, QR id, DOB and gender are fixed at registration."""

    full_name: Optional[str] = None
    mobile: Optional[str] = None
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    allergies: Optional[list[str]] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_mobile: Optional[str] = None
    assigned_doctor_id: Optional[UUID] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v or len(v) > 200:
            raise ValueError("Full name must be 1-200 characters")
        return v

    @field_validator("mobile", "emergency_contact_mobile")
    @classmethod
    def validate_mobile(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not validate_phone_digits(v):
            raise ValueError("Phone must be 8-15 digits (remove spaces or symbols)")
        return normalize_phone(v)

    @field_validator("allergies")
    @classmethod
    def validate_allergies(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _clean_allergies(v)


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    mrn: str
    qr_code_id: str
    full_name: str
    date_of_birth: date
    gender: Gender
    mobile: str
    email: Optional[str] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    allergies: list[str] = Field(default_factory=list)
    emergency_contact_name: Optional[str] = None
    emergency_contact_mobile: Optional[str] = None
    assigned_doctor_id: Optional[UUID] = None
    is_active: bool
    is_discharged: bool
    discharge_date: Optional[datetime] = None
    created_at: datetime


class PatientStats(BaseModel):
    total: int
    active: int
    discharged: int
    discharges_today: int
