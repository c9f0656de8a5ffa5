# sehat_rakshak/schemas/prescription.py
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FrequencyCode(str, Enum):
    """
    Dose-timing codes: one 0/1 flag per daily slot (morning-afternoon-night,
    or morning-afternoon-evening-night for the four-slot code).
    """

    MORNING = "1-0-0"
    AFTERNOON = "0-1-0"
    NIGHT = "0-0-1"
    TWICE_DAILY = "1-0-1"
    THRICE_DAILY = "1-1-1"
    FOUR_TIMES_DAILY = "1-1-1-1"

    @property
    def label(self) -> str:
        return _FREQUENCY_LABELS[self]


_FREQUENCY_LABELS = {
    FrequencyCode.MORNING: "Once daily - Morning",
    FrequencyCode.AFTERNOON: "Once daily - Afternoon",
    FrequencyCode.NIGHT: "Once daily - Night",
    FrequencyCode.TWICE_DAILY: "Twice daily",
    FrequencyCode.THRICE_DAILY: "Thrice daily",
    FrequencyCode.FOUR_TIMES_DAILY: "Four times daily",
}


class MedicationTiming(str, Enum):
    BEFORE_FOOD = "Before Food"
    AFTER_FOOD = "After Food"
    WITH_FOOD = "With Food"
    EMPTY_STOMACH = "Empty Stomach"


DEFAULT_FREQUENCY = FrequencyCode.TWICE_DAILY
DEFAULT_TIMING = MedicationTiming.AFTER_FOOD
DEFAULT_DURATION_DAYS = 7


class MedicationDraftIn(BaseModel):
    # Unvalidated here; PrescriptionComposer.validate() reports every problem
    medicine_name: str = ""
    dosage: str = ""
    frequency: str = DEFAULT_FREQUENCY.value
    timing: str = DEFAULT_TIMING.value
    duration_days: int | None = DEFAULT_DURATION_DAYS
    instructions: str | None = None


class PrescriptionCreate(BaseModel):
    patient_id: UUID
    doctor_id: UUID | None = None  # Optional: hospital admins prescribe on behalf of a doctor
    diagnosis: str = ""
    notes: str | None = None
    follow_up_date: date | None = None
    medications: list[MedicationDraftIn] = Field(default_factory=list)


class MedicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    position: int
    medicine_name: str
    dosage: str
    frequency: str
    timing: str
    duration_days: int
    start_date: date
    end_date: date
    instructions: str | None = None


class PrescriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    diagnosis: str
    notes: str | None = None
    prescription_date: date
    follow_up_date: date | None = None
    created_at: datetime
    medications: list[MedicationResponse]

    patient_name: str | None = None
    doctor_name: str | None = None


class ShareLinksResponse(BaseModel):
    whatsapp_url: str | None = None
    mailto_url: str


class PrescriptionCreateResponse(BaseModel):
    prescription: PrescriptionResponse
    duplicate_warnings: list[str] = Field(default_factory=list)
    share_links: ShareLinksResponse
    email_scheduled: bool = False


class DuplicateCheckRequest(BaseModel):
    patient_id: UUID
    medicine_names: list[str]
    exclude_prescription_id: UUID | None = None
    match_policy: Literal["substring", "normalized"] = "substring"


class DuplicateCheckResponse(BaseModel):
    warnings: list[str]


class ActiveMedicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    prescription_id: UUID
    medicine_name: str
    dosage: str
    frequency: str
    timing: str
    start_date: date
    end_date: date
