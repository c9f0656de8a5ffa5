# sehat_rakshak/services/prescription_composer.py
"""
In-memory prescription draft.

The composer accumulates diagnosis, notes, follow-up date and an ordered list
of medication lines, keeps the advisory duplicate warnings in step with the
lines, and validates everything before the draft is handed to the persister.
Nothing here touches the database except through the optional checker.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Optional

from sehat_rakshak.schemas.prescription import (
    DEFAULT_DURATION_DAYS,
    DEFAULT_FREQUENCY,
    DEFAULT_TIMING,
    FrequencyCode,
    MedicationTiming,
    PrescriptionCreate,
)
from sehat_rakshak.services.duplicate_medication_service import (
    SUBSTRING,
    DuplicateWarning,
    MatchPolicy,
)
from sehat_rakshak.utils.datetime_utils import today_utc

# (medicine_name) -> warning or None
DuplicateChecker = Callable[[str], Optional[DuplicateWarning]]

MEDICATION_FIELDS = ("medicine_name", "dosage", "frequency", "timing", "duration_days", "instructions")


class PrescriptionValidationError(ValueError):
    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


@dataclass
class MedicationDraft:
    medicine_name: str = ""
    dosage: str = ""
    frequency: str = DEFAULT_FREQUENCY.value
    timing: str = DEFAULT_TIMING.value
    duration_days: Any = DEFAULT_DURATION_DAYS
    instructions: Optional[str] = None
    # Bumped on every medicine_name change; stale duplicate-check results are dropped.
    revision: int = 0


@dataclass(frozen=True)
class ValidMedication:
    medicine_name: str
    dosage: str
    frequency: FrequencyCode
    timing: MedicationTiming
    duration_days: int
    instructions: Optional[str]


@dataclass(frozen=True)
class PrescriptionDraft:
    """Validated, immutable hand-off to the persister."""

    diagnosis: str
    notes: Optional[str]
    follow_up_date: Optional[date]
    medications: tuple[ValidMedication, ...]


@dataclass
class PrescriptionComposer:
    diagnosis: str = ""
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    medications: list[MedicationDraft] = field(default_factory=lambda: [MedicationDraft()])
    checker: Optional[DuplicateChecker] = None
    policy: MatchPolicy = SUBSTRING
    _warnings: dict[str, DuplicateWarning] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def from_payload(cls, payload: PrescriptionCreate, **kwargs: Any) -> "PrescriptionComposer":
        composer = cls(
            diagnosis=payload.diagnosis,
            notes=payload.notes,
            follow_up_date=payload.follow_up_date,
            medications=[MedicationDraft(**m.model_dump()) for m in payload.medications],
            **kwargs,
        )
        return composer

    # -- medication lines -------------------------------------------------

    def add_medication(self) -> int:
        """Append a blank line with the default frequency/timing/duration; returns its index."""
        self.medications.append(MedicationDraft())
        return len(self.medications) - 1

    def remove_medication(self, index: int) -> MedicationDraft:
        if len(self.medications) <= 1:
            raise ValueError("A prescription must keep at least one medication line")
        removed = self.medications.pop(self._check_index(index))
        self._drop_warning_if_unused(removed.medicine_name)
        return removed

    def update_medication(self, index: int, field_name: str, value: Any) -> MedicationDraft:
        """
        Set one field of one line. A medicine_name change invalidates the old
        name's warning and, if a checker is attached, runs the duplicate check.
        """
        if field_name not in MEDICATION_FIELDS:
            raise ValueError(f"Unknown medication field: {field_name}")
        index = self._check_index(index)
        current = self.medications[index]

        if field_name != "medicine_name":
            self.medications[index] = replace(current, **{field_name: value})
            return self.medications[index]

        old_name = current.medicine_name
        updated = replace(current, medicine_name=value or "", revision=current.revision + 1)
        self.medications[index] = updated
        if self.policy.key(old_name) != self.policy.key(updated.medicine_name):
            self._drop_warning_if_unused(old_name)

        if self.checker and updated.medicine_name.strip():
            self.record_duplicate_check(
                index,
                updated.medicine_name,
                updated.revision,
                self.checker(updated.medicine_name),
            )
        return updated

    def record_duplicate_check(
        self,
        index: int,
        medicine_name: str,
        revision: int,
        warning: Optional[DuplicateWarning],
    ) -> bool:
        """
        Apply a (possibly late) duplicate-check result.

        Ignored unless the line still holds the name and revision the check
        was started for. Returns True when the result was applied.
        """
        if not 0 <= index < len(self.medications):
            return False
        line = self.medications[index]
        if line.revision != revision or line.medicine_name != medicine_name:
            return False

        key = self.policy.key(medicine_name)
        if not key:
            return False
        if warning is None:
            self._warnings.pop(key, None)
        else:
            self._warnings[key] = warning
        return True

    @property
    def duplicate_warnings(self) -> list[str]:
        return [w.message for w in self._warnings.values()]

    # -- validation -------------------------------------------------------

    def validate(self, today: Optional[date] = None) -> list[str]:
        today = today or today_utc()
        errors: list[str] = []

        if not (self.diagnosis or "").strip():
            errors.append("Diagnosis is required")
        if self.follow_up_date and self.follow_up_date < today:
            errors.append("Follow-up date cannot be before the prescription date")
        if not self.medications:
            errors.append("At least one medication is required")

        for i, med in enumerate(self.medications, start=1):
            label = f"Medication {i}"
            if not (med.medicine_name or "").strip():
                errors.append(f"{label}: medicine name is required")
            if not (med.dosage or "").strip():
                errors.append(f"{label}: dosage is required")
            if med.frequency not in {f.value for f in FrequencyCode}:
                errors.append(f"{label}: invalid frequency {med.frequency!r}")
            if med.timing not in {t.value for t in MedicationTiming}:
                errors.append(f"{label}: invalid timing {med.timing!r}")
            if isinstance(med.duration_days, bool) or not isinstance(med.duration_days, int) or med.duration_days < 1:
                errors.append(f"{label}: duration must be a whole number of days, at least 1")

        return errors

    def build(self, today: Optional[date] = None) -> PrescriptionDraft:
        errors = self.validate(today)
        if errors:
            raise PrescriptionValidationError(errors)

        return PrescriptionDraft(
            diagnosis=self.diagnosis.strip(),
            notes=(self.notes or "").strip() or None,
            follow_up_date=self.follow_up_date,
            medications=tuple(
                ValidMedication(
                    medicine_name=med.medicine_name.strip(),
                    dosage=med.dosage.strip(),
                    frequency=FrequencyCode(med.frequency),
                    timing=MedicationTiming(med.timing),
                    duration_days=med.duration_days,
                    instructions=(med.instructions or "").strip() or None,
                )
                for med in self.medications
            ),
        )

    # -- helpers ----------------------------------------------------------

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self.medications):
            raise IndexError(f"No medication line at position {index}")
        return index

    def _drop_warning_if_unused(self, medicine_name: str) -> None:
        key = self.policy.key(medicine_name or "")
        if not key:
            return
        if any(self.policy.key(m.medicine_name) == key for m in self.medications):
            return
        self._warnings.pop(key, None)
