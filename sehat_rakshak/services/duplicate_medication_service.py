# sehat_rakshak/services/duplicate_medication_service.py
"""
Advisory duplicate-medication detection.

A new medicine line "overlaps" when the same patient already has a
medication (on another prescription) whose name matches and whose end_date
is today or later. The check never blocks prescription creation: query
errors degrade to "no duplicates found".
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sehat_rakshak.models.prescription import Medication, Prescription
from sehat_rakshak.utils.datetime_utils import today_utc

logger = logging.getLogger(__name__)


def normalize_medicine_name(name: Optional[str]) -> str:
    """Lowercase, drop punctuation, collapse whitespace: ' Para-cetamol  500 ' -> 'para cetamol 500'."""
    if not name:
        return ""
    cleaned = re.sub(r"[^\w\s]", " ", name.lower())
    return " ".join(cleaned.split())


class MatchPolicy(Protocol):
    name: str

    def key(self, medicine_name: str) -> str:
        """Key used to group names that count as 'the same' for warnings."""

    def matches(self, existing_name: str, candidate: str) -> bool:
        ...


class SubstringMatchPolicy:
    """
    Case-insensitive substring match of the typed name inside existing names.

    Known false positives: "Para" matches "Paracetamol", and "Paracetamol"
    matches "Paracetamol 500" even when that is intended. Known false
    negatives: brand vs generic names.
    """

    name = "substring"

    def key(self, medicine_name: str) -> str:
        return medicine_name.strip().lower()

    def matches(self, existing_name: str, candidate: str) -> bool:
        candidate = candidate.strip().lower()
        return bool(candidate) and candidate in (existing_name or "").lower()


class NormalizedNameMatchPolicy:
    """Equality after normalize_medicine_name()."""

    name = "normalized"

    def key(self, medicine_name: str) -> str:
        return normalize_medicine_name(medicine_name)

    def matches(self, existing_name: str, candidate: str) -> bool:
        candidate_key = normalize_medicine_name(candidate)
        return bool(candidate_key) and normalize_medicine_name(existing_name) == candidate_key


SUBSTRING = SubstringMatchPolicy()
NORMALIZED = NormalizedNameMatchPolicy()

MATCH_POLICIES: dict[str, MatchPolicy] = {
    SUBSTRING.name: SUBSTRING,
    NORMALIZED.name: NORMALIZED,
}


@dataclass(frozen=True)
class MedicationOverlap:
    medicine_name: str
    end_date: date
    prescription_id: UUID


@dataclass(frozen=True)
class DuplicateWarning:
    medicine_name: str
    active_until: date

    @property
    def message(self) -> str:
        return format_duplicate_warning(self.medicine_name, self.active_until)


def format_duplicate_warning(medicine_name: str, active_until: date) -> str:
    return f'"{medicine_name}" is already prescribed and active until {active_until.isoformat()}'


def find_active_overlaps(
    db: Session,
    *,
    patient_id: UUID,
    medicine_name: str,
    today: Optional[date] = None,
    exclude_prescription_id: Optional[UUID] = None,
    policy: MatchPolicy = SUBSTRING,
) -> list[MedicationOverlap]:
    """
    Return the patient's still-active medication lines whose name matches.

    Read-only. An empty or whitespace-only name returns [] without querying.
    Query errors propagate; use check_duplicate_medicine() for the advisory path.
    """
    if not medicine_name or not medicine_name.strip():
        return []

    today = today or today_utc()

    query = (
        db.query(Medication.medicine_name, Medication.end_date, Medication.prescription_id)
        .join(Prescription, Medication.prescription_id == Prescription.id)
        .filter(
            Prescription.patient_id == patient_id,
            Prescription.is_active.is_(True),
            Medication.end_date >= today,
        )
    )
    if exclude_prescription_id:
        query = query.filter(Prescription.id != exclude_prescription_id)

    overlaps = [
        MedicationOverlap(medicine_name=name, end_date=end_date, prescription_id=prescription_id)
        for name, end_date, prescription_id in query.all()
        if policy.matches(name, medicine_name)
    ]
    overlaps.sort(key=lambda o: o.end_date, reverse=True)
    return overlaps


def check_duplicate_medicine(
    db: Session,
    *,
    patient_id: UUID,
    medicine_name: str,
    today: Optional[date] = None,
    exclude_prescription_id: Optional[UUID] = None,
    policy: MatchPolicy = SUBSTRING,
) -> Optional[DuplicateWarning]:
    """
    Advisory check for one typed medicine name.

    Returns a warning carrying the latest active end date among the matches,
    or None when nothing overlaps or the lookup failed.
    """
    try:
        overlaps = find_active_overlaps(
            db,
            patient_id=patient_id,
            medicine_name=medicine_name,
            today=today,
            exclude_prescription_id=exclude_prescription_id,
            policy=policy,
        )
    except SQLAlchemyError as e:
        # A failed statement leaves the transaction aborted on Postgres; the caller keeps using this session.
        db.rollback()
        logger.warning(
            "Duplicate medication check failed (ignored). patient=%s medicine=%r err=%s",
            patient_id,
            medicine_name,
            e,
        )
        return None

    if not overlaps:
        return None
    return DuplicateWarning(medicine_name=medicine_name.strip(), active_until=overlaps[0].end_date)


def check_duplicates_for_names(
    db: Session,
    *,
    patient_id: UUID,
    medicine_names: Iterable[str],
    today: Optional[date] = None,
    exclude_prescription_id: Optional[UUID] = None,
    policy: MatchPolicy = SUBSTRING,
) -> list[DuplicateWarning]:
    """
    One warning per distinct name (as grouped by the policy), in order of first appearance.
    """
    warnings: list[DuplicateWarning] = []
    seen: set[str] = set()
    for name in medicine_names:
        key = policy.key(name or "")
        if not key or key in seen:
            continue
        seen.add(key)
        warning = check_duplicate_medicine(
            db,
            patient_id=patient_id,
            medicine_name=name,
            today=today,
            exclude_prescription_id=exclude_prescription_id,
            policy=policy,
        )
        if warning:
            warnings.append(warning)
    return warnings
