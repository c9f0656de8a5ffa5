# sehat_rakshak/services/prescription_service.py
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, ContextManager, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from sehat_rakshak.core.locks import LockTimeoutError, patient_lock
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.patient import Patient
from sehat_rakshak.models.prescription import Medication, Prescription
from sehat_rakshak.services.prescription_composer import PrescriptionDraft
from sehat_rakshak.utils.datetime_utils import add_calendar_days, today_utc

logger = logging.getLogger(__name__)

PatientLock = Callable[[UUID], ContextManager[None]]


class PatientNotFoundError(Exception):
    pass


class DoctorNotFoundError(Exception):
    pass


class InactiveRecordError(Exception):
    pass


class PrescriptionNotFoundError(Exception):
    pass


class PrescriptionLockTimeout(Exception):
    pass


class PrescriptionPersistError(Exception):
    """
    The prescription unit could not be written. Nothing was committed.

    `stage` names the insert that failed: "prescription" or "medications".
    """

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Failed to save {stage}: {message}")


def build_medications(draft: PrescriptionDraft, start_date: date) -> list[Medication]:
    """
    Medication rows for a draft, in draft order.
    start_date is the prescription date; end_date = start_date + duration_days.
    """
    return [
        Medication(
            position=position,
            medicine_name=med.medicine_name,
            dosage=med.dosage,
            frequency=med.frequency.value,
            timing=med.timing.value,
            duration_days=med.duration_days,
            start_date=start_date,
            end_date=add_calendar_days(start_date, med.duration_days),
            instructions=med.instructions,
        )
        for position, med in enumerate(draft.medications)
    ]


def get_active_patient(db: Session, *, hospital_id: UUID, patient_id: UUID) -> Patient:
    patient = (
        db.query(Patient)
        .filter(Patient.id == patient_id, Patient.hospital_id == hospital_id)
        .first()
    )
    if not patient:
        raise PatientNotFoundError("Patient not found")
    if not patient.is_active:
        raise InactiveRecordError("Patient record is deactivated")
    return patient


def get_active_doctor(db: Session, *, hospital_id: UUID, doctor_id: UUID) -> Doctor:
    doctor = (
        db.query(Doctor)
        .options(joinedload(Doctor.user))
        .filter(Doctor.id == doctor_id, Doctor.hospital_id == hospital_id)
        .first()
    )
    if not doctor:
        raise DoctorNotFoundError("Doctor not found")
    if not doctor.is_active:
        raise InactiveRecordError("Doctor is not active")
    return doctor


def create_prescription(
    db: Session,
    *,
    hospital_id: UUID,
    patient_id: UUID,
    doctor_id: UUID,
    draft: PrescriptionDraft,
    today: Optional[date] = None,
    lock: Optional[PatientLock] = None,
    lock_timeout: float = 10.0,
) -> Prescription:
    """
    Write one prescription and all of its medications as a single commit.

    Either every row is visible afterwards or none is. Submissions for the same
    patient are serialized through a per-patient lock.
    """
    get_active_patient(db, hospital_id=hospital_id, patient_id=patient_id)
    get_active_doctor(db, hospital_id=hospital_id, doctor_id=doctor_id)

    today = today or today_utc()
    acquire = lock or (lambda pid: patient_lock(pid, timeout=lock_timeout))

    try:
        with acquire(patient_id):
            prescription = _insert_prescription_unit(
                db,
                hospital_id=hospital_id,
                patient_id=patient_id,
                doctor_id=doctor_id,
                draft=draft,
                today=today,
            )
    except LockTimeoutError as e:
        raise PrescriptionLockTimeout(
            "Another prescription for this patient is being saved. Please retry."
        ) from e

    logger.info(
        "Prescription created. rx=%s patient=%s doctor=%s medications=%d",
        prescription.id,
        patient_id,
        doctor_id,
        len(draft.medications),
    )
    return prescription


def _insert_prescription_unit(
    db: Session,
    *,
    hospital_id: UUID,
    patient_id: UUID,
    doctor_id: UUID,
    draft: PrescriptionDraft,
    today: date,
) -> Prescription:
    prescription = Prescription(
        hospital_id=hospital_id,
        patient_id=patient_id,
        doctor_id=doctor_id,
        diagnosis=draft.diagnosis,
        notes=draft.notes,
        follow_up_date=draft.follow_up_date,
        prescription_date=today,
    )

    stage = "prescription"
    try:
        db.add(prescription)
        db.flush()  # assigns prescription.id

        stage = "medications"
        for medication in build_medications(draft, today):
            medication.prescription_id = prescription.id
            db.add(medication)
        db.flush()

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Prescription write failed at %s stage. patient=%s err=%s", stage, patient_id, e)
        raise PrescriptionPersistError(stage, str(e.__class__.__name__)) from e

    db.refresh(prescription)
    return prescription


def get_prescription(db: Session, *, prescription_id: UUID, hospital_id: Optional[UUID] = None) -> Prescription:
    query = (
        db.query(Prescription)
        .options(
            joinedload(Prescription.patient),
            joinedload(Prescription.doctor).joinedload(Doctor.user),
            joinedload(Prescription.medications),
        )
        .filter(Prescription.id == prescription_id)
    )
    if hospital_id is not None:
        query = query.filter(Prescription.hospital_id == hospital_id)
    prescription = query.first()
    if not prescription:
        raise PrescriptionNotFoundError("Prescription not found")
    return prescription


def list_prescriptions_for_patient(
    db: Session,
    *,
    patient_id: UUID,
    hospital_id: Optional[UUID] = None,
    limit: Optional[int] = None,
) -> list[Prescription]:
    query = (
        db.query(Prescription)
        .options(
            joinedload(Prescription.doctor).joinedload(Doctor.user),
            joinedload(Prescription.medications),
        )
        .filter(Prescription.patient_id == patient_id)
        .order_by(Prescription.prescription_date.desc(), Prescription.created_at.desc())
    )
    if hospital_id is not None:
        query = query.filter(Prescription.hospital_id == hospital_id)
    if limit:
        query = query.limit(limit)
    return query.all()


def list_active_medications(
    db: Session,
    *,
    patient_id: UUID,
    today: Optional[date] = None,
) -> list[Medication]:
    """Medications whose end_date is today or later, soonest-ending first."""
    today = today or today_utc()
    return (
        db.query(Medication)
        .join(Prescription, Medication.prescription_id == Prescription.id)
        .filter(
            Prescription.patient_id == patient_id,
            Prescription.is_active.is_(True),
            Medication.end_date >= today,
        )
        .order_by(Medication.end_date.asc(), Medication.position.asc())
        .all()
    )
