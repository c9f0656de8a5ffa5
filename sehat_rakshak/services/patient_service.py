# sehat_rakshak/services/patient_service.py
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.patient import Patient
from sehat_rakshak.schemas.patient import PatientCreate, PatientStats, PatientUpdate
from sehat_rakshak.services.prescription_service import DoctorNotFoundError, PatientNotFoundError
from sehat_rakshak.utils.datetime_utils import utc_now
from sehat_rakshak.utils.id_generators import generate_mrn, generate_qr_code_id

logger = logging.getLogger(__name__)


class PatientAlreadyDischargedError(Exception):
    pass


class PatientStatusFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    DISCHARGED = "discharged"


def _ensure_doctor_in_hospital(db: Session, hospital_id: UUID, doctor_id: Optional[UUID]) -> None:
    if doctor_id is None:
        return
    exists = (
        db.query(Doctor.id)
        .filter(Doctor.id == doctor_id, Doctor.hospital_id == hospital_id)
        .first()
    )
    if not exists:
        raise DoctorNotFoundError("Assigned doctor not found in this hospital")


def register_patient(
    db: Session,
    *,
    hospital_id: UUID,
    payload: PatientCreate,
    created_by_id: Optional[UUID] = None,
) -> Patient:
    """
    Register a patient in the hospital.
    MRN and QR id are generated here and never change afterwards.
    """
    _ensure_doctor_in_hospital(db, hospital_id, payload.assigned_doctor_id)

    patient = Patient(
        hospital_id=hospital_id,
        mrn=generate_mrn(db, hospital_id),
        qr_code_id=generate_qr_code_id(),
        full_name=payload.full_name,
        date_of_birth=payload.date_of_birth,
        gender=payload.gender,
        mobile=payload.mobile,
        email=payload.email,
        address=payload.address,
        blood_group=payload.blood_group,
        allergies=payload.allergies,
        emergency_contact_name=payload.emergency_contact_name,
        emergency_contact_mobile=payload.emergency_contact_mobile,
        assigned_doctor_id=payload.assigned_doctor_id,
        created_by_id=created_by_id,
    )

    try:
        db.add(patient)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(patient)
    logger.info("Patient registered. patient=%s mrn=%s hospital=%s", patient.id, patient.mrn, hospital_id)
    return patient


def get_patient(db: Session, *, hospital_id: UUID, patient_id: UUID) -> Patient:
    patient = (
        db.query(Patient)
        .filter(Patient.id == patient_id, Patient.hospital_id == hospital_id)
        .first()
    )
    if not patient:
        raise PatientNotFoundError("Patient not found")
    return patient


def update_patient(
    db: Session,
    *,
    hospital_id: UUID,
    patient_id: UUID,
    payload: PatientUpdate,
) -> Patient:
    patient = get_patient(db, hospital_id=hospital_id, patient_id=patient_id)

    update_data = payload.model_dump(exclude_unset=True)
    if "assigned_doctor_id" in update_data:
        _ensure_doctor_in_hospital(db, hospital_id, update_data["assigned_doctor_id"])
    if update_data.get("allergies") is None:
        update_data.pop("allergies", None)

    for field, value in update_data.items():
        setattr(patient, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(patient)
    return patient


def deactivate_patient(db: Session, *, hospital_id: UUID, patient_id: UUID) -> Patient:
    """Soft delete. The record and its prescriptions stay readable."""
    patient = get_patient(db, hospital_id=hospital_id, patient_id=patient_id)
    patient.is_active = False
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(patient)
    logger.info("Patient deactivated. patient=%s", patient_id)
    return patient


def discharge_patient(
    db: Session,
    *,
    hospital_id: UUID,
    patient_id: UUID,
    now: Optional[datetime] = None,
) -> Patient:
    patient = get_patient(db, hospital_id=hospital_id, patient_id=patient_id)
    if patient.is_discharged:
        raise PatientAlreadyDischargedError("Patient is already discharged")

    patient.is_discharged = True
    patient.discharge_date = now or utc_now()
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(patient)
    logger.info("Patient discharged. patient=%s", patient_id)
    return patient


def list_patients(
    db: Session,
    *,
    hospital_id: UUID,
    status: PatientStatusFilter = PatientStatusFilter.ALL,
    q: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Patient]:
    """
    Active patients of the hospital, newest first.
    `q` matches name, MRN, mobile or QR id (case-insensitive).
    """
    query = db.query(Patient).filter(
        Patient.hospital_id == hospital_id,
        Patient.is_active.is_(True),
    )

    if status == PatientStatusFilter.ACTIVE:
        query = query.filter(Patient.is_discharged.is_(False))
    elif status == PatientStatusFilter.DISCHARGED:
        query = query.filter(Patient.is_discharged.is_(True))

    if q and q.strip():
        term = f"%{q.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Patient.full_name).like(term),
                func.lower(Patient.mrn).like(term),
                func.lower(Patient.qr_code_id).like(term),
                Patient.mobile.like(term),
            )
        )

    return (
        query.order_by(Patient.created_at.desc(), Patient.full_name.asc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def get_patient_stats(db: Session, *, hospital_id: UUID, now: Optional[datetime] = None) -> PatientStats:
    """Reception dashboard counters over active (not deactivated) patients."""
    now = now or utc_now()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)

    base = db.query(Patient).filter(
        Patient.hospital_id == hospital_id,
        Patient.is_active.is_(True),
    )
    total = base.count()
    discharged = base.filter(Patient.is_discharged.is_(True)).count()
    discharges_today = base.filter(
        Patient.is_discharged.is_(True),
        Patient.discharge_date >= day_start,
        Patient.discharge_date < day_end,
    ).count()

    return PatientStats(
        total=total,
        active=total - discharged,
        discharged=discharged,
        discharges_today=discharges_today,
    )
