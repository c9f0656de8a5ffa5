# sehat_rakshak/api/v1/endpoints/prescriptions.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from sehat_rakshak.background.tasks import enqueue_task, run_with_session
from sehat_rakshak.core.config import Settings, get_settings
from sehat_rakshak.core.database import get_db
from sehat_rakshak.core.tenant_context import TenantContext
from sehat_rakshak.dependencies.authz import CLINICAL_ROLES, STAFF_ROLES, require_roles
from sehat_rakshak.dependencies.providers import get_email_config, get_email_transport
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.prescription import Prescription
from sehat_rakshak.models.user import AppRole
from sehat_rakshak.notifications.email.base import EmailProviderConfig
from sehat_rakshak.schemas.notification import NotificationResult
from sehat_rakshak.schemas.prescription import (
    DuplicateCheckRequest,
    DuplicateCheckResponse,
    MedicationResponse,
    PrescriptionCreate,
    PrescriptionCreateResponse,
    PrescriptionResponse,
    ShareLinksResponse,
)
from sehat_rakshak.services.duplicate_medication_service import MATCH_POLICIES, check_duplicates_for_names
from sehat_rakshak.services.notification_service import (
    build_share_links,
    deliver_prescription_email,
    record_whatsapp_share,
    share_links_for_prescription,
)
from sehat_rakshak.services.patient_service import get_patient
from sehat_rakshak.services.prescription_composer import PrescriptionComposer, PrescriptionValidationError
from sehat_rakshak.services.prescription_service import (
    DoctorNotFoundError,
    InactiveRecordError,
    PatientNotFoundError,
    PrescriptionLockTimeout,
    PrescriptionNotFoundError,
    PrescriptionPersistError,
    create_prescription,
    get_prescription,
    list_prescriptions_for_patient,
)
from sehat_rakshak.utils.prescription_pdf import (
    PrescriptionPdfData,
    pdf_data_url,
    prescription_pdf_filename,
    render_prescription_pdf,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _resolve_doctor_id(db: Session, ctx: TenantContext, requested: Optional[UUID]) -> UUID:
    """
    Doctors always prescribe as themselves.
    Hospital admins must name the doctor they prescribe on behalf of.
    """
    if ctx.user.role == AppRole.DOCTOR:
        doctor = (
            db.query(Doctor)
            .filter(Doctor.user_id == ctx.user.id, Doctor.hospital_id == ctx.hospital_id)
            .first()
        )
        if not doctor:
            raise HTTPException(status_code=403, detail="No doctor record is linked to this account.")
        if requested and requested != doctor.id:
            raise HTTPException(status_code=403, detail="Doctors can only prescribe as themselves.")
        return doctor.id

    if not requested:
        raise HTTPException(status_code=400, detail="doctor_id is required when prescribing on behalf of a doctor.")
    return requested


def _load_prescription(db: Session, ctx: TenantContext, prescription_id: UUID) -> Prescription:
    try:
        return get_prescription(db, prescription_id=prescription_id, hospital_id=ctx.hospital_id)
    except PrescriptionNotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")


def _pdf_data(prescription: Prescription, settings: Settings) -> PrescriptionPdfData:
    return PrescriptionPdfData.from_prescription(
        prescription,
        support_email=settings.support_email,
        support_phone=settings.support_phone,
    )


def _build_response_from_instance(prescription: Prescription) -> PrescriptionResponse:
    patient = getattr(prescription, "patient", None)
    doctor = getattr(prescription, "doctor", None)
    return PrescriptionResponse(
        id=prescription.id,
        patient_id=prescription.patient_id,
        doctor_id=prescription.doctor_id,
        diagnosis=prescription.diagnosis,
        notes=prescription.notes,
        prescription_date=prescription.prescription_date,
        follow_up_date=prescription.follow_up_date,
        created_at=prescription.created_at,
        medications=[MedicationResponse.model_validate(m) for m in prescription.medications],
        patient_name=patient.full_name if patient else None,
        doctor_name=doctor.display_name if doctor else None,
    )


@router.post("/duplicate-check", response_model=DuplicateCheckResponse)
def duplicate_check_endpoint(
    payload: DuplicateCheckRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(CLINICAL_ROLES)),
) -> DuplicateCheckResponse:
    """
    Advisory: which typed medicine names the patient is already taking.
    Never fails because of the lookup itself.
    """
    try:
        get_patient(db, hospital_id=ctx.hospital_id, patient_id=payload.patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")

    warnings = check_duplicates_for_names(
        db,
        patient_id=payload.patient_id,
        medicine_names=payload.medicine_names,
        exclude_prescription_id=payload.exclude_prescription_id,
        policy=MATCH_POLICIES[payload.match_policy],
    )
    return DuplicateCheckResponse(warnings=[w.message for w in warnings])


@router.post("", response_model=PrescriptionCreateResponse, status_code=status.HTTP_201_CREATED)
def create_prescription_endpoint(
    payload: PrescriptionCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(CLINICAL_ROLES)),
    settings: Settings = Depends(get_settings),
    email_config: EmailProviderConfig = Depends(get_email_config),
    email_transport: Optional[httpx.BaseTransport] = Depends(get_email_transport),
) -> PrescriptionCreateResponse:
    doctor_id = _resolve_doctor_id(db, ctx, payload.doctor_id)

    composer = PrescriptionComposer.from_payload(payload)
    try:
        draft = composer.build()
    except PrescriptionValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors)

    # Advisory; computed before the write so the new lines do not match themselves.
    warnings = check_duplicates_for_names(
        db,
        patient_id=payload.patient_id,
        medicine_names=[m.medicine_name for m in draft.medications],
    )

    try:
        prescription = create_prescription(
            db,
            hospital_id=ctx.hospital_id,
            patient_id=payload.patient_id,
            doctor_id=doctor_id,
            draft=draft,
            lock_timeout=settings.prescription_lock_timeout_seconds,
        )
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    except DoctorNotFoundError:
        raise HTTPException(status_code=404, detail="Doctor not found")
    except InactiveRecordError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except PrescriptionLockTimeout as e:
        raise HTTPException(status_code=503, detail=str(e))
    except PrescriptionPersistError as e:
        raise HTTPException(status_code=500, detail=str(e))

    prescription = get_prescription(db, prescription_id=prescription.id)
    data = _pdf_data(prescription, settings)
    share_links = build_share_links(data, email=prescription.patient.email, mobile=prescription.patient.mobile)
    if share_links.whatsapp_url:
        record_whatsapp_share(db, prescription, data, triggered_by_id=ctx.user.id)

    # Delivery happens after the response; its outcome lands in the notification log.
    email_scheduled = email_config.is_configured and bool(prescription.patient.email)
    if email_scheduled:
        enqueue_task(
            background_tasks,
            run_with_session,
            deliver_prescription_email,
            prescription.id,
            email_config,
            hospital_id=ctx.hospital_id,
            triggered_by_id=ctx.user.id,
            support_email=settings.support_email,
            support_phone=settings.support_phone,
            transport=email_transport,
        )

    return PrescriptionCreateResponse(
        prescription=_build_response_from_instance(prescription),
        duplicate_warnings=[w.message for w in warnings],
        share_links=share_links,
        email_scheduled=email_scheduled,
    )


@router.get("", response_model=list[PrescriptionResponse])
def list_prescriptions_endpoint(
    patient_id: UUID = Query(...),
    limit: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> list[PrescriptionResponse]:
    """Newest first. The doctor screen asks for limit=5."""
    prescriptions = list_prescriptions_for_patient(
        db,
        patient_id=patient_id,
        hospital_id=ctx.hospital_id,
        limit=limit,
    )
    return [_build_response_from_instance(p) for p in prescriptions]


@router.get("/{prescription_id}", response_model=PrescriptionResponse)
def get_prescription_endpoint(
    prescription_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> PrescriptionResponse:
    return _build_response_from_instance(_load_prescription(db, ctx, prescription_id))


@router.get("/{prescription_id}/pdf")
def download_prescription_pdf(
    prescription_id: UUID,
    inline: bool = Query(False),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
    settings: Settings = Depends(get_settings),
) -> Response:
    prescription = _load_prescription(db, ctx, prescription_id)
    content = render_prescription_pdf(_pdf_data(prescription, settings))
    filename = prescription_pdf_filename(prescription.patient.mrn, prescription.prescription_date)
    disposition = "inline" if inline else "attachment"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f"{disposition}; filename={filename}"},
    )


@router.get("/{prescription_id}/pdf/data-url")
def prescription_pdf_data_url(
    prescription_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
    settings: Settings = Depends(get_settings),
) -> dict:
    prescription = _load_prescription(db, ctx, prescription_id)
    content = render_prescription_pdf(_pdf_data(prescription, settings))
    return {
        "filename": prescription_pdf_filename(prescription.patient.mrn, prescription.prescription_date),
        "data_url": pdf_data_url(content),
    }


@router.post("/{prescription_id}/email", response_model=NotificationResult)
def resend_prescription_email(
    prescription_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(CLINICAL_ROLES)),
    settings: Settings = Depends(get_settings),
    email_config: EmailProviderConfig = Depends(get_email_config),
    email_transport: Optional[httpx.BaseTransport] = Depends(get_email_transport),
) -> NotificationResult:
    """
    Send (or re-send) the prescription email now.
    Delivery problems are reported in the result, not as HTTP errors.
    """
    _load_prescription(db, ctx, prescription_id)
    return deliver_prescription_email(
        db,
        prescription_id,
        email_config,
        hospital_id=ctx.hospital_id,
        triggered_by_id=ctx.user.id,
        support_email=settings.support_email,
        support_phone=settings.support_phone,
        transport=email_transport,
    )


@router.get("/{prescription_id}/share-links", response_model=ShareLinksResponse)
def prescription_share_links(
    prescription_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> ShareLinksResponse:
    _load_prescription(db, ctx, prescription_id)
    return share_links_for_prescription(db, prescription_id=prescription_id, hospital_id=ctx.hospital_id)
