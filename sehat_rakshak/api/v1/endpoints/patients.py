# sehat_rakshak/api/v1/endpoints/patients.py
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from sehat_rakshak.core.database import get_db
from sehat_rakshak.core.tenant_context import TenantContext
from sehat_rakshak.dependencies.authz import FRONT_DESK_ROLES, STAFF_ROLES, require_roles
from sehat_rakshak.schemas.patient import PatientCreate, PatientResponse, PatientStats, PatientUpdate
from sehat_rakshak.schemas.prescription import ActiveMedicationResponse
from sehat_rakshak.services import patient_service
from sehat_rakshak.services.patient_service import PatientAlreadyDischargedError, PatientStatusFilter
from sehat_rakshak.services.prescription_service import (
    DoctorNotFoundError,
    PatientNotFoundError,
    list_active_medications,
)

router = APIRouter()


@router.post(
    "",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(FRONT_DESK_ROLES)),
) -> PatientResponse:
    """
    Register a patient in the current hospital. MRN and QR id are generated.
    """
    try:
        patient = patient_service.register_patient(
            db,
            hospital_id=ctx.hospital_id,
            payload=payload,
            created_by_id=ctx.user.id,
        )
    except DoctorNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PatientResponse.model_validate(patient)


@router.get("", response_model=list[PatientResponse])
def list_patients(
    status_filter: PatientStatusFilter = Query(PatientStatusFilter.ALL, alias="status"),
    q: str | None = Query(None, description="Search by name, MRN, mobile or QR id"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> list[PatientResponse]:
    patients = patient_service.list_patients(
        db,
        hospital_id=ctx.hospital_id,
        status=status_filter,
        q=q,
        limit=limit,
        offset=offset,
    )
    return [PatientResponse.model_validate(p) for p in patients]


@router.get("/stats", response_model=PatientStats)
def patient_stats(
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> PatientStats:
    """Reception dashboard counters."""
    return patient_service.get_patient_stats(db, hospital_id=ctx.hospital_id)


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> PatientResponse:
    try:
        patient = patient_service.get_patient(db, hospital_id=ctx.hospital_id, patient_id=patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    return PatientResponse.model_validate(patient)


@router.patch("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: UUID,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(FRONT_DESK_ROLES)),
) -> PatientResponse:
    try:
        patient = patient_service.update_patient(
            db,
            hospital_id=ctx.hospital_id,
            patient_id=patient_id,
            payload=payload,
        )
    except (PatientNotFoundError, DoctorNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PatientResponse.model_validate(patient)


@router.post("/{patient_id}/deactivate", response_model=PatientResponse)
def deactivate_patient(
    patient_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(FRONT_DESK_ROLES)),
) -> PatientResponse:
    try:
        patient = patient_service.deactivate_patient(db, hospital_id=ctx.hospital_id, patient_id=patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    return PatientResponse.model_validate(patient)


@router.post("/{patient_id}/discharge", response_model=PatientResponse)
def discharge_patient(
    patient_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(FRONT_DESK_ROLES)),
) -> PatientResponse:
    try:
        patient = patient_service.discharge_patient(db, hospital_id=ctx.hospital_id, patient_id=patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    except PatientAlreadyDischargedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}/active-medications", response_model=list[ActiveMedicationResponse])
def active_medications(
    patient_id: UUID,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(require_roles(STAFF_ROLES)),
) -> list[ActiveMedicationResponse]:
    """Medications still running today, soonest-ending first."""
    try:
        patient_service.get_patient(db, hospital_id=ctx.hospital_id, patient_id=patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")
    medications = list_active_medications(db, patient_id=patient_id)
    return [ActiveMedicationResponse.model_validate(m) for m in medications]
