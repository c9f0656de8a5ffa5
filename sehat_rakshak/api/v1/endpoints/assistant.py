# sehat_rakshak/api/v1/endpoints/assistant.py
from typing import Optional
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sehat_rakshak.core.database import get_db
from sehat_rakshak.core.tenant_context import TenantContext, get_tenant_context
from sehat_rakshak.dependencies.providers import get_assistant_config, get_assistant_transport
from sehat_rakshak.schemas.assistant import (
    AskRequest,
    AssistantResponse,
    ExplainRequest,
    SymptomsRequest,
    TranslateRequest,
)
from sehat_rakshak.services import assistant_service
from sehat_rakshak.services.assistant_service import AssistantConfig, AssistantError
from sehat_rakshak.services.patient_service import get_patient
from sehat_rakshak.services.prescription_service import PatientNotFoundError, PrescriptionNotFoundError, get_prescription

router = APIRouter()


def _check_patient(db: Session, ctx: TenantContext, patient_id: Optional[UUID]) -> None:
    if patient_id is None:
        return
    try:
        get_patient(db, hospital_id=ctx.hospital_id, patient_id=patient_id)
    except PatientNotFoundError:
        raise HTTPException(status_code=404, detail="Patient not found")


@router.post("/ask", response_model=AssistantResponse)
def ask(
    payload: AskRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    config: AssistantConfig = Depends(get_assistant_config),
    transport: Optional[httpx.BaseTransport] = Depends(get_assistant_transport),
) -> AssistantResponse:
    _check_patient(db, ctx, payload.patient_id)
    try:
        return assistant_service.ask_health_question(
            config,
            payload.query,
            db=db,
            patient_id=payload.patient_id,
            language=payload.language,
            transport=transport,
        )
    except AssistantError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/symptoms", response_model=AssistantResponse)
def symptoms(
    payload: SymptomsRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    config: AssistantConfig = Depends(get_assistant_config),
    transport: Optional[httpx.BaseTransport] = Depends(get_assistant_transport),
) -> AssistantResponse:
    _check_patient(db, ctx, payload.patient_id)
    try:
        return assistant_service.analyze_symptoms(
            config,
            payload.symptoms,
            db=db,
            patient_id=payload.patient_id,
            language=payload.language,
            transport=transport,
        )
    except AssistantError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/prescriptions/{prescription_id}/explain", response_model=AssistantResponse)
def explain(
    prescription_id: UUID,
    payload: ExplainRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant_context),
    config: AssistantConfig = Depends(get_assistant_config),
    transport: Optional[httpx.BaseTransport] = Depends(get_assistant_transport),
) -> AssistantResponse:
    try:
        prescription = get_prescription(db, prescription_id=prescription_id, hospital_id=ctx.hospital_id)
    except PrescriptionNotFoundError:
        raise HTTPException(status_code=404, detail="Prescription not found")
    try:
        return assistant_service.explain_prescription(
            config,
            prescription,
            db=db,
            language=payload.language,
            transport=transport,
        )
    except AssistantError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/translate", response_model=AssistantResponse)
def translate(
    payload: TranslateRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    config: AssistantConfig = Depends(get_assistant_config),
    transport: Optional[httpx.BaseTransport] = Depends(get_assistant_transport),
) -> AssistantResponse:
    if payload.source == payload.target:
        raise HTTPException(status_code=400, detail="Source and target languages must differ")
    try:
        return assistant_service.translate_medical_text(
            config,
            payload.text,
            source=payload.source,
            target=payload.target,
            transport=transport,
        )
    except AssistantError as e:
        raise HTTPException(status_code=502, detail=str(e))
