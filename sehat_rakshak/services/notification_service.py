# sehat_rakshak/services/notification_service.py
"""
Prescription notification fan-out.

Every action here is independent of the others and of the stored
prescription: a failed email never touches the prescription, and each
attempt is appended to the notifications table.
"""

import logging
from typing import Optional
from uuid import UUID

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sehat_rakshak.models.notification import Notification, NotificationChannel, NotificationStatus
from sehat_rakshak.models.patient import Patient
from sehat_rakshak.models.prescription import Prescription
from sehat_rakshak.notifications.email.base import EmailProviderConfig, send_email
from sehat_rakshak.notifications.whatsapp.base import build_mailto_link, build_whatsapp_link
from sehat_rakshak.schemas.notification import NotificationResult
from sehat_rakshak.schemas.prescription import ShareLinksResponse
from sehat_rakshak.services.prescription_service import get_prescription
from sehat_rakshak.utils.message_templates import (
    prescription_email_params,
    render_share_email,
    render_whatsapp_message,
)
from sehat_rakshak.utils.prescription_pdf import (
    PrescriptionPdfData,
    pdf_data_url as to_pdf_data_url,
    render_prescription_pdf,
)

logger = logging.getLogger(__name__)

MAX_LOG_MESSAGE_LENGTH = 2000


def _log_notification(
    db: Session,
    *,
    hospital_id: Optional[UUID],
    prescription_id: Optional[UUID],
    triggered_by_id: Optional[UUID],
    result: NotificationResult,
    subject: Optional[str],
    message: str,
) -> Optional[Notification]:
    """
    Append one row to the notification log.
    Logging must never break the main flow.
    """
    log_message = message or ""
    if len(log_message) > MAX_LOG_MESSAGE_LENGTH:
        log_message = log_message[: MAX_LOG_MESSAGE_LENGTH - 3] + "..."

    notif = Notification(
        hospital_id=hospital_id,
        prescription_id=prescription_id,
        triggered_by_id=triggered_by_id,
        channel=result.channel,
        recipient=result.recipient,
        subject=subject[:255] if subject else None,
        message=log_message,
        status=result.status,
        error_message=(result.detail or "")[:1000] or None,
    )
    try:
        db.add(notif)
        db.commit()
        return notif
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("[NOTIFICATION LOG ERROR] Failed to log notification: %s", e, exc_info=True)
        return None


def _attempt_prescription_email(
    config: EmailProviderConfig,
    patient: Patient,
    data: PrescriptionPdfData,
    doctor_name: str,
    pdf_data_url: Optional[str],
    transport: Optional[httpx.BaseTransport] = None,
) -> tuple[NotificationResult, dict[str, str]]:
    if not config.is_configured:
        logger.warning("Email provider not configured. Skipping prescription email.")
        return (
            NotificationResult(
                channel=NotificationChannel.EMAIL,
                status=NotificationStatus.SKIPPED,
                recipient=patient.email,
                detail="Email provider not configured",
            ),
            {},
        )

    if not patient.email:
        logger.warning("Patient email not provided. Skipping prescription email. patient=%s", patient.id)
        return (
            NotificationResult(
                channel=NotificationChannel.EMAIL,
                status=NotificationStatus.SKIPPED,
                detail="Patient has no email address",
            ),
            {},
        )

    params = prescription_email_params(data, to_email=patient.email, pdf_data_url=pdf_data_url)
    params["doctor_name"] = doctor_name

    try:
        sent_to = send_email(config, patient.email, params, reason="prescription", transport=transport)
    except Exception as exc:
        logger.error("Failed to send prescription email to %s: %s", patient.email, exc, exc_info=True)
        return (
            NotificationResult(
                channel=NotificationChannel.EMAIL,
                status=NotificationStatus.FAILED,
                recipient=patient.email,
                detail=str(exc) or exc.__class__.__name__,
            ),
            params,
        )

    return (
        NotificationResult(channel=NotificationChannel.EMAIL, status=NotificationStatus.SENT, recipient=sent_to),
        params,
    )


def send_prescription_email(
    config: EmailProviderConfig,
    patient: Patient,
    data: PrescriptionPdfData,
    doctor_name: str,
    pdf_data_url: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> bool:
    """
    Email the prescription to the patient.

    Returns False without raising when the provider is not configured, the
    patient has no email address, or the provider call fails.
    """
    result, _ = _attempt_prescription_email(config, patient, data, doctor_name, pdf_data_url, transport)
    return result.delivered


def deliver_prescription_email(
    db: Session,
    prescription_id: UUID,
    config: EmailProviderConfig,
    *,
    hospital_id: Optional[UUID] = None,
    triggered_by_id: Optional[UUID] = None,
    support_email: Optional[str] = None,
    support_phone: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> NotificationResult:
    """
    Render the PDF, email it and record the attempt.
    Used by the post-create background task and the resend endpoint.
    """
    prescription = get_prescription(db, prescription_id=prescription_id, hospital_id=hospital_id)
    data = PrescriptionPdfData.from_prescription(
        prescription,
        support_email=support_email,
        support_phone=support_phone,
    )

    data_url = None
    if config.is_configured and prescription.patient.email:
        data_url = to_pdf_data_url(render_prescription_pdf(data))

    result, params = _attempt_prescription_email(
        config,
        prescription.patient,
        data,
        prescription.doctor.display_name,
        data_url,
        transport,
    )

    _log_notification(
        db,
        hospital_id=prescription.hospital_id,
        prescription_id=prescription.id,
        triggered_by_id=triggered_by_id,
        result=result,
        subject=params.get("subject"),
        message=params.get("message") or result.detail or "",
    )
    logger.info(
        "Prescription email %s. rx=%s recipient=%s",
        result.status.value,
        prescription.id,
        result.recipient,
    )
    return result


def build_share_links(data: PrescriptionPdfData, *, email: Optional[str], mobile: Optional[str]) -> ShareLinksResponse:
    """WhatsApp and mailto links with the prescription summary prefilled. Pure."""
    share_email = render_share_email(data)
    return ShareLinksResponse(
        whatsapp_url=build_whatsapp_link(
            mobile,
            render_whatsapp_message(data.patient_name, data.doctor_name, data.diagnosis, data.medications),
        ),
        mailto_url=build_mailto_link(email, share_email.subject, share_email.body),
    )


def share_links_for_prescription(db: Session, *, prescription_id: UUID, hospital_id: Optional[UUID] = None) -> ShareLinksResponse:
    prescription = get_prescription(db, prescription_id=prescription_id, hospital_id=hospital_id)
    data = PrescriptionPdfData.from_prescription(prescription)
    return build_share_links(data, email=prescription.patient.email, mobile=prescription.patient.mobile)


def record_whatsapp_share(
    db: Session,
    prescription: Prescription,
    data: PrescriptionPdfData,
    *,
    triggered_by_id: Optional[UUID] = None,
) -> Optional[Notification]:
    """
    Log the prefilled WhatsApp message as PENDING.
    The user sends it from their own device, so no delivery outcome is ever known.
    Returns None when the patient has no usable mobile number.
    """
    mobile = prescription.patient.mobile
    message = render_whatsapp_message(data.patient_name, data.doctor_name, data.diagnosis, data.medications)
    if build_whatsapp_link(mobile, message) is None:
        return None

    return _log_notification(
        db,
        hospital_id=prescription.hospital_id,
        prescription_id=prescription.id,
        triggered_by_id=triggered_by_id,
        result=NotificationResult(
            channel=NotificationChannel.WHATSAPP,
            status=NotificationStatus.PENDING,
            recipient=mobile,
        ),
        subject=None,
        message=message,
    )
