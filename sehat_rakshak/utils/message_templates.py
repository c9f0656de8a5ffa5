# sehat_rakshak/utils/message_templates.py
"""
Plain-text messages sent to patients about a prescription.

Every builder is pure: same input, same text. Dates use the en-IN display
format (dd/mm/yyyy).
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from sehat_rakshak.schemas.prescription import FrequencyCode
from sehat_rakshak.utils.datetime_utils import format_display_date
from sehat_rakshak.utils.prescription_pdf import PdfMedication, PrescriptionPdfData

APP_NAME = "Sehat Rakshak"
TAGLINE = "Aapki Sehat, Hamara Vachan"

PATIENT_INSTRUCTIONS = (
    "Take medicines exactly as prescribed",
    "Complete the full course even if you feel better",
    "Contact your doctor if you experience any side effects",
    "Keep medicines out of reach of children",
    "Store in a cool, dry place",
)


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    body: str


def _doctor(name: str) -> str:
    name = (name or "").strip()
    return name if name.startswith("Dr.") else f"Dr. {name}"


def _frequency_text(code: str) -> str:
    try:
        return f"{code} ({FrequencyCode(code).label})"
    except ValueError:
        return code


def format_medication_summary(medications: Sequence[PdfMedication]) -> str:
    """One line per medication: '1. Paracetamol - 500mg - 1-0-1 - After Food (5 days)'."""
    return "\n".join(
        f"{i}. {m.medicine_name} - {m.dosage} - {m.frequency} - {m.timing} ({m.duration_days} days)"
        for i, m in enumerate(medications, start=1)
    )


def format_medication_details(medications: Sequence[PdfMedication]) -> str:
    """Multi-line block used in the delivered email."""
    return "\n\n".join(
        f"{i}. {m.medicine_name} - {m.dosage}\n"
        f"   Take: {_frequency_text(m.frequency)}, {m.timing}\n"
        f"   Duration: {m.duration_days} days"
        for i, m in enumerate(medications, start=1)
    )


def render_whatsapp_message(
    patient_name: str,
    doctor_name: str,
    diagnosis: str,
    medications: Sequence[PdfMedication] = (),
) -> str:
    medication_block = f"Medications:\n{format_medication_summary(medications)}\n\n" if medications else ""
    return (
        f"Hello {patient_name},\n\n"
        f"Your prescription has been created by {_doctor(doctor_name)}.\n\n"
        f"Diagnosis: {diagnosis}\n\n"
        f"{medication_block}"
        f"Please download your prescription from {APP_NAME} portal.\n\n"
        "Thank you!"
    )


def render_share_email(data: PrescriptionPdfData, follow_up_date: Optional[date] = None) -> EmailMessage:
    """Subject and body prefilled into the user's mail client."""
    follow_up = follow_up_date or data.follow_up_date
    subject = f"Prescription from {_doctor(data.doctor_name)} - {format_display_date(data.prescription_date)}"
    body = (
        f"Dear {data.patient_name},\n\n"
        "Your prescription has been created.\n\n"
        f"Diagnosis: {data.diagnosis}\n\n"
        "Medications:\n"
        f"{format_medication_summary(data.medications)}\n\n"
        f"Clinical Notes: {data.notes or 'N/A'}\n\n"
        f"Follow-up Date: {format_display_date(follow_up) if follow_up else 'Not scheduled'}\n\n"
        "Best regards,\n"
        f"{_doctor(data.doctor_name)}\n"
        f"{APP_NAME}"
    )
    return EmailMessage(subject=subject, body=body)


def render_prescription_email(data: PrescriptionPdfData) -> EmailMessage:
    """Subject and body of the email sent through the email provider."""
    doctor = _doctor(data.doctor_name)
    notes = f"Clinical Notes: {data.notes}\n\n" if data.notes else ""
    instructions = "\n".join(f"- {line}" for line in PATIENT_INSTRUCTIONS)
    subject = f"New Prescription from {doctor} - {format_display_date(data.prescription_date)}"
    body = (
        f"Dear {data.patient_name},\n\n"
        f"Your prescription has been created by {doctor}.\n\n"
        f"Diagnosis: {data.diagnosis}\n\n"
        "Medications Prescribed:\n"
        f"{format_medication_details(data.medications)}\n\n"
        f"{notes}"
        "Important Instructions:\n"
        f"{instructions}\n\n"
        f"You can also download your prescription from the {APP_NAME} portal.\n\n"
        "Stay healthy!\n\n"
        f"{doctor}\n"
        f"{APP_NAME}\n"
        f"{TAGLINE}"
    )
    return EmailMessage(subject=subject, body=body)


def prescription_email_params(
    data: PrescriptionPdfData,
    *,
    to_email: str,
    pdf_data_url: Optional[str] = None,
) -> dict[str, str]:
    """Template parameters for the email provider's prescription template."""
    message = render_prescription_email(data)
    return {
        "to_email": to_email,
        "to_name": data.patient_name,
        "subject": message.subject,
        "patient_name": data.patient_name,
        "patient_mrn": data.patient_mrn,
        "doctor_name": data.doctor_name,
        "diagnosis": data.diagnosis,
        "prescription_date": format_display_date(data.prescription_date),
        "medications": format_medication_details(data.medications),
        "notes": data.notes or "N/A",
        "message": message.body,
        "pdf_attachment": pdf_data_url or "",
    }
