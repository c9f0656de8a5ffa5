# sehat_rakshak/utils/prescription_pdf.py
"""
Render a prescription to PDF using reportlab.

Layout: coloured header band, patient block, diagnosis, clinical notes,
medication table, doctor signature and a fixed footer. The document is built
in reportlab's invariant mode, so the same input always yields the same bytes.
"""

import base64
from dataclasses import dataclass, field
from datetime import date
from io import BytesIO
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from sehat_rakshak.models.prescription import Prescription
from sehat_rakshak.utils.datetime_utils import calculate_age, format_display_date
from sehat_rakshak.utils.file_storage import save_bytes_to_storage

BRAND_BLUE = colors.Color(59 / 255, 130 / 255, 246 / 255)

APP_TITLE = "SEHAT RAKSHAK"
TAGLINE = "Aapki Sehat, Hamara Vachan"
FOOTER_LINES = (
    "This is a digitally generated prescription. No physical signature required.",
    "For queries, contact: {support_email} | {support_phone}",
)

TABLE_HEADER = ["#", "Medicine", "Dosage", "Frequency", "Timing", "Duration", "Instructions"]
TABLE_COL_WIDTHS = [10 * mm, 40 * mm, 25 * mm, 25 * mm, 25 * mm, 20 * mm, 40 * mm]


@dataclass(frozen=True)
class PdfMedication:
    medicine_name: str
    dosage: str
    frequency: str
    timing: str
    duration_days: int
    instructions: Optional[str] = None


@dataclass(frozen=True)
class PrescriptionPdfData:
    patient_name: str
    patient_mrn: str
    patient_age: Optional[int]
    patient_gender: str
    patient_mobile: str
    doctor_name: str
    diagnosis: str
    prescription_date: date
    notes: Optional[str] = None
    follow_up_date: Optional[date] = None
    medications: tuple[PdfMedication, ...] = field(default_factory=tuple)
    support_email: str = "support@sehatrakshak.com"
    support_phone: str = "+91-XXXXXXXXXX"

    @classmethod
    def from_prescription(
        cls,
        prescription: Prescription,
        *,
        support_email: Optional[str] = None,
        support_phone: Optional[str] = None,
    ) -> "PrescriptionPdfData":
        """Build render input from a persisted prescription (patient, doctor and medications loaded)."""
        patient = prescription.patient
        extra = {}
        if support_email:
            extra["support_email"] = support_email
        if support_phone:
            extra["support_phone"] = support_phone
        return cls(
            patient_name=patient.full_name,
            patient_mrn=patient.mrn,
            # Age as of the prescription date keeps old prescriptions reproducible.
            patient_age=calculate_age(patient.date_of_birth, prescription.prescription_date),
            patient_gender=patient.gender.value.capitalize(),
            patient_mobile=patient.mobile,
            doctor_name=prescription.doctor.display_name,
            diagnosis=prescription.diagnosis,
            notes=prescription.notes,
            prescription_date=prescription.prescription_date,
            follow_up_date=prescription.follow_up_date,
            medications=tuple(
                PdfMedication(
                    medicine_name=m.medicine_name,
                    dosage=m.dosage,
                    frequency=m.frequency,
                    timing=m.timing,
                    duration_days=m.duration_days,
                    instructions=m.instructions,
                )
                for m in prescription.medications
            ),
            **extra,
        )


def _doctor_label(name: str) -> str:
    name = (name or "").strip()
    return name if name.startswith("Dr.") else f"Dr. {name}"


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "band_title": ParagraphStyle(
            "BandTitle",
            parent=base["Heading1"],
            fontName="Helvetica-Bold",
            fontSize=24,
            leading=28,
            alignment=1,
            textColor=colors.white,
            spaceAfter=0,
        ),
        "band_sub": ParagraphStyle(
            "BandSub",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=12,
            leading=15,
            alignment=1,
            textColor=colors.white,
        ),
        "heading": ParagraphStyle(
            "SectionHeading",
            parent=base["Heading2"],
            fontName="Helvetica-Bold",
            fontSize=14,
            textColor=colors.black,
            spaceBefore=6,
            spaceAfter=4,
        ),
        "normal": ParagraphStyle(
            "Body",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=10,
            leading=13,
            textColor=colors.black,
        ),
        "cell": ParagraphStyle(
            "Cell",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=8,
            leading=10,
        ),
    }


def _header_band(styles: dict[str, ParagraphStyle]) -> Table:
    band = Table(
        [
            [Paragraph(APP_TITLE, styles["band_title"])],
            [Paragraph("Digital Prescription", styles["band_sub"])],
            [Paragraph(TAGLINE, styles["band_sub"])],
        ],
        colWidths=[185 * mm],
    )
    band.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, -1), BRAND_BLUE),
                ("TOPPADDING", (0, 0), (-1, 0), 8),
                ("BOTTOMPADDING", (0, -1), (-1, -1), 8),
            ]
        )
    )
    return band


def _patient_block(data: PrescriptionPdfData) -> Table:
    age = f"{data.patient_age} years" if data.patient_age is not None else "-"
    follow_up = f"Follow-up: {format_display_date(data.follow_up_date)}" if data.follow_up_date else ""
    rows = [
        [f"Name: {data.patient_name}", "", f"MRN: {data.patient_mrn}"],
        [f"Age: {age}", f"Gender: {data.patient_gender}", f"Mobile: {data.patient_mobile}"],
        [f"Date: {format_display_date(data.prescription_date)}", "", follow_up],
    ]
    table = Table(rows, colWidths=[56 * mm, 50 * mm, 79 * mm])
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LEFTPADDING", (0, 0), (-1, -1), 0),
                ("TOPPADDING", (0, 0), (-1, -1), 2),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
            ]
        )
    )
    return table


def _medication_table(data: PrescriptionPdfData, styles: dict[str, ParagraphStyle]) -> Table:
    rows: list[list] = [TABLE_HEADER]
    for index, med in enumerate(data.medications, start=1):
        rows.append(
            [
                str(index),
                Paragraph(escape(med.medicine_name), styles["cell"]),
                Paragraph(escape(med.dosage), styles["cell"]),
                med.frequency,
                med.timing,
                f"{med.duration_days} days",
                Paragraph(escape(med.instructions or "-"), styles["cell"]),
            ]
        )

    table = Table(rows, colWidths=TABLE_COL_WIDTHS, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), BRAND_BLUE),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 9),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 1), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ]
        )
    )
    return table


def _draw_footer(data: PrescriptionPdfData):
    lines = [line.format(support_email=data.support_email, support_phone=data.support_phone) for line in FOOTER_LINES]

    def on_page(canvas, doc):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.grey)
        width = A4[0]
        canvas.drawCentredString(width / 2, 12 * mm, lines[0])
        canvas.drawCentredString(width / 2, 7 * mm, lines[1])
        canvas.restoreState()

    return on_page


def render_prescription_pdf(data: PrescriptionPdfData) -> bytes:
    """Render the prescription document. Deterministic for identical input."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=12 * mm,
        leftMargin=12 * mm,
        topMargin=10 * mm,
        bottomMargin=22 * mm,
        title=f"Prescription {data.patient_mrn}",
        author=APP_TITLE.title(),
        invariant=1,
    )
    styles = _styles()

    elements = [_header_band(styles), Spacer(1, 6 * mm)]

    elements.append(Paragraph("Patient Information", styles["heading"]))
    elements.append(_patient_block(data))

    elements.append(Paragraph("Diagnosis", styles["heading"]))
    elements.append(Paragraph(escape(data.diagnosis), styles["normal"]))

    if data.notes:
        elements.append(Paragraph("Clinical Notes", styles["heading"]))
        elements.append(Paragraph(escape(data.notes).replace("\n", "<br/>"), styles["normal"]))

    elements.append(Paragraph("Prescribed Medications", styles["heading"]))
    elements.append(_medication_table(data, styles))

    # Signature, right-aligned under the table
    signature = Table(
        [
            ["________________________________"],
            [_doctor_label(data.doctor_name)],
            ["Digital Signature"],
        ],
        colWidths=[70 * mm],
        hAlign="RIGHT",
    )
    signature.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("LEFTPADDING", (0, 0), (-1, -1), 0),
            ]
        )
    )
    elements.append(Spacer(1, 14 * mm))
    elements.append(signature)

    footer = _draw_footer(data)
    doc.build(elements, onFirstPage=footer, onLaterPages=footer)
    return buffer.getvalue()


def pdf_data_url(pdf_bytes: bytes) -> str:
    return "data:application/pdf;base64," + base64.b64encode(pdf_bytes).decode("ascii")


def prescription_pdf_filename(mrn: str, prescription_date: date) -> str:
    """Prescription_<MRN>_<YYYY-MM-DD>.pdf"""
    return f"Prescription_{mrn}_{prescription_date.isoformat()}.pdf"


def save_prescription_pdf(data: PrescriptionPdfData, *, subdir: str = "prescriptions") -> str:
    """Render and store the PDF; returns the storage-relative path."""
    filename = prescription_pdf_filename(data.patient_mrn, data.prescription_date)
    return save_bytes_to_storage(render_prescription_pdf(data), filename, subdir=subdir)
