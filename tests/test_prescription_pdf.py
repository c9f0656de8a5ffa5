import base64
from datetime import date

from conftest import medication_line, prescribe
from sehat_rakshak.services.prescription_service import get_prescription
from sehat_rakshak.utils import file_storage
from sehat_rakshak.utils.prescription_pdf import (
    PdfMedication,
    PrescriptionPdfData,
    pdf_data_url,
    prescription_pdf_filename,
    render_prescription_pdf,
    save_prescription_pdf,
)


def sample_data(**overrides) -> PrescriptionPdfData:
    values = dict(
        patient_name="Ravi Kumar",
        patient_mrn="MRN-ABC123-00001",
        patient_age=35,
        patient_gender="Male",
        patient_mobile="+91 98765-43210",
        doctor_name="Asha Verma",
        diagnosis="Viral fever & body ache",
        prescription_date=date(2026, 3, 10),
        notes="Drink plenty of fluids.\nRest for 3 days.",
        follow_up_date=date(2026, 3, 17),
        medications=(
            PdfMedication("Paracetamol", "500mg", "1-0-1", "After Food", 5),
            PdfMedication("Cetirizine <10mg>", "10mg", "0-0-1", "After Food", 3, "Causes drowsiness"),
        ),
    )
    values.update(overrides)
    return PrescriptionPdfData(**values)


def test_render_produces_a_pdf_document():
    content = render_prescription_pdf(sample_data())
    assert content.startswith(b"%PDF")
    assert content.rstrip().endswith(b"%%EOF")


def test_render_is_deterministic():
    assert render_prescription_pdf(sample_data()) == render_prescription_pdf(sample_data())
    assert render_prescription_pdf(sample_data()) != render_prescription_pdf(sample_data(diagnosis="Migraine"))


def test_render_handles_optional_sections():
    content = render_prescription_pdf(sample_data(notes=None, follow_up_date=None, patient_age=None))
    assert content.startswith(b"%PDF")


def test_filename_and_data_url():
    assert prescription_pdf_filename("MRN-ABC123-00001", date(2026, 3, 10)) == "Prescription_MRN-ABC123-00001_2026-03-10.pdf"

    url = pdf_data_url(b"%PDF-1.4 test")
    prefix = "data:application/pdf;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]) == b"%PDF-1.4 test"


def test_data_from_persisted_prescription(db, hospital, patient, doctor):
    rx = prescribe(db, hospital, patient, doctor, medication_line("Paracetamol", instructions="If fever > 100F"))
    data = PrescriptionPdfData.from_prescription(get_prescription(db, prescription_id=rx.id), support_phone="+91-22-5550199")

    assert data.patient_name == "Ravi Kumar"
    assert data.patient_gender == "Male"
    # born 1990-06-15, prescribed 2026-03-10
    assert data.patient_age == 35
    assert data.doctor_name == "Asha Verma"
    assert data.medications[0].instructions == "If fever > 100F"
    assert data.support_phone == "+91-22-5550199"
    assert data.support_email == "support@sehatrakshak.com"


def test_save_writes_under_storage_root(tmp_path, monkeypatch):
    monkeypatch.setattr(file_storage.settings, "file_storage_root", str(tmp_path))
    data = sample_data()

    relative = save_prescription_pdf(data)

    assert relative == "prescriptions/Prescription_MRN-ABC123-00001_2026-03-10.pdf"
    assert (tmp_path / relative).read_bytes() == render_prescription_pdf(data)
