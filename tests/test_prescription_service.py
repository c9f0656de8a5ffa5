from contextlib import contextmanager
from datetime import date, timedelta
from uuid import uuid4

import pytest

from conftest import TODAY, make_patient, medication_line, prescribe
from sehat_rakshak.core.locks import LockTimeoutError
from sehat_rakshak.models.prescription import Medication, Prescription
from sehat_rakshak.services import prescription_service
from sehat_rakshak.services.prescription_composer import PrescriptionComposer
from sehat_rakshak.services.prescription_service import (
    DoctorNotFoundError,
    InactiveRecordError,
    PatientNotFoundError,
    PrescriptionLockTimeout,
    PrescriptionNotFoundError,
    PrescriptionPersistError,
    create_prescription,
    get_prescription,
    list_active_medications,
    list_prescriptions_for_patient,
)


def simple_draft(*names: str):
    composer = PrescriptionComposer(diagnosis="Viral fever", medications=[])
    for name in names or ("Paracetamol",):
        index = composer.add_medication()
        composer.update_medication(index, "medicine_name", name)
        composer.update_medication(index, "dosage", "500mg")
    return composer.build(today=TODAY)


def test_medication_dates_follow_prescription_date(db, hospital, patient, doctor):
    rx = prescribe(
        db, hospital, patient, doctor,
        medication_line("Paracetamol", duration=5),
        medication_line("Amoxicillin", duration=30),
    )

    assert rx.prescription_date == TODAY
    meds = get_prescription(db, prescription_id=rx.id).medications
    assert [m.medicine_name for m in meds] == ["Paracetamol", "Amoxicillin"]
    assert [m.position for m in meds] == [0, 1]
    assert all(m.start_date == TODAY for m in meds)
    assert meds[0].end_date == date(2026, 3, 15)
    assert meds[1].end_date == TODAY + timedelta(days=30)


def test_failed_medication_insert_leaves_nothing_behind(db, hospital, patient, doctor, monkeypatch):
    def broken_rows(draft, start_date):
        # medicine_name is NOT NULL
        return [Medication(position=0, medicine_name=None, dosage="1", frequency="1-0-0", timing="After Food",
                           duration_days=1, start_date=start_date, end_date=start_date)]

    monkeypatch.setattr(prescription_service, "build_medications", broken_rows)

    with pytest.raises(PrescriptionPersistError) as exc:
        create_prescription(
            db,
            hospital_id=hospital.id,
            patient_id=patient.id,
            doctor_id=doctor.id,
            draft=simple_draft(),
            today=TODAY,
        )

    assert exc.value.stage == "medications"
    assert db.query(Prescription).count() == 0
    assert db.query(Medication).count() == 0


def test_lock_timeout_is_reported_and_nothing_written(db, hospital, patient, doctor):
    @contextmanager
    def busy(patient_id):
        raise LockTimeoutError("held elsewhere")
        yield

    with pytest.raises(PrescriptionLockTimeout):
        create_prescription(
            db,
            hospital_id=hospital.id,
            patient_id=patient.id,
            doctor_id=doctor.id,
            draft=simple_draft(),
            today=TODAY,
            lock=busy,
        )
    assert db.query(Prescription).count() == 0


def test_unknown_or_inactive_records_are_rejected(db, hospital, patient, doctor):
    with pytest.raises(PatientNotFoundError):
        create_prescription(db, hospital_id=hospital.id, patient_id=uuid4(), doctor_id=doctor.id, draft=simple_draft())
    with pytest.raises(DoctorNotFoundError):
        create_prescription(db, hospital_id=hospital.id, patient_id=patient.id, doctor_id=uuid4(), draft=simple_draft())

    patient.is_active = False
    db.commit()
    with pytest.raises(InactiveRecordError):
        create_prescription(db, hospital_id=hospital.id, patient_id=patient.id, doctor_id=doctor.id, draft=simple_draft())


def test_prescription_is_scoped_to_hospital(db, hospital, patient, doctor):
    rx = prescribe(db, hospital, patient, doctor)
    with pytest.raises(PrescriptionNotFoundError):
        get_prescription(db, prescription_id=rx.id, hospital_id=uuid4())
    with pytest.raises(PrescriptionNotFoundError):
        get_prescription(db, prescription_id=uuid4())


def test_list_is_newest_first_and_limited(db, hospital, patient, doctor):
    for offset in range(6):
        prescribe(db, hospital, patient, doctor, today=TODAY + timedelta(days=offset), diagnosis=f"Visit {offset}")
    other = make_patient(db, hospital, full_name="Someone Else")
    prescribe(db, hospital, other, doctor)

    latest = list_prescriptions_for_patient(db, patient_id=patient.id, hospital_id=hospital.id, limit=5)
    assert [p.diagnosis for p in latest] == ["Visit 5", "Visit 4", "Visit 3", "Visit 2", "Visit 1"]
    assert len(list_prescriptions_for_patient(db, patient_id=patient.id)) == 6


def test_active_medications_soonest_ending_first(db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Old", duration=1), today=TODAY - timedelta(days=10))
    prescribe(
        db, hospital, patient, doctor,
        medication_line("Long", duration=20),
        medication_line("Short", duration=2),
    )

    active = list_active_medications(db, patient_id=patient.id, today=TODAY)
    assert [m.medicine_name for m in active] == ["Short", "Long"]

