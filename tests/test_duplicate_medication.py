from datetime import date, timedelta

from sqlalchemy.exc import OperationalError

from conftest import TODAY, auth_headers, make_patient, medication_line, prescribe
from sehat_rakshak.models import Patient
from sehat_rakshak.services import duplicate_medication_service as dup
from sehat_rakshak.services.duplicate_medication_service import (
    NORMALIZED,
    SUBSTRING,
    check_duplicate_medicine,
    check_duplicates_for_names,
    find_active_overlaps,
    format_duplicate_warning,
    normalize_medicine_name,
)


def test_warning_text_uses_iso_end_date():
    assert (
        format_duplicate_warning("Paracetamol", date(2025, 11, 20))
        == '"Paracetamol" is already prescribed and active until 2025-11-20'
    )


def test_blank_name_short_circuits_without_query(db, patient, monkeypatch):
    def boom(*args, **kwargs):
        raise AssertionError("query must not run")

    monkeypatch.setattr(db, "query", boom)
    assert find_active_overlaps(db, patient_id=patient.id, medicine_name="   ") == []
    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="") is None


def test_active_medication_is_reported_until_its_end_date(db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Paracetamol", duration=5), today=TODAY)
    end = TODAY + timedelta(days=5)

    warning = check_duplicate_medicine(db, patient_id=patient.id, medicine_name="paracetamol", today=TODAY)
    assert warning is not None
    assert warning.active_until == end
    assert warning.message == f'"paracetamol" is already prescribed and active until {end.isoformat()}'

    # still active on the last day, gone the day after
    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Paracetamol", today=end)
    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Paracetamol", today=end + timedelta(days=1)) is None


def test_latest_end_date_wins_across_prescriptions(db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Amoxicillin", duration=3), today=TODAY)
    prescribe(db, hospital, patient, doctor, medication_line("Amoxicillin 250", duration=10), today=TODAY)

    warning = check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Amoxicillin", today=TODAY)
    assert warning.active_until == TODAY + timedelta(days=10)

    overlaps = find_active_overlaps(db, patient_id=patient.id, medicine_name="amoxicillin", today=TODAY)
    assert [o.end_date for o in overlaps] == [TODAY + timedelta(days=10), TODAY + timedelta(days=3)]


def test_other_patients_are_not_considered(db, hospital, patient, doctor):
    other = make_patient(db, hospital, full_name="Sita Devi")
    prescribe(db, hospital, other, doctor, medication_line("Metformin", duration=30), today=TODAY)

    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Metformin", today=TODAY) is None


def test_excluded_prescription_is_ignored(db, hospital, patient, doctor):
    rx = prescribe(db, hospital, patient, doctor, medication_line("Cetirizine"), today=TODAY)

    assert check_duplicate_medicine(
        db,
        patient_id=patient.id,
        medicine_name="Cetirizine",
        today=TODAY,
        exclude_prescription_id=rx.id,
    ) is None


def test_substring_policy_matches_partial_names_and_normalized_does_not(db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Paracetamol 500"), today=TODAY)

    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Para", today=TODAY, policy=SUBSTRING)
    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Para", today=TODAY, policy=NORMALIZED) is None
    assert check_duplicate_medicine(
        db, patient_id=patient.id, medicine_name=" paracetamol-500 ", today=TODAY, policy=NORMALIZED
    )


def test_normalize_medicine_name():
    assert normalize_medicine_name("  Para-cetamol   500 ") == "para cetamol 500"
    assert normalize_medicine_name(None) == ""


def test_query_failure_degrades_to_no_warning(db, patient, monkeypatch):
    def failing(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    rollbacks = []
    original_rollback = db.rollback

    def rollback():
        rollbacks.append(True)
        original_rollback()

    monkeypatch.setattr(dup, "find_active_overlaps", failing)
    monkeypatch.setattr(db, "rollback", rollback)

    assert check_duplicate_medicine(db, patient_id=patient.id, medicine_name="Paracetamol", today=TODAY) is None
    # the session is left usable for the write that follows
    assert rollbacks == [True]
    assert db.query(Patient).filter(Patient.id == patient.id).one().full_name == "Ravi Kumar"


def test_failed_check_does_not_block_prescription_create(client, patient, doctor, monkeypatch):
    def failing(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("canceling statement due to statement timeout"))

    monkeypatch.setattr(dup, "find_active_overlaps", failing)

    response = client.post(
        "/api/v1/prescriptions",
        json={
            "patient_id": str(patient.id),
            "diagnosis": "Viral fever",
            "medications": [medication_line("Paracetamol")],
        },
        headers=auth_headers(doctor.user),
    )

    assert response.status_code == 201, response.text
    assert response.json()["duplicate_warnings"] == []


def test_check_for_names_dedupes_by_policy_key(db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Ibuprofen"), medication_line("Pantoprazole"), today=TODAY)

    warnings = check_duplicates_for_names(
        db,
        patient_id=patient.id,
        medicine_names=["Ibuprofen", "ibuprofen ", "Vitamin D", "", "Pantoprazole"],
        today=TODAY,
    )
    assert [w.medicine_name for w in warnings] == ["Ibuprofen", "Pantoprazole"]
