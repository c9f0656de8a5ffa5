import json
from datetime import timedelta
from urllib.parse import unquote

from conftest import RecordingTransport, auth_headers, make_patient, medication_line, prescribe
from sehat_rakshak.dependencies.providers import get_email_config, get_email_transport
from sehat_rakshak.main import app
from sehat_rakshak.models.notification import Notification, NotificationChannel, NotificationStatus
from sehat_rakshak.models.prescription import Prescription
from sehat_rakshak.utils.datetime_utils import today_utc


def create_payload(patient, *lines, **extra):
    return {
        "patient_id": str(patient.id),
        "diagnosis": "Upper respiratory infection",
        "notes": "Steam inhalation twice a day",
        "medications": list(lines) or [medication_line("Amoxicillin", duration=5)],
        **extra,
    }


def use_email(config, transport):
    app.dependency_overrides[get_email_config] = lambda: config
    app.dependency_overrides[get_email_transport] = lambda: transport


def test_doctor_creates_prescription(client, db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Paracetamol", duration=10), today=today_utc())

    response = client.post(
        "/api/v1/prescriptions",
        json=create_payload(
            patient,
            medication_line("Paracetamol 650", duration=3),
            medication_line("Cough syrup", dosage="10ml", frequency="1-1-1", duration=4),
        ),
        headers=auth_headers(doctor.user),
    )

    assert response.status_code == 201, response.text
    body = response.json()
    rx = body["prescription"]
    today = today_utc()
    assert rx["doctor_id"] == str(doctor.id)
    assert rx["prescription_date"] == today.isoformat()
    assert rx["doctor_name"] == "Asha Verma"
    assert [m["medicine_name"] for m in rx["medications"]] == ["Paracetamol 650", "Cough syrup"]
    assert rx["medications"][1]["end_date"] == (today + timedelta(days=4)).isoformat()
    assert body["email_scheduled"] is False
    assert body["share_links"]["whatsapp_url"].startswith("https://wa.me/919876543210?text=")
    assert body["share_links"]["mailto_url"].startswith("mailto:ravi@example.com?")
    shared = unquote(body["share_links"]["whatsapp_url"].split("?text=", 1)[1])
    assert "1. Paracetamol 650 - 500mg - 1-0-1 - After Food (3 days)" in shared
    assert "2. Cough syrup - 10ml - 1-1-1 - After Food (4 days)" in shared

    whatsapp_log = db.query(Notification).filter(Notification.channel == NotificationChannel.WHATSAPP).one()
    assert whatsapp_log.status == NotificationStatus.PENDING
    assert whatsapp_log.recipient == "+91 98765-43210"
    assert whatsapp_log.message == shared
    assert str(whatsapp_log.prescription_id) == rx["id"]
    assert whatsapp_log.triggered_by_id == doctor.user.id

    # advisory: "Paracetamol 650" is not a substring of the existing "Paracetamol", no warning for it
    assert body["duplicate_warnings"] == []


def test_create_reports_duplicate_warnings(client, db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Cetirizine 10mg", duration=10), today=today_utc())

    response = client.post(
        "/api/v1/prescriptions",
        json=create_payload(patient, medication_line("cetirizine")),
        headers=auth_headers(doctor.user),
    )

    assert response.status_code == 201
    end = (today_utc() + timedelta(days=10)).isoformat()
    assert response.json()["duplicate_warnings"] == [f'"cetirizine" is already prescribed and active until {end}']
    assert db.query(Prescription).count() == 2


def test_validation_errors_block_the_write(client, db, patient, doctor):
    response = client.post(
        "/api/v1/prescriptions",
        json=create_payload(
            patient,
            medication_line("", dosage=""),
            diagnosis="",
            follow_up_date=(today_utc() - timedelta(days=1)).isoformat(),
        ),
        headers=auth_headers(doctor.user),
    )

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert "Diagnosis is required" in detail
    assert "Medication 1: medicine name is required" in detail
    assert "Follow-up date cannot be before the prescription date" in detail
    assert db.query(Prescription).count() == 0


def test_empty_medication_list_is_rejected(client, patient, doctor):
    payload = create_payload(patient)
    payload["medications"] = []
    response = client.post("/api/v1/prescriptions", json=payload, headers=auth_headers(doctor.user))
    assert response.status_code == 422
    assert "At least one medication is required" in response.json()["detail"]


def test_roles_and_doctor_resolution(client, db, hospital, patient, doctor, admin_user, receptionist):
    assert client.post(
        "/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(receptionist)
    ).status_code == 403

    assert client.post(
        "/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(admin_user)
    ).status_code == 400

    on_behalf = client.post(
        "/api/v1/prescriptions",
        json=create_payload(patient, doctor_id=str(doctor.id)),
        headers=auth_headers(admin_user),
    )
    assert on_behalf.status_code == 201
    assert on_behalf.json()["prescription"]["doctor_id"] == str(doctor.id)


def test_deactivated_patient_conflicts(client, db, patient, doctor):
    patient.is_active = False
    db.commit()
    response = client.post("/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(doctor.user))
    assert response.status_code == 409


def test_email_is_delivered_in_the_background(client, db, patient, doctor, email_config):
    transport = RecordingTransport()
    use_email(email_config, transport)

    response = client.post("/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(doctor.user))

    assert response.status_code == 201
    assert response.json()["email_scheduled"] is True
    (request,) = transport.requests
    params = json.loads(request.content)["template_params"]
    assert params["to_email"] == "ravi@example.com"
    assert params["pdf_attachment"].startswith("data:application/pdf;base64,")

    log = db.query(Notification).filter(Notification.channel == NotificationChannel.EMAIL).one()
    assert log.status == NotificationStatus.SENT
    assert str(log.prescription_id) == response.json()["prescription"]["id"]


def test_email_failure_does_not_affect_the_prescription(client, db, patient, doctor, email_config):
    use_email(email_config, RecordingTransport(status_code=503))

    response = client.post("/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(doctor.user))

    assert response.status_code == 201
    assert db.query(Prescription).count() == 1
    email_log = db.query(Notification).filter(Notification.channel == NotificationChannel.EMAIL).one()
    assert email_log.status == NotificationStatus.FAILED


def test_no_email_scheduled_for_patient_without_address(client, db, hospital, doctor, email_config):
    transport = RecordingTransport()
    use_email(email_config, transport)
    patient = make_patient(db, hospital, email=None, mobile="")

    response = client.post("/api/v1/prescriptions", json=create_payload(patient), headers=auth_headers(doctor.user))

    assert response.status_code == 201
    assert response.json()["email_scheduled"] is False
    assert response.json()["share_links"]["whatsapp_url"] is None
    assert transport.requests == []
    assert db.query(Notification).count() == 0


def test_resend_reports_outcome(client, db, hospital, patient, doctor, email_config):
    rx = prescribe(db, hospital, patient, doctor, today=today_utc())

    skipped = client.post(f"/api/v1/prescriptions/{rx.id}/email", headers=auth_headers(doctor.user))
    assert skipped.status_code == 200
    assert skipped.json()["status"] == "SKIPPED"

    use_email(email_config, RecordingTransport())
    sent = client.post(f"/api/v1/prescriptions/{rx.id}/email", headers=auth_headers(doctor.user))
    assert sent.json() == {"channel": "EMAIL", "status": "SENT", "recipient": "ravi@example.com", "detail": None}
    assert db.query(Notification).count() == 2


def test_pdf_download(client, db, hospital, patient, doctor, receptionist):
    rx = prescribe(db, hospital, patient, doctor, today=today_utc())
    filename = f"Prescription_MRN-ABC123-00001_{today_utc().isoformat()}.pdf"

    response = client.get(f"/api/v1/prescriptions/{rx.id}/pdf", headers=auth_headers(receptionist))
    inline = client.get(f"/api/v1/prescriptions/{rx.id}/pdf", params={"inline": "true"}, headers=auth_headers(receptionist))

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f"attachment; filename={filename}"
    assert response.content.startswith(b"%PDF")
    assert inline.headers["content-disposition"].startswith("inline;")
    assert inline.content == response.content


def test_pdf_data_url(client, db, hospital, patient, doctor):
    rx = prescribe(db, hospital, patient, doctor, today=today_utc())
    response = client.get(f"/api/v1/prescriptions/{rx.id}/pdf/data-url", headers=auth_headers(doctor.user))

    assert response.status_code == 200
    assert response.json()["data_url"].startswith("data:application/pdf;base64,JVBERi")
    assert response.json()["filename"].startswith("Prescription_MRN-ABC123-00001_")


def test_share_links_endpoint(client, db, hospital, patient, doctor):
    rx = prescribe(db, hospital, patient, doctor, diagnosis="Viral fever", today=today_utc())
    response = client.get(f"/api/v1/prescriptions/{rx.id}/share-links", headers=auth_headers(doctor.user))

    links = response.json()
    text = unquote(links["whatsapp_url"].split("?text=", 1)[1])
    assert text.startswith("Hello Ravi Kumar,")
    assert "Diagnosis: Viral fever" in text
    assert "Medications:\n1. Paracetamol - 500mg - 1-0-1 - After Food (5 days)" in text
    assert "1. Paracetamol - 500mg - 1-0-1 - After Food (5 days)" in unquote(links["mailto_url"])


def test_duplicate_check_endpoint(client, db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Metformin 500", duration=30), today=today_utc())
    end = (today_utc() + timedelta(days=30)).isoformat()

    response = client.post(
        "/api/v1/prescriptions/duplicate-check",
        json={"patient_id": str(patient.id), "medicine_names": ["Metformin", "metformin ", "  ", "Insulin"]},
        headers=auth_headers(doctor.user),
    )

    assert response.status_code == 200
    assert response.json() == {"warnings": [f'"Metformin" is already prescribed and active until {end}']}


def test_list_and_get(client, db, hospital, patient, doctor, receptionist):
    today = today_utc()
    for offset in range(6, 0, -1):
        prescribe(db, hospital, patient, doctor, diagnosis=f"Visit -{offset}", today=today - timedelta(days=offset))

    listed = client.get(
        "/api/v1/prescriptions", params={"patient_id": str(patient.id), "limit": 5}, headers=auth_headers(receptionist)
    )
    assert listed.status_code == 200
    diagnoses = [p["diagnosis"] for p in listed.json()]
    assert diagnoses == ["Visit -1", "Visit -2", "Visit -3", "Visit -4", "Visit -5"]

    first_id = listed.json()[0]["id"]
    one = client.get(f"/api/v1/prescriptions/{first_id}", headers=auth_headers(receptionist))
    assert one.status_code == 200
    assert one.json()["patient_name"] == "Ravi Kumar"

    assert client.get(
        "/api/v1/prescriptions/00000000-0000-0000-0000-000000000000", headers=auth_headers(receptionist)
    ).status_code == 404


def test_duplicate_check_with_normalized_policy(client, db, hospital, patient, doctor):
    prescribe(db, hospital, patient, doctor, medication_line("Metformin 500", duration=30), today=today_utc())

    response = client.post(
        "/api/v1/prescriptions/duplicate-check",
        json={
            "patient_id": str(patient.id),
            "medicine_names": ["Metformin", "metformin-500"],
            "match_policy": "normalized",
        },
        headers=auth_headers(doctor.user),
    )

    assert [w.split('"')[1] for w in response.json()["warnings"]] == ["metformin-500"]


def test_current_user_profile(client, doctor):
    response = client.get("/api/v1/auth/me", headers=auth_headers(doctor.user))
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "doctor"
    assert body["doctor_id"] == str(doctor.id)
