import os
from datetime import date
from uuid import uuid4

# Settings are read once at import time; point them at an in-memory database first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["REDIS_URL"] = ""
for _key in ("EMAILJS_PUBLIC_KEY", "EMAILJS_SERVICE_ID", "EMAILJS_TEMPLATE_ID", "OPENAI_API_KEY"):
    os.environ.pop(_key, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from sehat_rakshak.core.database import SessionLocal, engine  # noqa: E402
from sehat_rakshak.core.security import create_access_token  # noqa: E402
from sehat_rakshak.main import app  # noqa: E402
from sehat_rakshak.models import (  # noqa: E402
    AppRole,
    Doctor,
    Gender,
    Hospital,
    Patient,
    User,
)
from sehat_rakshak.models.base import Base  # noqa: E402
from sehat_rakshak.notifications.email.base import EmailProviderConfig  # noqa: E402
from sehat_rakshak.services.prescription_composer import PrescriptionComposer  # noqa: E402
from sehat_rakshak.services.prescription_service import create_prescription  # noqa: E402

TODAY = date(2026, 3, 10)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it answered."""

    def __init__(self, status_code: int = 200, json_body=None, text_body: str = "OK"):
        self.requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if json_body is not None:
                return httpx.Response(status_code, json=json_body)
            return httpx.Response(status_code, text=text_body)

        super().__init__(handler)


@pytest.fixture()
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def hospital(db):
    hospital = Hospital(name="City Care Hospital", contact_number="+91-22-5550100")
    db.add(hospital)
    db.commit()
    return hospital


def make_user(db, hospital, role: AppRole, *, full_name: str, email: str | None = None) -> User:
    user = User(
        id=uuid4(),
        hospital_id=hospital.id if hospital else None,
        email=email or f"{role.value}-{uuid4().hex[:6]}@example.com",
        full_name=full_name,
        role=role,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture()
def doctor(db, hospital):
    user = make_user(db, hospital, AppRole.DOCTOR, full_name="Asha Verma")
    doctor = Doctor(user_id=user.id, hospital_id=hospital.id, specialization="General Medicine")
    db.add(doctor)
    db.commit()
    return doctor


@pytest.fixture()
def admin_user(db, hospital):
    return make_user(db, hospital, AppRole.HOSPITALADMIN, full_name="Hospital Admin")


@pytest.fixture()
def receptionist(db, hospital):
    return make_user(db, hospital, AppRole.RECEPTIONIST, full_name="Front Desk")


def make_patient(db, hospital, *, full_name="Ravi Kumar", mrn=None, email="ravi@example.com", mobile="+91 98765-43210"):
    patient = Patient(
        hospital_id=hospital.id,
        mrn=mrn or f"MRN-TEST-{uuid4().hex[:5].upper()}",
        qr_code_id=f"QR-{uuid4().hex[:12].upper()}",
        full_name=full_name,
        date_of_birth=date(1990, 6, 15),
        gender=Gender.MALE,
        mobile=mobile,
        email=email,
        allergies=[],
    )
    db.add(patient)
    db.commit()
    return patient


@pytest.fixture()
def patient(db, hospital):
    return make_patient(db, hospital, mrn="MRN-ABC123-00001")


def medication_line(name="Paracetamol", dosage="500mg", frequency="1-0-1", timing="After Food", duration=5, instructions=None):
    return {
        "medicine_name": name,
        "dosage": dosage,
        "frequency": frequency,
        "timing": timing,
        "duration_days": duration,
        "instructions": instructions,
    }


def prescribe(db, hospital, patient, doctor, *lines, today=TODAY, diagnosis="Viral fever", notes=None, follow_up_date=None):
    """Persist a prescription through the composer, the way the API does."""
    composer = PrescriptionComposer(diagnosis=diagnosis, notes=notes, follow_up_date=follow_up_date, medications=[])
    for line in lines or (medication_line(),):
        index = composer.add_medication()
        for field_name, value in line.items():
            composer.update_medication(index, field_name, value)
    draft = composer.build(today=today)
    return create_prescription(
        db,
        hospital_id=hospital.id,
        patient_id=patient.id,
        doctor_id=doctor.id,
        draft=draft,
        today=today,
    )


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(str(user.id), role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def email_config():
    return EmailProviderConfig(
        public_key="pk_test",
        service_id="service_test",
        template_id="template_test",
        api_url="https://email.test/send",
    )
