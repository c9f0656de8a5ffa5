# sehat_rakshak/utils/id_generators.py
import secrets
from uuid import UUID

from sqlalchemy.orm import Session

from sehat_rakshak.models.hospital import Hospital
from sehat_rakshak.models.patient import Patient


def generate_mrn(db: Session, hospital_id: UUID) -> str:
    """
    Generate a unique Medical Record Number in format: MRN-{hospitalId}-{sequential}

    Where:
    - {hospitalId} = first 6 characters of hospital UUID (hex, upper case)
    - {sequential} = sequential number (zero-padded to 5 digits)

    Example: MRN-A1B2C3-00001, MRN-A1B2C3-00002, etc.
    """
    # Get hospital to ensure it exists
    hospital = db.query(Hospital).filter(Hospital.id == hospital_id).first()
    if not hospital:
        raise ValueError("Hospital not found")

    hospital_prefix = hospital.id.hex[:6].upper()
    prefix = f"MRN-{hospital_prefix}-"

    # Query for existing codes with this prefix
    existing_codes = (
        db.query(Patient.mrn)
        .filter(Patient.mrn.like(f"{prefix}%"))
        .all()
    )

    # Extract sequence numbers
    max_seq = 0
    for (code,) in existing_codes:
        if code and code.startswith(prefix):
            try:
                seq_num = int(code[len(prefix) :])
                max_seq = max(max_seq, seq_num)
            except ValueError:
                continue

    return f"{prefix}{max_seq + 1:05d}"


def generate_qr_code_id() -> str:
    """
    Opaque identifier printed as a QR code on the patient card.

    Example: QR-9F2C61D04AB7
    """
    return f"QR-{secrets.token_hex(6).upper()}"
