#!/usr/bin/env python3
# scripts/create_hospital_admin.py
"""
Bootstrap a hospital and its first administrator.
This script is safe to run many times (idempotent).

The account itself lives on the hosted auth platform; pass its user id
(the JWT `sub`) so the profile row matches the tokens it will present.

Examples:
  # Hospital + hospital admin
  python -m scripts.create_hospital_admin --hospital-name "Default Hospital" \
    --user-id 6f1c... --email admin@hospital.com --full-name "Hospital Admin"

  # Also register the admin as a doctor
  python -m scripts.create_hospital_admin --hospital-name "Default Hospital" \
    --user-id 6f1c... --email admin@hospital.com --as-doctor --specialization Cardiology
"""

from __future__ import annotations

import argparse
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from sehat_rakshak.core.database import SessionLocal
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.hospital import Hospital
from sehat_rakshak.models.user import AppRole, User

logger = logging.getLogger(__name__)


def ensure_hospital(
    db: Session,
    *,
    name: str,
    address: Optional[str] = None,
    contact_number: Optional[str] = None,
    email: Optional[str] = None,
) -> Hospital:
    """Find the hospital by name or create it. Existing rows are re-activated."""
    existing = db.query(Hospital).filter(Hospital.name == name).first()
    if existing:
        existing.is_active = True
        existing.address = existing.address or address
        existing.contact_number = existing.contact_number or contact_number
        existing.email = existing.email or email
        db.commit()
        print(f"Hospital exists: {name} ({existing.id})")
        return existing

    hospital = Hospital(name=name, address=address, contact_number=contact_number, email=email)
    db.add(hospital)
    db.commit()
    db.refresh(hospital)
    print(f"Hospital created: {name} ({hospital.id})")
    return hospital


def ensure_hospital_admin(
    db: Session,
    *,
    hospital: Hospital,
    user_id: UUID,
    email: str,
    full_name: str = "Hospital Admin",
    mobile: Optional[str] = None,
) -> User:
    """
    Ensure a hospitaladmin profile exists for the auth user.

    Behavior:
    - If the profile exists: it is moved to this hospital, made hospitaladmin and active.
    - If missing: it is created.
    """
    existing = db.query(User).filter(User.id == user_id).first()
    if existing:
        existing.hospital_id = hospital.id
        existing.role = AppRole.HOSPITALADMIN
        existing.is_active = True
        existing.email = email
        existing.full_name = existing.full_name or full_name
        existing.mobile = existing.mobile or mobile
        db.commit()
        print(f"Hospital admin ensured (updated if needed): {email}")
        return existing

    user = User(
        id=user_id,
        hospital_id=hospital.id,
        email=email,
        full_name=full_name,
        mobile=mobile,
        role=AppRole.HOSPITALADMIN,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"Hospital admin created: {email}")
    return user


def ensure_doctor_record(
    db: Session,
    *,
    user: User,
    specialization: str = "General Medicine",
    qualification: Optional[str] = None,
    license_number: Optional[str] = None,
) -> Doctor:
    existing = db.query(Doctor).filter(Doctor.user_id == user.id).first()
    if existing:
        existing.hospital_id = user.hospital_id
        existing.is_active = True
        db.commit()
        print(f"Doctor record exists for {user.email}")
        return existing

    doctor = Doctor(
        user_id=user.id,
        hospital_id=user.hospital_id,
        specialization=specialization,
        qualification=qualification,
        license_number=license_number,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    print(f"Doctor record created for {user.email}")
    return doctor


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create a hospital and its administrator")
    p.add_argument("--hospital-name", required=True, help="Hospital name (matched exactly)")
    p.add_argument("--hospital-address", default=None)
    p.add_argument("--hospital-phone", default=None)
    p.add_argument("--hospital-email", default=None)
    p.add_argument("--user-id", required=True, type=UUID, help="Auth platform user id of the admin")
    p.add_argument("--email", required=True, help="Admin email")
    p.add_argument("--full-name", default="Hospital Admin")
    p.add_argument("--mobile", default=None)
    p.add_argument("--as-doctor", action="store_true", help="Also register the admin as a doctor")
    p.add_argument("--specialization", default="General Medicine")
    return p.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)

    db: Session = SessionLocal()
    try:
        hospital = ensure_hospital(
            db,
            name=args.hospital_name,
            address=args.hospital_address,
            contact_number=args.hospital_phone,
            email=args.hospital_email,
        )
        admin = ensure_hospital_admin(
            db,
            hospital=hospital,
            user_id=args.user_id,
            email=args.email,
            full_name=args.full_name,
            mobile=args.mobile,
        )
        if args.as_doctor:
            ensure_doctor_record(db, user=admin, specialization=args.specialization)
    except Exception:
        db.rollback()
        logger.exception("Hospital admin setup failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
