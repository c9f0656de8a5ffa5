from uuid import uuid4

from scripts.create_hospital_admin import main
from sehat_rakshak.models import AppRole, Doctor, Hospital, User


def test_setup_is_idempotent(db):
    user_id = uuid4()
    argv = [
        "--hospital-name", "Sunrise Hospital",
        "--user-id", str(user_id),
        "--email", "admin@sunrise.example",
        "--as-doctor",
        "--specialization", "Pediatrics",
    ]

    main(argv)
    main(argv)

    db.expire_all()
    hospital = db.query(Hospital).one()
    user = db.query(User).one()
    doctor = db.query(Doctor).one()
    assert hospital.name == "Sunrise Hospital"
    assert user.id == user_id
    assert user.role == AppRole.HOSPITALADMIN
    assert user.hospital_id == hospital.id
    assert doctor.user_id == user_id
    assert doctor.specialization == "Pediatrics"


def test_existing_profile_is_promoted(db, hospital, receptionist):
    main([
        "--hospital-name", hospital.name,
        "--user-id", str(receptionist.id),
        "--email", receptionist.email,
    ])

    db.expire_all()
    assert db.query(Hospital).count() == 1
    assert db.get(User, receptionist.id).role == AppRole.HOSPITALADMIN
