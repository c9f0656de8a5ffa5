# sehat_rakshak/core/tenant_context.py
from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from sehat_rakshak.api.v1.endpoints.auth import get_current_user
from sehat_rakshak.core.database import get_db
from sehat_rakshak.models.hospital import Hospital
from sehat_rakshak.models.user import User


class TenantContext:
    """
    Wraps the current hospital and user for hospital-scoped operations.

    - hospital: row from hospitals
    - user:     current authenticated user (hospital user)
    """

    def __init__(self, hospital: Hospital, user: User):
        self.hospital = hospital
        self.user = user

    @property
    def hospital_id(self):
        return self.hospital.id


def get_tenant_context(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> TenantContext:
    """
    Resolve the hospital from current_user.

    - superadmin: hospital_id is not used for hospital-scoped endpoints.
    - Hospital users (hospitaladmin / doctor / etc.): hospital_id must not be None.
    """
    if current_user.hospital_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Hospital-scoped operation requires a hospital user.",
        )

    hospital = db.query(Hospital).filter(Hospital.id == current_user.hospital_id).first()
    if not hospital:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hospital not found.",
        )

    if not hospital.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Hospital account is inactive. Please contact support.",
        )

    return TenantContext(hospital=hospital, user=current_user)
