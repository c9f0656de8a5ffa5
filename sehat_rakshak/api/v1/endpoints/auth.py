from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from sehat_rakshak.core.database import get_db
from sehat_rakshak.core.security import decode_token
from sehat_rakshak.models.doctor import Doctor
from sehat_rakshak.models.user import User
from sehat_rakshak.schemas.user import UserResponse

router = APIRouter()

# Tokens are issued by the hosted auth platform; this API only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)


@router.get("/health", tags=["auth"])
async def auth_health_check() -> dict:
    """
    Simple health check for the auth module.
    """
    return {"status": "auth-ok"}


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency to retrieve the current user from a JWT bearer token.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        payload = decode_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        )

    user_id = payload.get("sub")
    try:
        user_uuid = UUID(str(user_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = db.query(User).filter(User.id == user_uuid).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User profile not found",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


@router.get("/me", response_model=UserResponse, tags=["auth"])
def read_current_user(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    """
    Return the current authenticated user's profile.
    """
    doctor = db.query(Doctor).filter(Doctor.user_id == current_user.id).first()
    return UserResponse(
        id=current_user.id,
        hospital_id=current_user.hospital_id,
        email=current_user.email,
        full_name=current_user.full_name,
        mobile=current_user.mobile,
        role=current_user.role,
        is_active=current_user.is_active,
        doctor_id=doctor.id if doctor else None,
        created_at=current_user.created_at,
    )
