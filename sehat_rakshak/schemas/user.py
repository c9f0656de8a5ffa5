# sehat_rakshak/schemas/user.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from sehat_rakshak.models.user import AppRole


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hospital_id: UUID | None
    email: str
    full_name: str
    mobile: str | None = None
    role: AppRole
    is_active: bool
    doctor_id: UUID | None = None
    created_at: datetime
