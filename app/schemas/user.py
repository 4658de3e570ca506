from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserStatus


# 🔹 유저 응답용 (필요한 필드만)
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)  # SQLAlchemy → Pydantic 변환

    id: UUID
    email: str
    name: str
    status: UserStatus
    created_at: datetime


class EditProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class DeleteMeRequest(BaseModel):
    password: str = Field(..., min_length=1)
