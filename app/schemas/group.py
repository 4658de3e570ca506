from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.group import GroupRole


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class GroupUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)


class MemberAdd(BaseModel):
    user_id: UUID
    role: GroupRole = GroupRole.MEMBER


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    created_by_id: UUID
    created_at: datetime
    updated_at: datetime


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    group_id: UUID
    role: GroupRole
    joined_at: datetime


class MemberDetailResponse(MemberResponse):
    name: str
    email: str


class GroupDetailResponse(GroupResponse):
    members: list[MemberDetailResponse]
