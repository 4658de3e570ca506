from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.task import TaskStatus


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    group_id: UUID
    assignee_id: UUID | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)


# PENDING_ACCEPTANCE 는 assign 으로만 진입
class TaskStatusUpdate(BaseModel):
    status: Literal["OPEN", "IN_PROGRESS", "COMPLETED", "CLOSED"]


class TaskAssign(BaseModel):
    assignee_id: UUID


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    status: TaskStatus
    group_id: UUID
    created_by_id: UUID
    assignee_id: UUID | None
    accepted_at: datetime | None
    created_at: datetime
    updated_at: datetime
