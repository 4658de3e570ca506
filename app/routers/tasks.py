"""
tasks.py

작업(Task) API 모음.

주요 기능:
- 작업 생성 (assignee 지정 시 PENDING_ACCEPTANCE)
- 그룹별 작업 목록 (페이지네이션) / 단건 조회
- 제목 / 설명 수정, Soft Delete (생성자만)
- 상태 변경 (상태 전이 표 기준)
- 배정(assign) / 수락(accept)

설계 원칙:
- 이메일 인증이 완료된(ACTIVE) 계정만 접근 가능
- 모든 규칙은 TaskEngine에 위임하고 라우터는 응답 변환만 수행

관련 파일:
- app.services.tasks       : 작업 비즈니스 로직 / 상태 전이 표
- app.schemas.task         : 요청/응답 스키마
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.core.deps import get_active_identity, get_task_engine
from app.core.security import AccessClaims
from app.models.task import TaskStatus
from app.schemas.task import TaskAssign, TaskCreate, TaskResponse, TaskStatusUpdate, TaskUpdate
from app.services.tasks import TaskEngine

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_task(
    data: TaskCreate,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    task = tasks.create(
        title=data.title.strip(),
        description=data.description,
        group_id=data.group_id,
        user_id=identity.sub,
        assignee_id=data.assignee_id,
    )
    return {"data": TaskResponse.model_validate(task)}


"""
그룹별 작업 목록 API

- group_id 필수, 그룹 멤버만 조회 가능
- 최신 생성 순 정렬, page / limit 페이지네이션 (limit 최대 100)

"""

@router.get("")
def list_tasks(
    group_id: uuid.UUID = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    result = tasks.list_tasks(group_id, identity.sub, page=page, limit=limit)
    return {
        "data": [TaskResponse.model_validate(t) for t in result.items],
        "meta": {"page": page, "limit": limit, "total": result.total},
    }


@router.get("/{task_id}")
def get_task(
    task_id: uuid.UUID,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    return {"data": TaskResponse.model_validate(tasks.get(task_id, identity.sub))}


@router.patch("/{task_id}")
def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    task = tasks.update(
        task_id,
        user_id=identity.sub,
        title=data.title.strip() if data.title is not None else None,
        description=data.description,
    )
    return {"data": TaskResponse.model_validate(task)}


@router.patch("/{task_id}/status")
def update_task_status(
    task_id: uuid.UUID,
    data: TaskStatusUpdate,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    task = tasks.update_status(task_id, TaskStatus(data.status), user_id=identity.sub)
    return {"data": TaskResponse.model_validate(task)}


@router.post("/{task_id}/accept")
def accept_task(
    task_id: uuid.UUID,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    return {"data": TaskResponse.model_validate(tasks.accept(task_id, user_id=identity.sub))}


@router.post("/{task_id}/assign")
def assign_task(
    task_id: uuid.UUID,
    data: TaskAssign,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    task = tasks.assign(task_id, data.assignee_id, user_id=identity.sub)
    return {"data": TaskResponse.model_validate(task)}


@router.delete("/{task_id}")
def delete_task(
    task_id: uuid.UUID,
    identity: AccessClaims = Depends(get_active_identity),
    tasks: TaskEngine = Depends(get_task_engine),
):
    tasks.delete(task_id, user_id=identity.sub)
    return {"data": {"status": "deleted"}}
