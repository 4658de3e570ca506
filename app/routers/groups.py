"""
groups.py

그룹(Group) 및 그룹 멤버 관리 API 모음.

주요 기능:
- 그룹 생성 (생성자는 자동으로 ADMIN)
- 내가 속한 그룹 목록 / 그룹 상세(멤버 목록 포함) 조회
- 그룹 정보 수정 (ADMIN)
- 멤버 추가 / 제거 (ADMIN, 마지막 ADMIN은 제거 불가)

설계 원칙:
- 이메일 인증이 완료된(ACTIVE) 계정만 접근 가능
- 권한 판단은 모두 GroupAuthority에 위임

관련 파일:
- app.services.groups      : 그룹 / 멤버십 비즈니스 로직
- app.schemas.group        : 요청/응답 스키마
"""

import uuid

from fastapi import APIRouter, Depends, Query, status

from app.core.deps import get_active_identity, get_group_authority
from app.core.security import AccessClaims
from app.schemas.group import (
    GroupCreate,
    GroupDetailResponse,
    GroupResponse,
    GroupUpdate,
    MemberAdd,
    MemberDetailResponse,
    MemberResponse,
)
from app.services.groups import GroupAuthority

router = APIRouter(prefix="/api/v1/groups", tags=["groups"])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_group(
    data: GroupCreate,
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    group = groups.create_group(name=data.name.strip(), description=data.description, user_id=identity.sub)
    return {"data": GroupResponse.model_validate(group)}


@router.get("")
def list_groups(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    result = groups.list_groups(identity.sub, page=page, limit=limit)
    return {
        "data": [GroupResponse.model_validate(g) for g in result.items],
        "meta": {"page": page, "limit": limit, "total": result.total},
    }


"""
그룹 상세 조회 API

- 그룹 멤버만 조회 가능
- 멤버 목록(이름, 이메일, 역할) 포함

"""

@router.get("/{group_id}")
def get_group(
    group_id: uuid.UUID,
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    group = groups.get_group(group_id, identity.sub)
    members = [
        MemberDetailResponse(
            user_id=m.user_id,
            group_id=m.group_id,
            role=m.role,
            joined_at=m.joined_at,
            name=m.user.name,
            email=m.user.email,
        )
        for m in group.members
    ]
    detail = GroupDetailResponse(
        **GroupResponse.model_validate(group).model_dump(),
        members=members,
    )
    return {"data": detail}


@router.patch("/{group_id}")
def update_group(
    group_id: uuid.UUID,
    data: GroupUpdate,
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    group = groups.update_group(
        group_id,
        user_id=identity.sub,
        name=data.name.strip() if data.name is not None else None,
        description=data.description,
    )
    return {"data": GroupResponse.model_validate(group)}


@router.post("/{group_id}/members", status_code=status.HTTP_201_CREATED)
def add_member(
    group_id: uuid.UUID,
    data: MemberAdd,
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    membership = groups.add_member(
        group_id,
        target_user_id=data.user_id,
        role=data.role,
        acting_user_id=identity.sub,
    )
    return {"data": MemberResponse.model_validate(membership)}


"""
멤버 제거 API

- 그룹 ADMIN만 가능
- 마지막 ADMIN은 제거 불가 (400 LAST_ADMIN_REMOVAL)

"""

@router.delete("/{group_id}/members/{user_id}")
def remove_member(
    group_id: uuid.UUID,
    user_id: uuid.UUID,
    identity: AccessClaims = Depends(get_active_identity),
    groups: GroupAuthority = Depends(get_group_authority),
):
    groups.remove_member(group_id, target_user_id=user_id, acting_user_id=identity.sub)
    return {"data": {"status": "removed"}}
