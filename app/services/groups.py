"""
services/groups.py

그룹(Group) 및 멤버십 권한 판단 서비스.

이 파일은 그룹 생성/조회/수정과 멤버 추가/제거,
그리고 작업(Task) 기능이 사용하는 멤버십 권한 검사를 담당한다.

주요 기능:
- 그룹 멤버 여부 / ADMIN 여부 확인 (assert_member / assert_admin)
- 그룹 생성 시 생성자를 ADMIN으로 자동 등록
- 멤버 추가 (중복 멤버는 DB 유니크 제약으로 차단)
- 멤버 제거 (마지막 ADMIN 보호)

설계 원칙:
- HTTP / FastAPI 의존성 없음
- 마지막 ADMIN 보호는 "조회 후 삭제"가 아니라
  그룹 행 잠금 + ADMIN 수를 조건으로 거는 단일 DELETE로 처리
- 중복 멤버 추가는 사전 조회 없이 (user_id, group_id) 유니크 제약에 맡김

관련 파일:
- app.models.group       : Group / GroupMember / GroupRole 모델
- app.routers.groups     : 그룹 API
- app.services.tasks     : 작업 권한 검사

"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, selectinload

from app.core.errors import DomainError, ErrorKind
from app.models.group import Group, GroupMember, GroupRole
from app.models.user import User
from app.services.audit_log import AuditAction, write_audit_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Page:
    items: list
    total: int


class GroupAuthority:
    def __init__(self, db: Session):
        self.db = db

    # ─── 권한 검사 ────────────────────────────────────────────

    def get_membership(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMember | None:
        return self.db.scalar(
            select(GroupMember).where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        )

    def assert_member(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMember:
        membership = self.get_membership(group_id, user_id)
        if membership is None:
            raise DomainError(ErrorKind.NOT_A_MEMBER, "You are not a member of this group")
        return membership

    def assert_admin(self, group_id: uuid.UUID, user_id: uuid.UUID) -> GroupMember:
        membership = self.get_membership(group_id, user_id)
        if membership is None or membership.role != GroupRole.ADMIN:
            raise DomainError(ErrorKind.NOT_ADMIN, "Admin access required for this group")
        return membership

    def count_admins(self, group_id: uuid.UUID) -> int:
        return self.db.scalar(
            select(func.count())
            .select_from(GroupMember)
            .where(GroupMember.group_id == group_id, GroupMember.role == GroupRole.ADMIN)
        ) or 0

    def sole_admin_groups(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """user가 유일한 ADMIN인 그룹 ID 목록."""
        admin_groups = self.db.scalars(
            select(GroupMember.group_id).where(
                GroupMember.user_id == user_id, GroupMember.role == GroupRole.ADMIN
            )
        ).all()
        return [gid for gid in admin_groups if self.count_admins(gid) <= 1]

    # ─── 그룹 ────────────────────────────────────────────────

    def create_group(self, *, name: str, description: str | None, user_id: uuid.UUID) -> Group:
        group = Group(name=name, description=description, created_by_id=user_id)
        # 생성자는 같은 트랜잭션에서 ADMIN으로 등록
        group.members.append(GroupMember(user_id=user_id, role=GroupRole.ADMIN))
        try:
            self.db.add(group)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Group created group_id=%s user_id=%s", group.id, user_id)
        write_audit_log(AuditAction.GROUP_CREATED, actor_id=user_id, target_id=group.id, target_type="group")
        return group

    def _get_live_group(self, group_id: uuid.UUID) -> Group:
        group = self.db.scalar(select(Group).where(Group.id == group_id, Group.deleted_at.is_(None)))
        if group is None:
            raise DomainError(ErrorKind.GROUP_NOT_FOUND, "Group not found")
        return group

    def get_group(self, group_id: uuid.UUID, user_id: uuid.UUID) -> Group:
        self._get_live_group(group_id)
        self.assert_member(group_id, user_id)
        return self.db.scalar(
            select(Group)
            .where(Group.id == group_id)
            .options(selectinload(Group.members).selectinload(GroupMember.user))
        )

    def list_groups(self, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> Page:
        condition = (
            Group.deleted_at.is_(None),
            Group.members.any(GroupMember.user_id == user_id),
        )
        groups = self.db.scalars(
            select(Group)
            .where(*condition)
            .order_by(Group.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        total = self.db.scalar(select(func.count()).select_from(Group).where(*condition)) or 0
        return Page(items=list(groups), total=total)

    def update_group(self, group_id: uuid.UUID, *, user_id: uuid.UUID,
                     name: str | None = None, description: str | None = None) -> Group:
        group = self._get_live_group(group_id)
        self.assert_admin(group_id, user_id)

        if name is not None:
            group.name = name
        if description is not None:
            group.description = description

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return group

    # ─── 멤버 ────────────────────────────────────────────────

    """
    멤버 추가

    - 요청자는 그룹 ADMIN 이어야 함
    - 대상 사용자는 존재하고 탈퇴하지 않은 계정이어야 함
    - 이미 멤버이면 유니크 제약 위반 → ALREADY_MEMBER

    """

    def add_member(self, group_id: uuid.UUID, *, target_user_id: uuid.UUID,
                   role: GroupRole, acting_user_id: uuid.UUID) -> GroupMember:
        self._get_live_group(group_id)
        self.assert_admin(group_id, acting_user_id)

        target = self.db.scalar(select(User).where(User.id == target_user_id, User.deleted_at.is_(None)))
        if target is None:
            raise DomainError(ErrorKind.USER_NOT_FOUND, "Target user not found")

        membership = GroupMember(user_id=target_user_id, group_id=group_id, role=role)
        try:
            self.db.add(membership)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DomainError(ErrorKind.ALREADY_MEMBER, "User is already a member of this group")
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Member added group_id=%s target_user_id=%s acting_user_id=%s",
            group_id, target_user_id, acting_user_id,
        )
        write_audit_log(
            AuditAction.GROUP_MEMBER_ADDED,
            actor_id=acting_user_id,
            target_id=group_id,
            target_type="group",
            metadata={"user_id": str(target_user_id), "role": role.value},
        )
        return membership

    """
    멤버 제거

    - 요청자는 그룹 ADMIN 이어야 함
    - 대상이 멤버가 아니면 MEMBERSHIP_NOT_FOUND
    - 대상이 ADMIN이면 "다른 ADMIN이 남아 있을 때만" 삭제되는 조건부 DELETE 실행
      → 0건 삭제 시 LAST_ADMIN_REMOVAL
    - 그룹 행을 FOR UPDATE로 잠가 같은 그룹의 동시 제거를 직렬화

    """

    def remove_member(self, group_id: uuid.UUID, *, target_user_id: uuid.UUID,
                      acting_user_id: uuid.UUID) -> None:
        self._get_live_group(group_id)
        self.assert_admin(group_id, acting_user_id)

        try:
            self.db.execute(select(Group.id).where(Group.id == group_id).with_for_update())

            if self.get_membership(group_id, target_user_id) is None:
                self.db.rollback()
                raise DomainError(ErrorKind.MEMBERSHIP_NOT_FOUND, "User is not a member of this group")

            admins = aliased(GroupMember)
            live_admin_count = (
                select(func.count())
                .select_from(admins)
                .where(admins.group_id == group_id, admins.role == GroupRole.ADMIN)
                .scalar_subquery()
            )
            result = self.db.execute(
                delete(GroupMember)
                .where(
                    GroupMember.group_id == group_id,
                    GroupMember.user_id == target_user_id,
                    or_(GroupMember.role != GroupRole.ADMIN, live_admin_count > 1),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise DomainError(ErrorKind.LAST_ADMIN_REMOVAL, "Cannot remove the last admin from the group")

            self.db.commit()
        except DomainError:
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.expire_all()
        logger.info(
            "Member removed group_id=%s target_user_id=%s acting_user_id=%s",
            group_id, target_user_id, acting_user_id,
        )
        write_audit_log(
            AuditAction.GROUP_MEMBER_REMOVED,
            actor_id=acting_user_id,
            target_id=group_id,
            target_type="group",
            metadata={"user_id": str(target_user_id)},
        )
