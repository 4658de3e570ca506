"""
services/tasks.py

작업(Task) 도메인의 비즈니스 로직 모음.

이 파일은 작업 생성, 조회, 수정, 상태 전이, 배정(assign) / 수락(accept),
Soft Delete 등 작업 수명 주기 규칙을 담당한다.

라우터는 TaskEngine의 메서드를 호출하여
검증/상태 변경 결과를 받아 응답만 처리한다.

상태 전이 표:
- PENDING_ACCEPTANCE → OPEN, CLOSED
- OPEN               → IN_PROGRESS, CLOSED
- IN_PROGRESS        → COMPLETED, OPEN, CLOSED
- COMPLETED          → CLOSED
- CLOSED             → (종료)

설계 원칙:
- 모든 작업 접근은 그룹 멤버십을 먼저 확인
- 상태 전이 검사는 순수 함수(is_valid_transition) 하나로만 수행
- 배정 알림 메일 요청 실패는 작업 변경 결과에 영향을 주지 않음

관련 파일:
- app.models.task        : Task / TaskStatus 모델
- app.services.groups    : 멤버십 권한 검사
- app.routers.tasks      : 작업 API

"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.errors import DomainError, ErrorKind
from app.models.task import Task, TaskStatus
from app.models.user import User
from app.services.audit_log import AuditAction, write_audit_log
from app.services.groups import GroupAuthority, Page
from app.services.notifications import TASK_ASSIGNMENT, NotificationSink

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING_ACCEPTANCE: frozenset({TaskStatus.OPEN, TaskStatus.CLOSED}),
    TaskStatus.OPEN: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CLOSED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.COMPLETED, TaskStatus.OPEN, TaskStatus.CLOSED}),
    TaskStatus.COMPLETED: frozenset({TaskStatus.CLOSED}),
    TaskStatus.CLOSED: frozenset(),
}


def is_valid_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, frozenset())


class TaskEngine:
    def __init__(self, db: Session, groups: GroupAuthority, settings: Settings,
                 clock: Clock, notifier: NotificationSink):
        self.db = db
        self.groups = groups
        self.settings = settings
        self.clock = clock
        self.notifier = notifier

    """
    작업 생성

    - 생성자는 그룹 멤버여야 함
    - assignee가 있으면 배정 기능 플래그가 켜져 있어야 하고, assignee도 그룹 멤버여야 함
    - 초기 상태: assignee 없음 → OPEN / 있음 → PENDING_ACCEPTANCE

    """

    def create(self, *, title: str, description: str | None, group_id: uuid.UUID,
               user_id: uuid.UUID, assignee_id: uuid.UUID | None = None) -> Task:
        self.groups.assert_member(group_id, user_id)

        status = TaskStatus.OPEN
        if assignee_id is not None:
            self._require_assignments_enabled()
            self.groups.assert_member(group_id, assignee_id)
            status = TaskStatus.PENDING_ACCEPTANCE

        task = Task(
            title=title,
            description=description,
            group_id=group_id,
            created_by_id=user_id,
            assignee_id=assignee_id,
            status=status,
        )
        try:
            self.db.add(task)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Task created task_id=%s group_id=%s user_id=%s", task.id, group_id, user_id)
        write_audit_log(
            AuditAction.TASK_CREATED,
            actor_id=user_id,
            target_id=task.id,
            target_type="task",
            metadata={"assignee_id": str(assignee_id) if assignee_id else "none"},
        )

        if assignee_id is not None:
            self._notify_assignment(user_id, assignee_id, task)
        return task

    def get(self, task_id: uuid.UUID, user_id: uuid.UUID) -> Task:
        task = self.db.scalar(select(Task).where(Task.id == task_id, Task.deleted_at.is_(None)))
        if task is None:
            raise DomainError(ErrorKind.TASK_NOT_FOUND, "Task not found")

        self.groups.assert_member(task.group_id, user_id)
        return task

    def list_tasks(self, group_id: uuid.UUID, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> Page:
        self.groups.assert_member(group_id, user_id)

        condition = (Task.group_id == group_id, Task.deleted_at.is_(None))
        tasks = self.db.scalars(
            select(Task)
            .where(*condition)
            .order_by(Task.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        total = self.db.scalar(select(func.count()).select_from(Task).where(*condition)) or 0
        return Page(items=list(tasks), total=total)

    def update(self, task_id: uuid.UUID, *, user_id: uuid.UUID,
               title: str | None = None, description: str | None = None) -> Task:
        task = self.get(task_id, user_id)
        self._require_creator(task, user_id, "update")

        if title is not None:
            task.title = title
        if description is not None:
            task.description = description

        self._commit()
        return task

    """
    상태 변경

    - 그룹 멤버라면 누구나 가능 (역할 구분 없음)
    - 전이 표에 없는 변경은 INVALID_TRANSITION

    """

    def update_status(self, task_id: uuid.UUID, target: TaskStatus, *, user_id: uuid.UUID) -> Task:
        task = self.get(task_id, user_id)
        current = task.status

        if not is_valid_transition(current, target):
            raise DomainError(
                ErrorKind.INVALID_TRANSITION,
                f"Cannot transition from {current.value} to {target.value}",
            )

        task.status = target
        self._commit()

        logger.info("Task status updated task_id=%s from=%s to=%s user_id=%s",
                    task_id, current.value, target.value, user_id)
        write_audit_log(
            AuditAction.TASK_STATUS_CHANGED,
            actor_id=user_id,
            target_id=task_id,
            target_type="task",
            metadata={"from": current.value, "to": target.value},
        )
        return task

    def accept(self, task_id: uuid.UUID, *, user_id: uuid.UUID) -> Task:
        task = self.get(task_id, user_id)

        if task.assignee_id != user_id:
            raise DomainError(ErrorKind.FORBIDDEN, "Only the assigned user can accept this task")

        if task.status != TaskStatus.PENDING_ACCEPTANCE:
            raise DomainError(ErrorKind.INVALID_STATE, "Task is not pending acceptance")

        task.status = TaskStatus.OPEN
        task.accepted_at = self.clock.now()
        self._commit()

        logger.info("Task accepted task_id=%s user_id=%s", task_id, user_id)
        write_audit_log(AuditAction.TASK_ACCEPTED, actor_id=user_id, target_id=task_id, target_type="task")
        return task

    """
    작업 배정

    - 배정 기능 플래그가 꺼져 있으면 FEATURE_DISABLED
    - 생성자만 배정 가능 (FORBIDDEN)
    - 작업 상태와 무관하게 항상 배정 가능 (완료/종료된 작업도 핸드셰이크를 다시 시작)
    - 새 assignee는 같은 그룹 멤버여야 함
    - 배정 시 항상 PENDING_ACCEPTANCE 로 되돌리고 accepted_at 초기화

    """

    def assign(self, task_id: uuid.UUID, assignee_id: uuid.UUID, *, user_id: uuid.UUID) -> Task:
        self._require_assignments_enabled()

        task = self.get(task_id, user_id)
        self._require_creator(task, user_id, "assign")

        self.groups.assert_member(task.group_id, assignee_id)

        task.assignee_id = assignee_id
        task.status = TaskStatus.PENDING_ACCEPTANCE
        task.accepted_at = None
        self._commit()

        logger.info("Task assigned task_id=%s assignee_id=%s user_id=%s", task_id, assignee_id, user_id)
        write_audit_log(
            AuditAction.TASK_ASSIGNED,
            actor_id=user_id,
            target_id=task_id,
            target_type="task",
            metadata={"assignee_id": str(assignee_id)},
        )

        self._notify_assignment(user_id, assignee_id, task)
        return task

    def delete(self, task_id: uuid.UUID, *, user_id: uuid.UUID) -> None:
        task = self.get(task_id, user_id)
        self._require_creator(task, user_id, "delete")

        task.deleted_at = self.clock.now()
        self._commit()

        logger.info("Task soft-deleted task_id=%s user_id=%s", task_id, user_id)
        write_audit_log(AuditAction.TASK_DELETED, actor_id=user_id, target_id=task_id, target_type="task")

    # ─── 내부 함수 ────────────────────────────────────────────

    def _require_assignments_enabled(self) -> None:
        if not self.settings.ENABLE_ASSIGNMENTS:
            raise DomainError(ErrorKind.FEATURE_DISABLED, "Task assignments are currently disabled")

    def _require_creator(self, task: Task, user_id: uuid.UUID, action: str) -> None:
        if task.created_by_id != user_id:
            raise DomainError(ErrorKind.FORBIDDEN, f"Only the task creator can {action} this task")

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _notify_assignment(self, assigner_id: uuid.UUID, assignee_id: uuid.UUID, task: Task) -> None:
        if not self.settings.ENABLE_EMAIL:
            return
        try:
            assigner = self.db.get(User, assigner_id)
            assignee = self.db.get(User, assignee_id)
            if assigner is None or assignee is None:
                logger.warning(
                    "Cannot send assignment email, user not found assigner_id=%s assignee_id=%s",
                    assigner_id, assignee_id,
                )
                return

            self.notifier.enqueue(
                TASK_ASSIGNMENT,
                assignee.email,
                {"task_id": str(task.id), "assigner_name": assigner.name, "task_title": task.title},
            )
        except Exception:
            # 메일 요청 실패가 작업 변경 결과를 바꾸면 안 됨
            logger.exception("Failed to enqueue assignment email task_id=%s assignee_id=%s", task.id, assignee_id)
