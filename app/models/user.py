"""
user.py

사용자(User) 및 계정 상태(UserStatus) 모델 정의 파일.

이 파일은 회원의 기본 정보와
계정 상태(가입 대기/활성/정지), 탈퇴 상태(Soft Delete)를 관리한다.

모든 인증, 세션, 그룹, 작업(Task) 기능의 기준이 되는 핵심 모델이다.

"""

import uuid
import datetime
from enum import Enum

from sqlalchemy import String, DateTime, Uuid, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


"""
계정 상태(UserStatus) 정의

- UNVERIFIED  : 가입 후 이메일 인증 대기
- ACTIVE      : 이메일 인증 완료, 정상 사용
- SUSPENDED   : 운영자에 의해 정지됨 (로그인 / 토큰 재발급 불가)

"""

class UserStatus(str, Enum):
    UNVERIFIED = "UNVERIFIED"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


"""
사용자(User) 모델

- email 은 고유 식별자 (항상 소문자로 정규화하여 저장)
- password_hash 는 OAuth 전용 계정이면 NULL
- deleted_at 으로 Soft Delete 지원 (값이 있으면 인증 관점에서 존재하지 않는 계정)
- 토큰 테이블들은 사용자 삭제 시 함께 삭제(cascade)

"""

class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, name="user_status"), nullable=False, default=UserStatus.UNVERIFIED
    )

    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )
    deleted_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    refresh_tokens = relationship("RefreshToken", cascade="all, delete-orphan", passive_deletes=True)
    verification_tokens = relationship("VerificationToken", cascade="all, delete-orphan", passive_deletes=True)
    password_reset_tokens = relationship("PasswordResetToken", cascade="all, delete-orphan", passive_deletes=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
