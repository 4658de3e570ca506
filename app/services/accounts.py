"""
services/accounts.py

계정(Account) 수명 주기 서비스.

이 파일은 회원가입, 이메일 인증, 비밀번호 재설정/변경,
프로필 조회/수정, 회원 탈퇴(Soft Delete) 등
로그인 세션 외의 계정 관련 규칙을 담당한다.

주요 기능:
- 회원가입: UNVERIFIED 상태로 생성 + 이메일 인증 토큰(24시간) 발급
- 이메일 인증: UNVERIFIED → ACTIVE 전환과 토큰 삭제를 한 트랜잭션으로 처리
- 인증 메일 재발송 / 비밀번호 재설정 요청: 계정 존재 여부를 드러내지 않음
- 비밀번호 재설정: 비밀번호 변경 + 토큰 삭제 + 모든 세션 폐기 (원자적)
- 회원 탈퇴: 어떤 그룹의 유일한 ADMIN이면 거부

설계 원칙:
- 일회성 토큰은 원문을 반환/메일로만 전달하고 DB에는 해시만 저장
- 메일 발송 요청은 commit 이후에만 수행 (롤백된 토큰이 메일로 나가지 않도록)
- 이메일은 항상 소문자로 정규화

관련 파일:
- app.core.opaque_tokens : 일회성 토큰 생성 / 검증
- app.services.sessions  : 세션 전체 폐기(revoke_all)
- app.services.groups    : 유일 ADMIN 여부 확인
- app.routers.auth       : 인증 API
- app.routers.users      : 내 정보 API

"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core import opaque_tokens
from app.core.clock import Clock, ensure_utc
from app.core.config import Settings
from app.core.errors import DomainError, ErrorKind
from app.core.security import PasswordHasher
from app.models.group import GroupMember
from app.models.tokens import PasswordResetToken, VerificationToken
from app.models.user import User, UserStatus
from app.services.audit_log import AuditAction, write_audit_log
from app.services.groups import GroupAuthority
from app.services.notifications import PASSWORD_RESET, VERIFICATION, NotificationSink
from app.services.sessions import SessionManager, normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisterResult:
    user: User
    verification_token: str


class AccountService:
    def __init__(self, db: Session, sessions: SessionManager, groups: GroupAuthority,
                 settings: Settings, clock: Clock, notifier: NotificationSink):
        self.db = db
        self.sessions = sessions
        self.hasher: PasswordHasher = sessions.hasher
        self.groups = groups
        self.settings = settings
        self.clock = clock
        self.notifier = notifier

    # ─── 회원가입 / 이메일 인증 ────────────────────────────────

    """
    회원가입

    - 이미 존재하는 이메일이면 EMAIL_EXISTS (탈퇴 계정 포함)
    - UNVERIFIED 상태로 생성하고 인증 토큰을 같은 트랜잭션에서 저장
    - 동시에 같은 이메일로 가입하면 email 유니크 제약으로 한쪽만 성공

    """

    def register(self, *, email: str, password: str, name: str) -> RegisterResult:
        email = normalize_email(email)

        if self.db.scalar(select(User.id).where(User.email == email)) is not None:
            raise DomainError(ErrorKind.EMAIL_EXISTS, "A user with this email already exists")

        user = User(
            email=email,
            password_hash=self.hasher.hash(password),
            name=name.strip(),
            status=UserStatus.UNVERIFIED,
        )
        token = opaque_tokens.generate()

        try:
            self.db.add(user)
            self.db.flush()
            self.db.add(
                VerificationToken(
                    token_hash=token.hash,
                    user_id=user.id,
                    expires_at=self._expires_in(self.settings.VERIFICATION_TOKEN_EXPIRE_SECONDS),
                )
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DomainError(ErrorKind.EMAIL_EXISTS, "A user with this email already exists")
        except Exception:
            self.db.rollback()
            raise

        logger.info("User registered user_id=%s", user.id)
        self._notify(VERIFICATION, user.email, {"token": token.raw})
        return RegisterResult(user=user, verification_token=token.raw)

    """
    이메일 인증

    - 알 수 없는 토큰: INVALID_ONE_TIME_TOKEN
    - 만료된 토큰: 토큰 삭제 후 ONE_TIME_TOKEN_EXPIRED
    - 성공: UNVERIFIED 인 경우에만 ACTIVE 로 전환 + 토큰 삭제 (한 트랜잭션)
      (정지된 계정은 인증 링크로 정지가 풀리지 않음)

    """

    def verify_email(self, raw_token: str) -> uuid.UUID:
        stored = self.db.scalar(
            select(VerificationToken).where(
                VerificationToken.token_hash == opaque_tokens.hash_opaque_token(raw_token)
            )
        )
        if stored is None or not opaque_tokens.verify(raw_token, stored.token_hash):
            raise DomainError(ErrorKind.INVALID_ONE_TIME_TOKEN, "Invalid or expired verification token")

        if ensure_utc(stored.expires_at) <= self.clock.now():
            self._delete_and_commit(stored)
            raise DomainError(ErrorKind.ONE_TIME_TOKEN_EXPIRED, "Verification token has expired")

        user_id = stored.user_id
        try:
            self.db.execute(
                update(User)
                .where(User.id == user_id, User.status == UserStatus.UNVERIFIED)
                .values(status=UserStatus.ACTIVE)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(delete(VerificationToken).where(VerificationToken.id == stored.id))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Email verified user_id=%s", user_id)
        write_audit_log(AuditAction.AUTH_EMAIL_VERIFIED, actor_id=user_id, target_id=user_id, target_type="user")
        return user_id

    def resend_verification(self, email: str) -> None:
        """UNVERIFIED 계정에만 새 토큰을 보낸다. 결과는 호출 측에 드러내지 않는다."""
        user = self.db.scalar(select(User).where(User.email == normalize_email(email)))
        if user is None or user.is_deleted or user.status != UserStatus.UNVERIFIED:
            return

        token = opaque_tokens.generate()
        try:
            self.db.execute(delete(VerificationToken).where(VerificationToken.user_id == user.id))
            self.db.add(
                VerificationToken(
                    token_hash=token.hash,
                    user_id=user.id,
                    expires_at=self._expires_in(self.settings.VERIFICATION_TOKEN_EXPIRE_SECONDS),
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Verification token reissued user_id=%s", user.id)
        self._notify(VERIFICATION, user.email, {"token": token.raw})

    # ─── 비밀번호 재설정 ──────────────────────────────────────

    def request_password_reset(self, email: str) -> None:
        self._require_password_reset_enabled()

        user = self.db.scalar(select(User).where(User.email == normalize_email(email)))
        if user is None or user.is_deleted:
            return

        token = opaque_tokens.generate()
        try:
            self.db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
            self.db.add(
                PasswordResetToken(
                    token_hash=token.hash,
                    user_id=user.id,
                    expires_at=self._expires_in(self.settings.PASSWORD_RESET_TOKEN_EXPIRE_SECONDS),
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        write_audit_log(AuditAction.AUTH_PASSWORD_RESET_REQUEST, actor_id=user.id, target_type="user")
        self._notify(PASSWORD_RESET, user.email, {"token": token.raw})

    """
    비밀번호 재설정

    - 알 수 없는 토큰: INVALID_ONE_TIME_TOKEN
    - 만료된 토큰: 토큰 삭제 후 ONE_TIME_TOKEN_EXPIRED
    - 성공: 비밀번호 변경 + 토큰 삭제 + 사용자의 모든 family 폐기 (한 트랜잭션)

    """

    def reset_password(self, raw_token: str, new_password: str) -> uuid.UUID:
        self._require_password_reset_enabled()

        stored = self.db.scalar(
            select(PasswordResetToken).where(
                PasswordResetToken.token_hash == opaque_tokens.hash_opaque_token(raw_token)
            )
        )
        if stored is None or not opaque_tokens.verify(raw_token, stored.token_hash):
            raise DomainError(ErrorKind.INVALID_ONE_TIME_TOKEN, "Invalid or expired reset token")

        if ensure_utc(stored.expires_at) <= self.clock.now():
            self._delete_and_commit(stored)
            raise DomainError(ErrorKind.ONE_TIME_TOKEN_EXPIRED, "Reset token has expired")

        user_id = stored.user_id
        password_hash = self.hasher.hash(new_password)
        try:
            self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(delete(PasswordResetToken).where(PasswordResetToken.id == stored.id))
            revoked = self.sessions.revoke_all(user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Password reset completed, all sessions revoked user_id=%s revoked=%s", user_id, revoked)
        write_audit_log(AuditAction.AUTH_PASSWORD_RESET_COMPLETE, actor_id=user_id, target_type="user")
        return user_id

    # ─── 내 정보 ─────────────────────────────────────────────

    def get_profile(self, user_id: uuid.UUID) -> User:
        user = self.db.scalar(
            select(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .execution_options(populate_existing=True)
        )
        if user is None:
            raise DomainError(ErrorKind.USER_NOT_FOUND, "User not found")
        return user

    def update_profile(self, user_id: uuid.UUID, *, name: str | None = None) -> User:
        user = self.get_profile(user_id)
        if name is None:
            raise DomainError(ErrorKind.NO_CHANGES, "No fields to update")

        user.name = name.strip()
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return user

    """
    비밀번호 변경

    - 현재 비밀번호가 틀리면 INVALID_CREDENTIALS
    - 새 비밀번호가 현재와 같으면 PASSWORD_UNCHANGED
    - 성공 시 모든 family 폐기 (다른 기기 포함 재로그인 필요)

    """

    def change_password(self, user_id: uuid.UUID, *, current_password: str, new_password: str) -> None:
        user = self.get_profile(user_id)

        if not self.hasher.verify(current_password, user.password_hash):
            raise DomainError(ErrorKind.INVALID_CREDENTIALS, "Current password is incorrect")

        if self.hasher.verify(new_password, user.password_hash):
            raise DomainError(ErrorKind.PASSWORD_UNCHANGED, "New password must differ from the current one")

        user.password_hash = self.hasher.hash(new_password)
        try:
            self.sessions.revoke_all(user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Password changed user_id=%s", user_id)
        write_audit_log(AuditAction.AUTH_PASSWORD_CHANGED, actor_id=user_id, target_type="user")

    """
    회원 탈퇴 (Soft Delete)

    - 비밀번호 재확인
    - 어떤 그룹의 유일한 ADMIN이면 LAST_ADMIN_REMOVAL (먼저 다른 ADMIN 지정 필요)
    - deleted_at 기록 + 그룹 멤버십 제거 + 모든 family 폐기

    """

    def delete_account(self, user_id: uuid.UUID, *, password: str) -> None:
        user = self.get_profile(user_id)

        if not self.hasher.verify(password, user.password_hash):
            raise DomainError(ErrorKind.INVALID_CREDENTIALS, "Password is incorrect")

        blocking = self.groups.sole_admin_groups(user_id)
        if blocking:
            raise DomainError(
                ErrorKind.LAST_ADMIN_REMOVAL,
                "Transfer the admin role before deleting your account",
            )

        user.deleted_at = self.clock.now()
        try:
            self.db.execute(delete(GroupMember).where(GroupMember.user_id == user_id))
            self.sessions.revoke_all(user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Account deleted user_id=%s", user_id)
        write_audit_log(AuditAction.AUTH_ACCOUNT_DELETED, actor_id=user_id, target_id=user_id, target_type="user")

    # ─── 내부 함수 ────────────────────────────────────────────

    def _expires_in(self, seconds: int):
        return self.clock.now() + timedelta(seconds=seconds)

    def _require_password_reset_enabled(self) -> None:
        if not self.settings.ENABLE_PASSWORD_RESET:
            raise DomainError(ErrorKind.FEATURE_DISABLED, "Password reset is currently disabled")

    def _delete_and_commit(self, row) -> None:
        try:
            self.db.delete(row)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _notify(self, kind: str, recipient: str, template_data: dict) -> None:
        if not self.settings.ENABLE_EMAIL:
            return
        self.notifier.enqueue(kind, recipient, template_data)
