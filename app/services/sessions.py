"""
services/sessions.py

세션(Refresh Token family) 관리 서비스.

이 파일은 로그인 / 토큰 재발급 / 로그아웃 / 전체 세션 무효화 등
인증 세션의 수명 주기 전체를 담당한다.

주요 기능:
- 자격 증명 확인 후 새 family로 (access, refresh) 토큰 쌍 발급
- Refresh Token 회전(rotation): 이전 토큰 폐기 + 같은 family에 새 토큰 생성 (원자적)
- 재사용 탐지: 이미 회전되었거나 폐기된 토큰이 다시 오면 family 전체 폐기
- 로그아웃: 제시된 토큰의 family 폐기 (토큰이 없어도 성공)
- 비밀번호 재설정/변경, 계정 정지 시 사용자의 모든 family 폐기

family 상태:
- ACTIVE  : revoked=False 인 토큰이 정확히 1개
- REVOKED : family의 모든 토큰이 revoked=True (종료 상태)

설계 원칙:
- DB 조회 전에 반드시 서명/만료를 먼저 검증
- DB에는 서명된 토큰의 SHA-256만 저장
- 회전은 "revoked=False 인 경우에만 revoked=True" 조건부 UPDATE로 수행하여
  동시에 같은 토큰으로 두 번 회전되는 것을 차단
- 새 access 토큰은 항상 DB의 현재 email/status 기준으로 서명

관련 파일:
- app.core.security      : TokenCodec / 비밀번호 검증 / 토큰 해시
- app.models.tokens      : RefreshToken 모델
- app.routers.auth       : 로그인 / 재발급 / 로그아웃 API

"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.clock import Clock, ensure_utc
from app.core.config import Settings
from app.core.errors import DomainError, ErrorKind
from app.core.security import PasswordHasher, TokenCodec, hash_token
from app.models.tokens import RefreshToken
from app.models.user import User, UserStatus
from app.services.audit_log import AuditAction, write_audit_log

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    family: uuid.UUID


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SessionManager:
    def __init__(self, db: Session, codec: TokenCodec, hasher: PasswordHasher, settings: Settings, clock: Clock):
        self.db = db
        self.codec = codec
        self.hasher = hasher
        self.settings = settings
        self.clock = clock

    """
    로그인

    - 존재하지 않는 이메일 / 비밀번호 없는 계정 / 틀린 비밀번호는 모두 같은 INVALID_CREDENTIALS
    - 탈퇴(ACCOUNT_DELETED) / 정지(ACCOUNT_SUSPENDED) 계정은 비밀번호 검증 전에 거부
    - 성공 시 항상 새로운 family 생성

    """

    def login(self, email: str, password: str) -> LoginResult:
        user = self.db.scalar(select(User).where(User.email == normalize_email(email)))

        if not user or not user.password_hash:
            raise DomainError(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")

        if user.deleted_at is not None:
            raise DomainError(ErrorKind.ACCOUNT_DELETED, "This account has been deactivated")

        if user.status == UserStatus.SUSPENDED:
            raise DomainError(ErrorKind.ACCOUNT_SUSPENDED, "This account has been suspended")

        if not self.hasher.verify(password, user.password_hash):
            raise DomainError(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password")

        try:
            tokens = self._issue_pair(user, family=uuid.uuid4())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("User logged in user_id=%s family=%s", user.id, tokens.family)
        return LoginResult(tokens=tokens, user=user)

    """
    토큰 재발급 (회전)

    1) 서명 / 만료 / type 검증 (실패 시 DB 조회 없음)
    2) 해시 + subject 로 저장된 토큰 조회
       - 없음          : 이미 회전된 토큰의 재사용 → family 전체 폐기
       - revoked=True  : 폐기된 토큰 재사용 → family 전체 폐기
       - 만료          : TOKEN_EXPIRED
    3) 조건부 UPDATE로 현재 토큰 폐기 + 같은 family에 새 토큰 생성 (한 트랜잭션)

    """

    def refresh(self, raw_token: str) -> TokenPair:
        claims = self.codec.verify_refresh(raw_token)

        stored = self.db.scalar(
            select(RefreshToken)
            .where(
                RefreshToken.token_hash == hash_token(raw_token),
                RefreshToken.user_id == claims.sub,
            )
            .execution_options(populate_existing=True)
        )

        if stored is None or stored.revoked:
            raise self._reuse_detected(claims.sub, claims.family)

        if ensure_utc(stored.expires_at) <= self.clock.now():
            raise DomainError(ErrorKind.TOKEN_EXPIRED, "Refresh token has expired")

        # 상태 변경(인증 완료, 정지 등)을 즉시 반영하기 위해 항상 DB에서 다시 읽음
        user = self.db.scalar(
            select(User).where(User.id == claims.sub).execution_options(populate_existing=True)
        )
        if user is None or user.deleted_at is not None:
            self._revoke_family(stored.family)
            self.db.commit()
            raise DomainError(ErrorKind.INVALID_TOKEN, "Invalid refresh token")

        if user.status == UserStatus.SUSPENDED:
            self._revoke_family(stored.family)
            self.db.commit()
            raise DomainError(ErrorKind.ACCOUNT_SUSPENDED, "This account has been suspended")

        try:
            # compare-and-set: 동시에 같은 토큰으로 들어온 요청은 한쪽만 성공
            result = self.db.execute(
                update(RefreshToken)
                .where(RefreshToken.id == stored.id, RefreshToken.revoked.is_(False))
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                raise self._reuse_detected(claims.sub, stored.family)

            tokens = self._issue_pair(user, family=stored.family)
            self.db.commit()
        except DomainError:
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.debug("Token refreshed user_id=%s family=%s", user.id, stored.family)
        write_audit_log(AuditAction.AUTH_TOKEN_REFRESH, actor_id=user.id, target_type="user")
        return tokens

    """
    로그아웃

    - 토큰이 없으면 아무 것도 하지 않고 성공 (클라이언트 쿠키만 정리)
    - 토큰이 있으면 해당 토큰이 속한 family 전체 폐기
    - user_id가 주어지면 해당 사용자의 토큰으로만 한정

    """

    def logout(self, raw_token: str | None, user_id: uuid.UUID | None = None) -> None:
        if not raw_token:
            return

        stmt = select(RefreshToken).where(RefreshToken.token_hash == hash_token(raw_token))
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)
        stored = self.db.scalar(stmt)
        if stored is None:
            return

        try:
            self._revoke_family(stored.family)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("User logged out user_id=%s family=%s", stored.user_id, stored.family)

    def revoke_all(self, user_id: uuid.UUID) -> int:
        """사용자의 모든 family 폐기. commit은 호출 측에서 수행."""
        result = self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def active_families(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        return list(
            self.db.scalars(
                select(RefreshToken.family)
                .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
                .distinct()
            )
        )

    # ─── 내부 함수 ────────────────────────────────────────────

    def _issue_pair(self, user: User, *, family: uuid.UUID) -> TokenPair:
        token_id = uuid.uuid4()
        access = self.codec.sign_access(user.id, user.email, user.status.value)
        refresh = self.codec.sign_refresh(user.id, token_id, family)

        self.db.add(
            RefreshToken(
                id=token_id,
                token_hash=hash_token(refresh),
                user_id=user.id,
                family=family,
                revoked=False,
                expires_at=self.clock.now() + timedelta(seconds=self.settings.REFRESH_TOKEN_EXPIRE_SECONDS),
                created_at=self.clock.now(),
            )
        )
        self.db.flush()
        return TokenPair(access_token=access, refresh_token=refresh, family=family)

    def _revoke_family(self, family: uuid.UUID) -> None:
        self.db.execute(
            update(RefreshToken)
            .where(RefreshToken.family == family)
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )

    # family 전체를 폐기(commit)한 뒤 호출 측이 raise 할 오류를 돌려준다
    def _reuse_detected(self, user_id: uuid.UUID, family: uuid.UUID) -> DomainError:
        logger.warning("Refresh token reuse detected, revoking family user_id=%s family=%s", user_id, family)
        try:
            self._revoke_family(family)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        write_audit_log(
            AuditAction.AUTH_TOKEN_REUSE,
            actor_id=user_id,
            target_type="session",
            metadata={"family": str(family)},
        )
        return DomainError(ErrorKind.TOKEN_REUSE_DETECTED, "Refresh token has been revoked")
