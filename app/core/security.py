"""
security.py

비밀번호 해싱 및 JWT 토큰 서명/검증을 담당하는 보안 유틸리티 모음.

이 파일은 인증(auth) 로직에서 사용하는
저수준(low-level) 보안 기능만을 제공하며,
라우터나 비즈니스 로직(세션 회전, 재사용 탐지)은 포함하지 않는다.

주요 기능:
- 비밀번호 해싱 및 검증 (bcrypt)
- Access Token 서명 / 검증 (sub, email, status)
- Refresh Token 서명 / 검증 (sub, token_id, family)
- 서명된 토큰의 SHA-256 해시 (DB 저장용)

설계 원칙:
- Access Token과 Refresh Token은 서로 다른 시크릿으로 서명
- 토큰에 type(access/refresh)을 포함하여 종류 혼용 차단
- 검증은 서명 + 만료만 확인 (DB 조회 없음)
- 만료(exp)는 주입된 Clock 기준 UTC로 판단

관련 파일:
- app.core.config        : 시크릿 키 및 만료 설정
- app.core.deps          : Access Token 검증 의존성
- app.services.sessions  : Refresh Token 회전 / 재사용 탐지

"""

import hashlib
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.clock import Clock
from app.core.config import Settings
from app.core.errors import DomainError, ErrorKind


"""
비밀번호 해시 / 검증기

- bcrypt 기반 CryptContext를 인스턴스마다 따로 보유 (rounds는 Settings.BCRYPT_ROUNDS)
- create_app()에서 한 번 만들어 app.state에 보관하고 서비스에 주입
- deprecated="auto"로 향후 알고리즘 교체 가능
- OAuth 전용 계정처럼 해시가 없으면 검증은 항상 실패

"""

class PasswordHasher:
    def __init__(self, rounds: int = 12):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        return self.context.hash(password)

    def verify(self, plain: str, hashed: Optional[str]) -> bool:
        if not hashed:
            return False
        return self.context.verify(plain, hashed)


# 서명된 토큰 문자열의 SHA-256 hex. DB에는 원문 대신 이 값만 저장한다.
def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AccessClaims:
    sub: uuid.UUID
    email: str
    status: str
    exp: int


@dataclass(frozen=True)
class RefreshClaims:
    sub: uuid.UUID
    token_id: uuid.UUID
    family: uuid.UUID
    exp: int


class TokenCodec:
    """Access / Refresh 토큰의 무상태(stateless) 서명·검증기."""

    def __init__(self, settings: Settings, clock: Clock):
        self.settings = settings
        self.clock = clock

    def sign_access(self, user_id: uuid.UUID, email: str, status: str) -> str:
        return self._encode(
            token_type="access",
            subject=str(user_id),
            secret=self.settings.SECRET_KEY,
            expires_delta=timedelta(seconds=self.settings.ACCESS_TOKEN_EXPIRE_SECONDS),
            extra={"email": email, "status": status},
        )

    def verify_access(self, token: str) -> AccessClaims:
        payload = self._decode(token, token_type="access", secret=self.settings.SECRET_KEY)
        try:
            return AccessClaims(
                sub=uuid.UUID(payload["sub"]),
                email=payload["email"],
                status=payload["status"],
                exp=int(payload["exp"]),
            )
        except (KeyError, ValueError, TypeError):
            raise DomainError(ErrorKind.INVALID_TOKEN, "Invalid access token")

    def sign_refresh(self, user_id: uuid.UUID, token_id: uuid.UUID, family: uuid.UUID) -> str:
        return self._encode(
            token_type="refresh",
            subject=str(user_id),
            secret=self.settings.REFRESH_SECRET_KEY,
            expires_delta=timedelta(seconds=self.settings.REFRESH_TOKEN_EXPIRE_SECONDS),
            extra={"token_id": str(token_id), "family": str(family)},
        )

    def verify_refresh(self, token: str) -> RefreshClaims:
        payload = self._decode(token, token_type="refresh", secret=self.settings.REFRESH_SECRET_KEY)
        try:
            return RefreshClaims(
                sub=uuid.UUID(payload["sub"]),
                token_id=uuid.UUID(payload["token_id"]),
                family=uuid.UUID(payload["family"]),
                exp=int(payload["exp"]),
            )
        except (KeyError, ValueError, TypeError):
            raise DomainError(ErrorKind.INVALID_TOKEN, "Invalid refresh token")

    """
    JWT 토큰 생성 내부 공통 함수

    - subject(sub): 사용자 식별자(user_id)
    - type: access 또는 refresh
    - iat / exp: Clock 기준 발급 / 만료 시각 (UTC timestamp)
    - extra: email/status 또는 token_id/family

    """

    def _encode(self, *, token_type: Literal["access", "refresh"], subject: str,
                secret: str, expires_delta: timedelta, extra: dict) -> str:
        issued = self.clock.now()
        payload = {
            "sub": subject,
            "type": token_type,
            "iat": int(issued.timestamp()),
            "exp": int((issued + expires_delta).timestamp()),
        }
        payload.update(extra)
        return jwt.encode(payload, secret, algorithm=self.settings.ALGORITHM)

    def _decode(self, token: str, *, token_type: str, secret: str) -> dict:
        # 만료는 라이브러리 시계가 아니라 주입된 Clock으로 판단한다
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.ALGORITHM],
                options={"verify_exp": False, "require_exp": True, "require_sub": True},
            )
        except JWTError:
            raise DomainError(ErrorKind.INVALID_TOKEN, f"Invalid {token_type} token")

        if payload.get("type") != token_type:
            raise DomainError(ErrorKind.INVALID_TOKEN, f"Invalid {token_type} token")

        try:
            exp = int(payload["exp"])
        except (KeyError, ValueError, TypeError):
            raise DomainError(ErrorKind.INVALID_TOKEN, f"Invalid {token_type} token")

        if exp <= int(self.clock.now().timestamp()):
            raise DomainError(ErrorKind.TOKEN_EXPIRED, f"{token_type.capitalize()} token has expired")
        return payload
