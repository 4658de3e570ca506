"""
deps.py

FastAPI 의존성(Depends) 모음.

create_app()에서 한 번 만들어 app.state에 보관한 협력 객체
(Settings, 세션 팩토리, Clock, 알림 outbox)를 요청 단위로 꺼내고,
이를 생성자 인자로 받는 서비스 객체를 조립한다.

인증 의존성:
- get_current_identity : Access Token 검증 (Authorization 헤더 → 쿠키 순)
- get_active_identity  : 위 + 계정 상태가 ACTIVE 인지 확인
- get_optional_identity: 토큰이 없거나 잘못되어도 None 반환 (로그아웃용)

속도 제한 의존성:
- enforce_api_rate_limit : /api/v1 전체에 붙는 기본 제한
- enforce_auth_rate_limit: login / register / forgot-password / reset-password 전용 제한

"""

from typing import Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.cookies import ACCESS_COOKIE_NAME
from app.core.errors import DomainError, ErrorKind
from app.core.rate_limit import AUTH_SCOPE, DEFAULT_SCOPE, RateLimiter, rate_limit_key
from app.core.security import AccessClaims, PasswordHasher, TokenCodec
from app.models.user import UserStatus
from app.services.accounts import AccountService
from app.services.groups import GroupAuthority
from app.services.notifications import NotificationSink
from app.services.sessions import SessionManager
from app.services.tasks import TaskEngine

# Swagger Authorize에서 "Bearer 토큰" 입력받는 스키마
bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notifier


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_token_codec(
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> TokenCodec:
    return TokenCodec(settings, clock)


# ─── 서비스 조립 ──────────────────────────────────────────────

def get_session_manager(
    db: Session = Depends(get_db),
    codec: TokenCodec = Depends(get_token_codec),
    hasher: PasswordHasher = Depends(get_password_hasher),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> SessionManager:
    return SessionManager(db, codec, hasher, settings, clock)


def get_group_authority(db: Session = Depends(get_db)) -> GroupAuthority:
    return GroupAuthority(db)


def get_account_service(
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
    groups: GroupAuthority = Depends(get_group_authority),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notifier),
) -> AccountService:
    return AccountService(db, sessions, groups, settings, clock, notifier)


def get_task_engine(
    db: Session = Depends(get_db),
    groups: GroupAuthority = Depends(get_group_authority),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
    notifier: NotificationSink = Depends(get_notifier),
) -> TaskEngine:
    return TaskEngine(db, groups, settings, clock, notifier)


# ─── 인증 ────────────────────────────────────────────────────

def _extract_access_token(request: Request, cred: HTTPAuthorizationCredentials | None) -> str | None:
    if cred is not None and cred.credentials:
        return cred.credentials
    return request.cookies.get(ACCESS_COOKIE_NAME)


def get_current_identity(
    request: Request,
    cred: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> AccessClaims:
    token = _extract_access_token(request, cred)
    if not token:
        raise DomainError(ErrorKind.NOT_AUTHENTICATED, "Authentication required")

    # 토큰에 담긴 status 기준으로 판단 (최대 access TTL 동안의 지연은 허용)
    return codec.verify_access(token)


def get_active_identity(identity: AccessClaims = Depends(get_current_identity)) -> AccessClaims:
    if identity.status != UserStatus.ACTIVE.value:
        raise DomainError(ErrorKind.ACCOUNT_NOT_ACTIVE, "Please verify your email before continuing")
    return identity


def get_optional_identity(
    request: Request,
    cred: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> AccessClaims | None:
    token = _extract_access_token(request, cred)
    if not token:
        return None
    try:
        return codec.verify_access(token)
    except DomainError:
        return None


# ─── 속도 제한 ────────────────────────────────────────────────

def enforce_api_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    codec: TokenCodec = Depends(get_token_codec),
) -> None:
    limiter.hit(DEFAULT_SCOPE, rate_limit_key(request, codec))


def enforce_auth_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
    codec: TokenCodec = Depends(get_token_codec),
) -> None:
    limiter.hit(AUTH_SCOPE, rate_limit_key(request, codec))
