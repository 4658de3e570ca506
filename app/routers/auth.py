"""
auth.py

인증(Authentication) API 모음.

이 파일은 회원 가입, 이메일 인증, 로그인, 토큰 재발급, 로그아웃,
비밀번호 재설정과 같이 사용자 인증 흐름 전반을 담당한다.
JWT 기반 인증 방식을 사용하며, Access Token + Refresh Token 구조를 따른다.

주요 기능:
- 회원 가입 (UNVERIFIED 상태로 생성, 인증 메일 발송)
- 이메일 인증 / 인증 메일 재발송
- 로그인 및 토큰 발급
- Refresh Token 회전(rotation) 기반 재발급 + 재사용 탐지
- 로그아웃 (해당 세션 family 무효화)
- 비밀번호 재설정 요청 / 완료

설계 원칙:
- Access Token은 Authorization Header 또는 access_token 쿠키로 전달
- Refresh Token은 HttpOnly Cookie(path=/api/v1/auth) 또는 요청 body로 전달
- 계정 존재 여부가 드러나지 않도록 재발송 / 재설정 요청은 항상 같은 응답
- 재발급 실패 시 인증 쿠키 삭제
- 가입 / 로그인 / 비밀번호 재설정 요청·완료는 별도의 더 엄격한 속도 제한 적용

관련 파일:
- app.services.sessions    : 로그인 / 회전 / 로그아웃
- app.services.accounts    : 가입 / 인증 / 비밀번호 재설정
- app.core.cookies         : 인증 쿠키 설정 / 삭제
- app.schemas.auth         : 인증 관련 요청/응답

"""

from fastapi import APIRouter, Body, Depends, Request, Response, status

from app.core.config import Settings
from app.core.cookies import clear_auth_cookies, get_refresh_token, set_auth_cookies
from app.core.deps import (
    enforce_auth_rate_limit,
    get_account_service,
    get_optional_identity,
    get_session_manager,
    get_settings,
)
from app.core.errors import DomainError, ErrorKind, error_response
from app.core.security import AccessClaims
from app.schemas.auth import (
    EmailRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from app.schemas.user import UserResponse
from app.services.accounts import AccountService
from app.services.audit_log import AuditAction, write_audit_log
from app.services.sessions import SessionManager

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

RESEND_MESSAGE = "If an account exists with this email, a verification link has been sent."
FORGOT_MESSAGE = "If an account exists with this email, a reset link has been sent."


def _client(request: Request) -> dict:
    return {
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


"""
회원 가입 API

- 이메일 기준으로 신규 회원 가입 (UNVERIFIED)
- 이미 존재하는 이메일이면 409 EMAIL_EXISTS
- 운영 환경이 아니면 테스트 편의를 위해 인증 토큰을 응답에 포함

"""

@router.post("/register", status_code=status.HTTP_201_CREATED, dependencies=[Depends(enforce_auth_rate_limit)])
def register(
    data: RegisterRequest,
    request: Request,
    accounts: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    result = accounts.register(email=data.email, password=data.password, name=data.name)

    write_audit_log(
        AuditAction.AUTH_REGISTER,
        actor_id=result.user.id,
        target_id=result.user.id,
        target_type="user",
        **_client(request),
    )

    payload = {
        "user": UserResponse.model_validate(result.user),
        "message": "Registration successful. Please verify your email.",
    }
    if not settings.is_production:
        payload["verification_token"] = result.verification_token
    return {"data": payload}


"""
로그인 API

- 이메일 / 비밀번호 인증
- 탈퇴 / 정지 계정은 로그인 불가
- Access / Refresh Token을 HttpOnly Cookie로 설정하고 응답 바디에도 반환

"""

@router.post("/login", dependencies=[Depends(enforce_auth_rate_limit)])
def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    try:
        result = sessions.login(data.email, data.password)
    except DomainError as e:
        write_audit_log(AuditAction.AUTH_LOGIN_FAILURE, metadata={"reason": e.kind.code}, **_client(request))
        raise

    set_auth_cookies(response, settings, result.tokens.access_token, result.tokens.refresh_token)
    write_audit_log(AuditAction.AUTH_LOGIN_SUCCESS, actor_id=result.user.id, target_type="user", **_client(request))

    return {
        "data": {
            "user": UserResponse.model_validate(result.user),
            "access_token": result.tokens.access_token,
            "refresh_token": result.tokens.refresh_token,
            "token_type": "bearer",
        }
    }


"""
토큰 재발급 API

- body의 refresh_token 우선, 없으면 쿠키 사용
- 성공 시 같은 family에 새 토큰 쌍 발급 (이전 토큰은 폐기)
- 실패 시 인증 쿠키 삭제 후 오류 응답

"""

@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    data: RefreshRequest | None = Body(default=None),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    raw = get_refresh_token(request, data.refresh_token if data else None)

    try:
        if not raw:
            raise DomainError(ErrorKind.NOT_AUTHENTICATED, "No refresh token provided")
        tokens = sessions.refresh(raw)
    except DomainError as e:
        failed = error_response(e)
        clear_auth_cookies(failed, settings)
        return failed

    set_auth_cookies(response, settings, tokens.access_token, tokens.refresh_token)
    return {
        "data": {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "token_type": "bearer",
        }
    }


"""
로그아웃 API

- 인증 없이도 호출 가능 (쿠키 정리만이라도 수행)
- 제시된 Refresh Token의 family 전체 무효화

"""

@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    data: RefreshRequest | None = Body(default=None),
    identity: AccessClaims | None = Depends(get_optional_identity),
    sessions: SessionManager = Depends(get_session_manager),
    settings: Settings = Depends(get_settings),
):
    raw = get_refresh_token(request, data.refresh_token if data else None)
    sessions.logout(raw, user_id=identity.sub if identity else None)

    clear_auth_cookies(response, settings)
    write_audit_log(
        AuditAction.AUTH_LOGOUT,
        actor_id=identity.sub if identity else None,
        target_type="user",
        **_client(request),
    )
    return {"data": {"message": "Logged out"}}


@router.post("/verify-email")
def verify_email(data: VerifyEmailRequest, accounts: AccountService = Depends(get_account_service)):
    accounts.verify_email(data.token)
    return {"data": {"message": "Email verified successfully"}}


@router.post("/resend-verification")
def resend_verification(data: EmailRequest, accounts: AccountService = Depends(get_account_service)):
    accounts.resend_verification(data.email)
    return {"data": {"message": RESEND_MESSAGE}}


"""
비밀번호 재설정 요청 / 완료 API

- ENABLE_PASSWORD_RESET 이 꺼져 있으면 400 FEATURE_DISABLED
- 요청은 계정 존재 여부와 무관하게 항상 같은 응답
- 완료 시 모든 세션이 폐기되므로 인증 쿠키도 삭제

"""

@router.post("/forgot-password", dependencies=[Depends(enforce_auth_rate_limit)])
def forgot_password(data: EmailRequest, accounts: AccountService = Depends(get_account_service)):
    accounts.request_password_reset(data.email)
    return {"data": {"message": FORGOT_MESSAGE}}


@router.post("/reset-password", dependencies=[Depends(enforce_auth_rate_limit)])
def reset_password(
    data: ResetPasswordRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
    settings: Settings = Depends(get_settings),
):
    accounts.reset_password(data.token, data.password)
    clear_auth_cookies(response, settings)
    return {"data": {"message": "Password has been reset. Please log in again."}}
