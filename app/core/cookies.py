"""
cookies.py

인증 쿠키 설정 / 삭제 유틸리티.

- access_token  : path="/"             (모든 API 요청에 전송)
- refresh_token : path="/api/v1/auth"  (재발급 / 로그아웃 요청에만 전송)
- 모두 HttpOnly, Secure / SameSite / Domain 은 설정 값 사용

"""

from fastapi import Request, Response

from app.core.config import Settings

ACCESS_COOKIE_NAME = "access_token"
REFRESH_COOKIE_NAME = "refresh_token"

REFRESH_COOKIE_PATH = "/api/v1/auth"


def set_auth_cookies(response: Response, settings: Settings, access_token: str, refresh_token: str) -> None:
    response.set_cookie(
        key=ACCESS_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,        # 로컬 False / HTTPS 운영 True
        samesite=settings.COOKIE_SAMESITE,    # "lax" 추천
        domain=settings.COOKIE_DOMAIN,        # 보통 None
        path="/",
        max_age=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
    )
    response.set_cookie(
        key=REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite=settings.COOKIE_SAMESITE,
        domain=settings.COOKIE_DOMAIN,
        path=REFRESH_COOKIE_PATH,
        max_age=settings.REFRESH_TOKEN_EXPIRE_SECONDS,
    )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=ACCESS_COOKIE_NAME,
        path="/",
        domain=settings.COOKIE_DOMAIN,
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
    )
    response.delete_cookie(
        key=REFRESH_COOKIE_NAME,
        path=REFRESH_COOKIE_PATH,
        domain=settings.COOKIE_DOMAIN,
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
    )


def get_refresh_token(request: Request, body_token: str | None = None) -> str | None:
    """body로 받은 토큰이 있으면 우선, 없으면 쿠키."""
    if body_token:
        return body_token
    return request.cookies.get(REFRESH_COOKIE_NAME)
