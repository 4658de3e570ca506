"""
rate_limit.py

요청 속도 제한(Rate Limit) 유틸리티.

limits 라이브러리(고정 윈도우)를 감싼 얇은 래퍼이며,
create_app()에서 앱마다 하나 만들어 app.state.rate_limiter에 보관한다.

주요 기능:
- 기본 API 제한 (RATE_LIMIT_DEFAULT, 예: 100/minute)
- 인증 엔드포인트 제한 (RATE_LIMIT_AUTH, 예: 10/minute)
  : login / register / forgot-password / reset-password
- 식별 키: 유효한 Access Token이 있으면 user id, 없으면 클라이언트 IP
- 초과 시 DomainError(RATE_LIMITED) → 429 + Retry-After

저장소:
- RATE_LIMIT_STORAGE_URI (기본 memory://)
- 여러 워커를 띄우는 운영 환경에서는 redis:// URI 사용

관련 파일:
- app.core.deps          : 라우터에 붙는 제한 의존성
- app.main               : 앱별 RateLimiter 생성

"""

import logging
import math
import time

from fastapi import Request
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from app.core.config import Settings
from app.core.cookies import ACCESS_COOKIE_NAME
from app.core.errors import DomainError, ErrorKind
from app.core.security import TokenCodec

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "api"
AUTH_SCOPE = "auth"


class RateLimiter:
    def __init__(self, settings: Settings):
        self.enabled = settings.RATE_LIMIT_ENABLED
        self.storage = storage_from_string(settings.RATE_LIMIT_STORAGE_URI)
        self.strategy = FixedWindowRateLimiter(self.storage)
        self.limits = {
            DEFAULT_SCOPE: parse(settings.RATE_LIMIT_DEFAULT),
            AUTH_SCOPE: parse(settings.RATE_LIMIT_AUTH),
        }

    def hit(self, scope: str, key: str) -> None:
        if not self.enabled:
            return

        item = self.limits[scope]
        if self.strategy.hit(item, scope, key):
            return

        reset_at, _ = self.strategy.get_window_stats(item, scope, key)
        retry_after = max(1, math.ceil(reset_at - time.time()))
        logger.warning("Rate limit exceeded scope=%s key=%s limit=%s", scope, key, item)
        raise DomainError(
            ErrorKind.RATE_LIMITED,
            "Too many requests, please try again later",
            headers={"Retry-After": str(retry_after)},
        )


"""
요청 식별 키

- Authorization: Bearer <access> 또는 access 쿠키가 유효하면 "user:<id>"
- 토큰이 없거나 잘못되었으면 "ip:<client host>"

"""

def rate_limit_key(request: Request, codec: TokenCodec) -> str:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        token = request.cookies.get(ACCESS_COOKIE_NAME)
    if token:
        try:
            return f"user:{codec.verify_access(token).sub}"
        except DomainError:
            pass

    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"
