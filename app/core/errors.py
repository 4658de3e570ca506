"""
errors.py

도메인 오류(Domain Error) 정의 파일.

서비스 계층에서 발생하는 모든 예상 가능한 실패는
닫힌 집합(ErrorKind)의 태그 하나로 표현된다.
각 태그는 고정된 HTTP 상태 코드와 기계 판독용 code 문자열을 가진다.

설계 원칙:
- 서비스는 DomainError 하나만 raise 한다 (서비스별 예외 클래스 없음)
- HTTP 계층은 kind → (status, code) 매핑만 수행한다
- 메시지는 사용자에게 그대로 노출 가능한 문장만 사용

관련 파일:
- app.main               : DomainError 전역 핸들러 등록
- app.services.*         : DomainError 발생

"""

from enum import Enum

from fastapi.responses import JSONResponse


class ErrorKind(Enum):
    # (HTTP status, code)

    # 인증 실패 (401)
    NOT_AUTHENTICATED = (401, "NOT_AUTHENTICATED")
    INVALID_CREDENTIALS = (401, "INVALID_CREDENTIALS")
    INVALID_TOKEN = (401, "INVALID_TOKEN")
    TOKEN_EXPIRED = (401, "TOKEN_EXPIRED")
    TOKEN_REUSE_DETECTED = (401, "TOKEN_REUSE_DETECTED")
    ACCOUNT_DELETED = (401, "ACCOUNT_DELETED")

    # 권한 실패 (403)
    ACCOUNT_SUSPENDED = (403, "ACCOUNT_SUSPENDED")
    ACCOUNT_NOT_ACTIVE = (403, "ACCOUNT_NOT_ACTIVE")
    NOT_A_MEMBER = (403, "NOT_A_MEMBER")
    NOT_ADMIN = (403, "NOT_ADMIN")
    FORBIDDEN = (403, "FORBIDDEN")

    # 상태 충돌 / 잘못된 요청 (400, 409)
    INVALID_TRANSITION = (400, "INVALID_TRANSITION")
    INVALID_STATE = (400, "INVALID_STATE")
    LAST_ADMIN_REMOVAL = (400, "LAST_ADMIN_REMOVAL")
    INVALID_ONE_TIME_TOKEN = (400, "INVALID_ONE_TIME_TOKEN")
    ONE_TIME_TOKEN_EXPIRED = (400, "ONE_TIME_TOKEN_EXPIRED")
    PASSWORD_UNCHANGED = (400, "PASSWORD_UNCHANGED")
    NO_CHANGES = (400, "NO_CHANGES")
    FEATURE_DISABLED = (400, "FEATURE_DISABLED")
    ALREADY_MEMBER = (409, "ALREADY_MEMBER")
    EMAIL_EXISTS = (409, "EMAIL_EXISTS")

    # 요청 과다 (429)
    RATE_LIMITED = (429, "RATE_LIMITED")

    # 존재하지 않음 (404)
    USER_NOT_FOUND = (404, "USER_NOT_FOUND")
    TASK_NOT_FOUND = (404, "TASK_NOT_FOUND")
    GROUP_NOT_FOUND = (404, "GROUP_NOT_FOUND")
    MEMBERSHIP_NOT_FOUND = (404, "MEMBERSHIP_NOT_FOUND")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def code(self) -> str:
        return self.value[1]


class DomainError(Exception):
    """서비스 계층의 모든 예상 가능한 실패."""

    def __init__(self, kind: ErrorKind, message: str, headers: dict | None = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.headers = headers

    def __repr__(self) -> str:
        return f"DomainError({self.kind.code}, {self.message!r})"


def error_response(exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.kind.status_code,
        content={"detail": exc.message, "code": exc.kind.code},
        headers=exc.headers,
    )
