"""
config.py

애플리케이션 전역 설정(Configuration) 관리 파일.

이 파일은 .env 환경 변수들을 Pydantic BaseSettings를 통해 로드하여
애플리케이션 전반에서 공통으로 사용하는 설정 값을 제공한다.

주요 설정 항목:
- 데이터베이스 연결 정보
- Access / Refresh 토큰 시크릿 및 만료 정책 (초 단위)
- 이메일 인증 / 비밀번호 재설정 토큰 만료 정책
- 쿠키 보안 옵션
- CORS 허용 도메인 목록
- 기능 플래그(Feature Flag) 및 SMTP 설정
- 요청 속도 제한(Rate Limit)

설계 원칙:
- 모든 환경 변수는 이 파일을 통해서만 접근
- Settings 객체는 create_app()에서 한 번만 생성하여 app.state에 보관
- 서비스 계층은 전역 변수 대신 생성자 인자로 Settings를 전달받음
- 설정 값은 런타임 중 변경되지 않는 불변 객체로 취급

관련 파일:
- app.main               : create_app() 에서 Settings 생성 및 주입
- app.core.deps          : 요청 단위로 app.state.settings 제공
- app.core.security      : 토큰 시크릿 / 만료 설정 사용
- app.db.session         : DATABASE_URL 사용

"""

from typing import List, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# .env 파일에 정의된 환경 변수를 로드하는 설정 클래스
# extra="ignore" 옵션으로 정의되지 않은 환경 변수는 무시
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "Task Management"
    ENVIRONMENT: Literal["development", "test", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    TEST_DATABASE_URL: str | None = None

    # access / refresh 시크릿은 반드시 분리
    SECRET_KEY: str = Field(min_length=32)
    REFRESH_SECRET_KEY: str = Field(min_length=32)
    ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_SECONDS: int = 900          # 15분
    REFRESH_TOKEN_EXPIRE_SECONDS: int = 604800      # 7일
    VERIFICATION_TOKEN_EXPIRE_SECONDS: int = 86400  # 24시간
    PASSWORD_RESET_TOKEN_EXPIRE_SECONDS: int = 900  # 15분

    BCRYPT_ROUNDS: int = 12

    # 쿠키/배포 옵션
    # - COOKIE_SECURE: HTTPS 환경에서만 True 권장
    # - COOKIE_SAMESITE: CSRF 완화를 위해 "lax" 기본값
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "lax"
    COOKIE_DOMAIN: str | None = None

    # CORS 허용 도메인 (프론트엔드 주소)
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    FRONTEND_URL: str = "http://localhost:3000"

    # 기능 플래그
    ENABLE_EMAIL: bool = False
    ENABLE_ASSIGNMENTS: bool = False
    ENABLE_PASSWORD_RESET: bool = False

    # SMTP (미설정 시 메일 발송은 로그만 남기고 건너뜀)
    SMTP_SERVER: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM: str = "no-reply@taskmanagement.local"
    SMTP_TIMEOUT: int = 30

    # 요청 속도 제한 (limits 표기법, 예: "100/minute")
    # - 여러 워커로 띄우면 RATE_LIMIT_STORAGE_URI를 redis:// 로 지정
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "100/minute"
    RATE_LIMIT_AUTH: str = "10/minute"
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    @model_validator(mode="after")
    def _check_distinct_secrets(self) -> "Settings":
        if self.SECRET_KEY == self.REFRESH_SECRET_KEY:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must differ")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"
