"""
main.py

FastAPI 애플리케이션 진입점(Entry Point).

이 파일은 서버 실행 시 가장 먼저 로드되며,
애플리케이션 전반의 설정과 라우터 등록을 담당한다.

주요 역할:
- create_app(): Settings / DB 엔진 / 세션 팩토리 / Clock / 비밀번호 해시기 / 속도 제한기 / 알림 outbox를
  한 번만 생성하여 app.state에 보관
- CORS 미들웨어 설정
- /api/v1 라우터 전체에 기본 속도 제한 의존성 부착
- 도메인 오류(DomainError) 및 예기치 못한 오류의 전역 핸들러 등록
- 각 도메인별 라우터(auth, users, groups, tasks) 등록
- 헬스 체크 및 DB 연결 상태 확인용 엔드포인트 제공

설계 원칙:
- 비즈니스 로직은 포함하지 않고 설정/조립 역할만 수행
- 실제 기능은 routers / services 계층에 위임
- 운영 환경에서도 안전하게 상태 확인 가능하도록 health/db-ping 제공

관련 파일:
- app.core.config        : 환경 변수 및 설정 로드
- app.core.deps          : app.state 기반 의존성
- app.routers.*          : 기능별 API 라우터

"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.deps import enforce_api_rate_limit, get_db
from app.core.errors import DomainError, error_response
from app.core.logging import configure_logging
from app.core.rate_limit import RateLimiter
from app.core.security import PasswordHasher
from app.db.session import build_engine, build_session_factory
from app.routers import auth, groups, tasks, users
from app.services.notifications import EmailOutbox, NotificationSink

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, notifier: NotificationSink | None = None) -> FastAPI:
    settings = settings or Settings()

    configure_logging(settings.LOG_LEVEL)

    engine = build_engine(settings.DATABASE_URL)
    notifier = notifier or EmailOutbox(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.notifier.start()
        logger.info("Application started environment=%s", settings.ENVIRONMENT)
        yield
        app.state.notifier.stop()
        app.state.engine.dispose()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.clock = Clock()
    app.state.password_hasher = PasswordHasher(settings.BCRYPT_ROUNDS)
    app.state.rate_limiter = RateLimiter(settings)
    app.state.notifier = notifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    async def handle_domain_error(request: Request, exc: DomainError):
        return error_response(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error method=%s path=%s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"detail": "An unexpected error occurred", "code": "INTERNAL_ERROR"},
        )

    # /api/v1 전체에 기본 속도 제한 (health / db-ping 제외)
    for router in (auth.router, users.router, groups.router, tasks.router):
        app.include_router(router, dependencies=[Depends(enforce_api_rate_limit)])

    """
    서버 헬스 체크 엔드포인트

    - 애플리케이션 프로세스가 정상 동작 중인지 확인
    - 로드밸런서 / 배포 환경에서 서버 상태 확인 용도

    """
    @app.get("/health")
    def health():
        return {"status": "ok"}

    """
    데이터베이스 연결 상태 확인 엔드포인트

    - 간단한 SELECT 1 쿼리를 통해 DB 연결 여부 확인
    - 서버는 살아 있으나 DB가 죽은 상황을 분리해서 감지 가능

    """
    @app.get("/db-ping")
    def db_ping(db: Session = Depends(get_db)):
        value = db.execute(text("SELECT 1")).scalar_one()
        return {"db": "ok", "value": value}

    return app


app = create_app()
