import os

# app.main 은 import 시점에 앱을 만들기 때문에 환경 변수를 먼저 채워둔다
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", os.getenv("TEST_DATABASE_URL", "sqlite://"))
os.environ.setdefault("SECRET_KEY", "test-access-secret-0123456789abcdef0123")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret-0123456789abcdef012")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.deps import get_db
from app.db.base import Base
from app.db.session import build_engine, build_session_factory
from app.main import create_app

# ✅ 모델 import (Base.metadata에 테이블 등록)
import app.models  # noqa: F401

from tests.helpers import RecordingNotifier


TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

engine = build_engine(TEST_DB_URL)
TestingSessionLocal = build_session_factory(engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_settings(**overrides) -> Settings:
    values = dict(
        ENVIRONMENT="test",
        DATABASE_URL=TEST_DB_URL,
        BCRYPT_ROUNDS=4,
        ENABLE_EMAIL=True,
        ENABLE_ASSIGNMENTS=True,
        ENABLE_PASSWORD_RESET=True,
        # 한 테스트 안에서 가입/로그인을 여러 번 하므로 제한을 넉넉히 둔다
        RATE_LIMIT_DEFAULT="10000/minute",
        RATE_LIMIT_AUTH="1000/minute",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """테스트 전체 시작/종료 때만 스키마 생성/삭제"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """각 테스트마다 데이터 초기화 (테이블은 유지, row만 삭제)"""
    yield
    # FK 의존성 역순으로 삭제 (SQLite / PostgreSQL 공통)
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def settings():
    return make_settings()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def db_session():
    """테스트에서 직접 DB 조작할 때 쓰는 세션"""
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client_factory(notifier):
    """설정을 바꾼 앱이 필요한 테스트용 (기능 플래그 off 등)"""
    clients = []

    def _make(**overrides) -> TestClient:
        fastapi_app = create_app(make_settings(**overrides), notifier=notifier)
        fastapi_app.dependency_overrides[get_db] = override_get_db
        c = TestClient(fastapi_app)
        c.__enter__()
        clients.append(c)
        return c

    yield _make

    for c in clients:
        c.__exit__(None, None, None)
        c.app.dependency_overrides.clear()


@pytest.fixture()
def client(settings, notifier):
    fastapi_app = create_app(settings, notifier=notifier)
    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def session_factory():
    """동시성 재현 등 두 번째 세션이 필요한 테스트용"""
    return TestingSessionLocal
