"""
session.py

데이터베이스 엔진 및 세션(Session) 팩토리 생성 파일.

이 파일은 SQLAlchemy Engine과 세션 팩토리를 만드는 함수만 제공한다.
실제 인스턴스는 create_app()에서 한 번만 만들어 app.state에 보관하며,
FastAPI 의존성(get_db)을 통해 요청 단위로 세션을 생성/종료한다.

설계 원칙:
- DB 연결 설정은 한 곳에서만 정의
- 모듈 import 시점에 엔진을 만들지 않음 (테스트에서 자유롭게 교체)
- pool_pre_ping=True로 유휴 연결 오류 방지
- SQLite(테스트용)는 스레드 간 공유 가능하도록 설정

관련 파일:
- app.main               : 엔진 / 세션 팩토리 생성
- app.core.deps          : get_db 의존성

"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # 메모리 DB는 커넥션마다 별도 DB가 되므로 하나의 커넥션을 공유
        if ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    # pool_pre_ping=True:
    #   장시간 idle 후 끊어진 DB 커넥션을 자동으로 감지/재연결
    return create_engine(database_url, pool_pre_ping=True)


# 요청 단위로 사용할 세션 팩토리
def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
