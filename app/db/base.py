"""
base.py

SQLAlchemy 2.0 선언형 Base.

모든 모델(User, RefreshToken, Group, GroupMember, Task)은 이 Base를 상속하고,
alembic/env.py 도 Base.metadata 를 target_metadata 로 사용한다.

- 인덱스 / 제약조건 이름은 naming_convention 으로 고정
  (마이그레이션 파일의 ix_* / uq_* 이름과 일치)

"""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
