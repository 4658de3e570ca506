"""
SessionManager / TokenCodec 서비스 단위 테스트.
- 고정 Clock으로 access / refresh 만료 경계를 재현하고,
  조건부 UPDATE 기반 회전이 한 번만 성공하는지 검증한다.
"""

import uuid

import pytest
from sqlalchemy import select, update

from app.core.errors import DomainError, ErrorKind
from app.core.security import PasswordHasher, TokenCodec, hash_token
from app.models.tokens import RefreshToken
from app.models.user import User, UserStatus
from app.services.sessions import SessionManager
from tests.helpers import FrozenClock, unique_email


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def hasher(settings):
    return PasswordHasher(settings.BCRYPT_ROUNDS)


@pytest.fixture()
def manager(db_session, clock, hasher, settings):
    return SessionManager(db_session, TokenCodec(settings, clock), hasher, settings, clock)


@pytest.fixture()
def active_user(db_session, hasher):
    user = User(
        email=unique_email(),
        password_hash=hasher.hash("UserPassw0rd!"),
        name="세션유저",
        status=UserStatus.ACTIVE,
    )
    db_session.add(user)
    db_session.commit()
    return user


def test_access_token_expires_by_injected_clock(manager, active_user, clock):
    result = manager.login(active_user.email, "UserPassw0rd!")
    claims = manager.codec.verify_access(result.tokens.access_token)
    assert claims.sub == active_user.id
    assert claims.status == "ACTIVE"

    clock.advance(seconds=899)
    manager.codec.verify_access(result.tokens.access_token)

    clock.advance(seconds=1)
    with pytest.raises(DomainError) as exc:
        manager.codec.verify_access(result.tokens.access_token)
    assert exc.value.kind is ErrorKind.TOKEN_EXPIRED


def test_refresh_token_expiry(manager, active_user, clock):
    result = manager.login(active_user.email, "UserPassw0rd!")

    clock.advance(days=7)
    with pytest.raises(DomainError) as exc:
        manager.refresh(result.tokens.refresh_token)
    assert exc.value.kind is ErrorKind.TOKEN_EXPIRED


def test_login_is_case_insensitive_on_email(manager, active_user):
    result = manager.login(active_user.email.upper(), "UserPassw0rd!")
    assert result.user.id == active_user.id


def test_login_without_password_hash(manager, db_session):
    user = User(email=unique_email(), password_hash=None, name="oauth", status=UserStatus.ACTIVE)
    db_session.add(user)
    db_session.commit()

    with pytest.raises(DomainError) as exc:
        manager.login(user.email, "anything")
    assert exc.value.kind is ErrorKind.INVALID_CREDENTIALS


def test_rotation_keeps_family_and_single_active_token(manager, active_user, db_session):
    result = manager.login(active_user.email, "UserPassw0rd!")
    pair = manager.refresh(result.tokens.refresh_token)
    assert pair.family == result.tokens.family

    rows = db_session.scalars(
        select(RefreshToken)
        .where(RefreshToken.family == pair.family)
        .execution_options(populate_existing=True)
    ).all()
    assert len(rows) == 2
    assert [r.revoked for r in rows].count(False) == 1
    assert manager.active_families(active_user.id) == [pair.family]


def test_concurrent_rotation_only_one_wins(manager, active_user, session_factory):
    """다른 요청이 먼저 같은 토큰을 회전시킨 상황 재현 (조회 이후, UPDATE 이전)."""
    result = manager.login(active_user.email, "UserPassw0rd!")
    raw = result.tokens.refresh_token

    db = manager.db
    original_execute = db.execute
    raced = {"done": False}

    def racing_execute(statement, *args, **kwargs):
        if not raced["done"] and getattr(statement, "is_update", False):
            raced["done"] = True
            other = session_factory()
            try:
                other.execute(
                    update(RefreshToken)
                    .where(RefreshToken.token_hash == hash_token(raw))
                    .values(revoked=True)
                )
                other.commit()
            finally:
                other.close()
        return original_execute(statement, *args, **kwargs)

    db.execute = racing_execute
    try:
        with pytest.raises(DomainError) as exc:
            manager.refresh(raw)
    finally:
        db.execute = original_execute

    assert exc.value.kind is ErrorKind.TOKEN_REUSE_DETECTED
    assert manager.active_families(active_user.id) == []


def test_revoke_all(manager, active_user):
    manager.login(active_user.email, "UserPassw0rd!")
    manager.login(active_user.email, "UserPassw0rd!")
    assert len(manager.active_families(active_user.id)) == 2

    assert manager.revoke_all(active_user.id) == 2
    manager.db.commit()
    assert manager.active_families(active_user.id) == []


def test_refresh_for_unknown_subject_is_reuse(manager, clock, settings):
    codec = TokenCodec(settings, clock)
    forged = codec.sign_refresh(uuid.uuid4(), uuid.uuid4(), uuid.uuid4())

    with pytest.raises(DomainError) as exc:
        manager.refresh(forged)
    assert exc.value.kind is ErrorKind.TOKEN_REUSE_DETECTED


def test_password_hashers_keep_their_own_rounds():
    fast, slow = PasswordHasher(4), PasswordHasher(5)

    fast_hash = fast.hash("UserPassw0rd!")
    slow_hash = slow.hash("UserPassw0rd!")
    assert fast_hash.startswith("$2b$04$")
    assert slow_hash.startswith("$2b$05$")

    # 검증은 해시에 기록된 rounds를 따르므로 서로의 해시도 검증 가능
    assert fast.verify("UserPassw0rd!", slow_hash)
    assert not slow.verify("wrong", fast_hash)
    assert not fast.verify("UserPassw0rd!", None)
