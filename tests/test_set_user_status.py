"""
운영 스크립트(set_user_status) 테스트.
- 정지 시 모든 refresh family 폐기 + 로그인 차단, 재활성화 후 로그인 가능 여부를 검증한다.
"""

import pytest

from app.models.user import UserStatus
from scripts.set_user_status import set_user_status
from tests.helpers import get_user, login, register, register_and_verify


def test_suspend_revokes_sessions_and_blocks_login(client, db_session, settings):
    user = register_and_verify(client)
    login(client, user["email"])

    revoked = set_user_status(db_session, settings, user["email"].upper(), UserStatus.SUSPENDED)
    assert revoked == 2

    r = client.post("/api/v1/auth/refresh", json={"refresh_token": user["refresh_token"]})
    assert r.status_code == 401
    assert r.json()["code"] == "TOKEN_REUSE_DETECTED"

    r = client.post("/api/v1/auth/login", json={"email": user["email"], "password": user["password"]})
    assert r.status_code == 403
    assert r.json()["code"] == "ACCOUNT_SUSPENDED"


def test_reactivate_suspended_user(client, db_session, settings):
    user = register_and_verify(client)
    set_user_status(db_session, settings, user["email"], UserStatus.SUSPENDED)

    assert set_user_status(db_session, settings, user["email"], UserStatus.ACTIVE) == 0
    assert get_user(db_session, user["user_id"]).status == UserStatus.ACTIVE
    login(client, user["email"])


def test_unverified_user_cannot_be_activated_by_script(client, db_session, settings):
    user = register(client)

    with pytest.raises(ValueError):
        set_user_status(db_session, settings, user["email"], UserStatus.ACTIVE)

    with pytest.raises(ValueError):
        set_user_status(db_session, settings, user["email"], UserStatus.UNVERIFIED)


def test_unknown_user(db_session, settings):
    with pytest.raises(LookupError):
        set_user_status(db_session, settings, "nobody@test.com", UserStatus.SUSPENDED)
