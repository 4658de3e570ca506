"""
요청 속도 제한 통합 테스트.
- 인증 엔드포인트의 엄격한 제한, 사용자별 기본 제한,
  429 응답 형식(code / Retry-After)과 제한 제외 경로를 검증한다.
"""

from tests.helpers import auth_header, register_and_verify, unique_email


def _bad_login(client):
    return client.post("/api/v1/auth/login", json={"email": unique_email(), "password": "WrongPass1!"})


def test_login_is_limited_per_client(client_factory):
    c = client_factory(RATE_LIMIT_AUTH="3/minute")

    for _ in range(3):
        assert _bad_login(c).status_code == 401

    r = _bad_login(c)
    assert r.status_code == 429
    assert r.json()["code"] == "RATE_LIMITED"
    assert int(r.headers["Retry-After"]) >= 1


def test_auth_limit_is_shared_by_sensitive_endpoints(client_factory):
    c = client_factory(RATE_LIMIT_AUTH="2/minute")

    assert c.post("/api/v1/auth/forgot-password", json={"email": unique_email()}).status_code == 200
    assert _bad_login(c).status_code == 401

    r = c.post("/api/v1/auth/register", json={"email": unique_email(), "password": "Password1!", "name": "x"})
    assert r.status_code == 429
    assert r.json()["code"] == "RATE_LIMITED"

    r = c.post("/api/v1/auth/reset-password", json={"token": "whatever", "password": "Password1!"})
    assert r.status_code == 429


def test_default_limit_is_keyed_by_user(client_factory):
    c = client_factory(RATE_LIMIT_DEFAULT="10/minute")
    alice = register_and_verify(c, name="Alice")
    bob = register_and_verify(c, name="Bob")

    statuses = [c.get("/api/v1/users/me", headers=auth_header(alice["access_token"])).status_code
                for _ in range(10)]
    assert statuses[0] == 200
    assert statuses[-1] == 429

    # 다른 사용자의 버킷은 영향 없음
    r = c.get("/api/v1/users/me", headers=auth_header(bob["access_token"]))
    assert r.status_code == 200, r.text


def test_health_is_not_limited(client_factory):
    c = client_factory(RATE_LIMIT_DEFAULT="1/minute")
    for _ in range(3):
        assert c.get("/health").status_code == 200


def test_rate_limit_can_be_disabled(client_factory):
    c = client_factory(RATE_LIMIT_ENABLED=False, RATE_LIMIT_AUTH="1/minute")
    for _ in range(3):
        assert _bad_login(c).status_code == 401
