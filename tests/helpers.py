# tests/helpers.py
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.models.user import User
from app.services.notifications import NotificationSink

DEFAULT_PASSWORD = "UserPassw0rd!"


class RecordingNotifier(NotificationSink):
    """메일 대신 요청된 알림을 기록만 하는 테스트용 sink."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def enqueue(self, kind: str, recipient: str, template_data: dict) -> None:
        self.sent.append((kind, recipient, template_data))

    def of_kind(self, kind: str, recipient: str | None = None) -> list[dict]:
        return [
            data for k, r, data in self.sent
            if k == kind and (recipient is None or r == recipient)
        ]

    def last_token(self, kind: str, recipient: str) -> str:
        return self.of_kind(kind, recipient)[-1]["token"]


class FrozenClock(Clock):
    """now()가 고정 시각을 돌려주는 Clock. advance()로 시간 이동."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@test.com"


def register(client, *, email: str | None = None, password: str = DEFAULT_PASSWORD, name: str = "테스트유저") -> dict:
    email = email or unique_email()
    r = client.post("/api/v1/auth/register", json={"email": email, "password": password, "name": name})
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    return {
        "email": email,
        "password": password,
        "user_id": data["user"]["id"],
        "verification_token": data["verification_token"],
    }


def login(client, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]


def register_and_verify(client, *, email: str | None = None, password: str = DEFAULT_PASSWORD,
                        name: str = "테스트유저") -> dict:
    """
    가입 → 이메일 인증 → 로그인까지 마친 사용자 정보
    (user_id, email, password, access_token, refresh_token)
    """
    user = register(client, email=email, password=password, name=name)

    verify = client.post("/api/v1/auth/verify-email", json={"token": user["verification_token"]})
    assert verify.status_code == 200, verify.text

    tokens = login(client, user["email"], password)
    user["access_token"] = tokens["access_token"]
    user["refresh_token"] = tokens["refresh_token"]
    return user


def create_group(client, token: str, name: str = "Team") -> str:
    r = client.post("/api/v1/groups", json={"name": name}, headers=auth_header(token))
    assert r.status_code == 201, r.text
    return r.json()["data"]["id"]


def add_member(client, token: str, group_id: str, user_id: str, role: str = "MEMBER"):
    return client.post(
        f"/api/v1/groups/{group_id}/members",
        json={"user_id": user_id, "role": role},
        headers=auth_header(token),
    )


def get_user(db: Session, user_id: str) -> User:
    return db.scalar(select(User).where(User.id == uuid.UUID(user_id)))
