"""

사용자 계정 정지 / 재활성화 스크립트.

- 운영자가 특정 사용자를 SUSPENDED 로 바꾸거나 ACTIVE 로 되돌릴 때 사용
- 정지 시 해당 사용자의 모든 refresh family를 같은 트랜잭션에서 폐기한다
  (이미 발급된 access 토큰은 만료 시각까지 유효)
- UNVERIFIED 계정을 ACTIVE 로 바꾸는 용도로는 쓰지 않는다 (이메일 인증 경로 사용)

사용 방법
- 가상환경 접속
- (.venv) ~\backend~$ python -m scripts.set_user_status user@example.com SUSPENDED
- (.venv) ~\backend~$ python -m scripts.set_user_status user@example.com ACTIVE

"""

import argparse

from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.security import PasswordHasher, TokenCodec
from app.db.session import build_engine, build_session_factory
from app.models.user import User, UserStatus
from app.services.audit_log import AuditAction, write_audit_log
from app.services.sessions import SessionManager, normalize_email


def set_user_status(db: Session, settings: Settings, email: str, status: UserStatus) -> int:
    """상태 변경 후 폐기된 refresh 토큰 수를 돌려준다."""
    if status == UserStatus.UNVERIFIED:
        raise ValueError("Only ACTIVE or SUSPENDED can be set")

    user = db.scalar(
        select(User).where(User.email == normalize_email(email), User.deleted_at.is_(None))
    )
    if not user:
        raise LookupError(f"User not found: {email}")

    if status == UserStatus.ACTIVE and user.status != UserStatus.SUSPENDED:
        raise ValueError(f"Only SUSPENDED users can be reactivated (current: {user.status.value})")

    clock = Clock()
    sessions = SessionManager(db, TokenCodec(settings, clock), PasswordHasher(settings.BCRYPT_ROUNDS), settings, clock)

    revoked = 0
    try:
        previous = user.status
        user.status = status
        if status == UserStatus.SUSPENDED:
            revoked = sessions.revoke_all(user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    write_audit_log(
        AuditAction.USER_STATUS_CHANGED,
        target_id=user.id,
        target_type="user",
        metadata={"from": previous.value, "to": status.value, "revoked_tokens": revoked},
    )
    return revoked


def main():
    parser = argparse.ArgumentParser(description="Suspend or reactivate a user account")
    parser.add_argument("email")
    parser.add_argument("status", choices=[UserStatus.ACTIVE.value, UserStatus.SUSPENDED.value])
    args = parser.parse_args()

    settings = Settings()
    engine = build_engine(settings.DATABASE_URL)
    db = build_session_factory(engine)()
    try:
        revoked = set_user_status(db, settings, args.email, UserStatus(args.status))
        print(f"✅ {args.email} -> {args.status} (revoked refresh tokens: {revoked})")
    finally:
        db.close()
        engine.dispose()


if __name__ == "__main__":
    main()
