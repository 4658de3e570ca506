"""
clock.py

시간(Clock) 협력 객체.

모든 만료 비교(토큰 만료, 인증 링크 만료, acceptedAt 기록 등)는
이 객체가 돌려주는 UTC 시각을 기준으로 한다.
테스트에서는 고정 시각을 돌려주는 Clock으로 교체하여
만료 경계를 재현한다.

"""

from datetime import datetime, timezone


class Clock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# SQLite 등 timezone 정보를 보존하지 않는 백엔드에서 읽은 값은 naive로 돌아오므로
# 저장 시각은 항상 UTC라는 전제로 tzinfo를 붙여서 비교한다.
def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
