"""
services/audit_log.py

보안/운영 행위 감사 로그(Audit Log) 기록 서비스.

이 파일은 인증, 세션, 그룹, 작업(Task)에 대한 주요 행위를
`app.audit` 로거로 구조화하여 남기는 역할을 담당한다.

라우터 또는 서비스 계층에서 호출되며,
로그 기록 자체는 비즈니스 흐름에 개입하지 않는다.

설계 원칙:
- 개인정보(이메일, 이름, 비밀번호)는 기록하지 않고 ID와 메타데이터만 기록
- IP는 마지막 구간을 마스킹 (IPv4 마지막 옥텟, IPv6 뒤 4그룹, 축약형은 펼친 뒤 마스킹)
- User-Agent는 100자까지만 기록
- 로그 기록 실패가 주 기능을 방해하지 않도록 단순화

"""

import ipaddress
import logging
from enum import Enum

audit_logger = logging.getLogger("app.audit")


class AuditAction(str, Enum):
    AUTH_REGISTER = "AUTH_REGISTER"
    AUTH_LOGIN_SUCCESS = "AUTH_LOGIN_SUCCESS"
    AUTH_LOGIN_FAILURE = "AUTH_LOGIN_FAILURE"
    AUTH_LOGOUT = "AUTH_LOGOUT"
    AUTH_TOKEN_REFRESH = "AUTH_TOKEN_REFRESH"
    AUTH_TOKEN_REUSE = "AUTH_TOKEN_REUSE"
    AUTH_EMAIL_VERIFIED = "AUTH_EMAIL_VERIFIED"
    AUTH_PASSWORD_RESET_REQUEST = "AUTH_PASSWORD_RESET_REQUEST"
    AUTH_PASSWORD_RESET_COMPLETE = "AUTH_PASSWORD_RESET_COMPLETE"
    AUTH_PASSWORD_CHANGED = "AUTH_PASSWORD_CHANGED"
    AUTH_ACCOUNT_DELETED = "AUTH_ACCOUNT_DELETED"
    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_ACCEPTED = "TASK_ACCEPTED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_DELETED = "TASK_DELETED"
    GROUP_CREATED = "GROUP_CREATED"
    GROUP_MEMBER_ADDED = "GROUP_MEMBER_ADDED"
    GROUP_MEMBER_REMOVED = "GROUP_MEMBER_REMOVED"
    USER_STATUS_CHANGED = "USER_STATUS_CHANGED"


# IPv4는 마지막 옥텟, IPv6는 앞 4그룹(/64)만 남긴다. 주소가 아니면 전부 가린다.
def mask_ip(ip: str) -> str:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return "***"

    if addr.version == 6:
        groups = addr.exploded.split(":")
        return ":".join(groups[:4]) + ":****"
    parts = str(addr).split(".")
    parts[3] = "***"
    return ".".join(parts)


"""
감사 로그 기록 함수

- action         : 수행된 행위 유형
- actor_id       : 행위를 수행한 사용자 ID (없으면 anonymous)
- target_id      : 행위 대상 리소스 ID (선택)
- target_type    : user / task / group (선택)
- metadata       : 부가 정보 (ID, 상태값 등 PII가 아닌 값만)
- ip             : 요청 IP 주소 (선택, 마스킹되어 기록)
- user_agent     : 요청 User-Agent (선택)

"""
def write_audit_log(
    action: AuditAction,
    *,
    actor_id=None,
    target_id=None,
    target_type: str | None = None,
    metadata: dict | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> None:
    entry = {
        "audit": True,
        "action": action.value,
        "actor_id": str(actor_id) if actor_id else "anonymous",
        "target_id": str(target_id) if target_id else None,
        "target_type": target_type,
        "metadata": metadata or {},
        "ip": mask_ip(ip) if ip else None,
        "user_agent": user_agent[:100] if user_agent else None,
    }
    audit_logger.info("AUDIT: %s %s", action.value, entry, extra={"audit": entry})
