"""
감사 로그 단위 테스트.
- IP 마스킹(IPv4 / IPv6 축약형 포함)과 기록 항목의 구조를 검증한다.
"""

import logging

import pytest

from app.services.audit_log import AuditAction, mask_ip, write_audit_log


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("203.0.113.42", "203.0.113.***"),
        ("::1", "0000:0000:0000:0000:****"),
        ("2001:db8::8a2e:370:7334", "2001:0db8:0000:0000:****"),
        ("fe80:0:0:0:1:2:3:4", "fe80:0000:0000:0000:****"),
        ("testclient", "***"),
        ("", "***"),
    ],
)
def test_mask_ip(ip, expected):
    assert mask_ip(ip) == expected


def test_mask_ip_never_leaks_interface_identifier():
    masked = mask_ip("::1")
    assert not masked.endswith("1")
    assert masked.count(":") == 4


def test_audit_entry_masks_ip_and_truncates_user_agent(caplog):
    with caplog.at_level(logging.INFO, logger="app.audit"):
        write_audit_log(AuditAction.AUTH_LOGIN_SUCCESS, ip="2001:db8::1", user_agent="x" * 300)

    entry = caplog.records[-1].audit
    assert entry["action"] == "AUTH_LOGIN_SUCCESS"
    assert entry["actor_id"] == "anonymous"
    assert entry["ip"] == "2001:0db8:0000:0000:****"
    assert len(entry["user_agent"]) == 100
