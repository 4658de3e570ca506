"""
opaque_tokens.py

이메일 링크용 일회성(opaque) 토큰 생성/검증.

- 원문(raw)은 이메일 링크에 담겨 사용자에게만 전달
- DB에는 SHA-256 해시만 저장
- 해시 비교는 상수 시간(constant-time) 비교 사용

사용처:
- 이메일 인증 토큰 (24시간)
- 비밀번호 재설정 토큰 (15분)

"""

import hashlib
import hmac
import secrets
from typing import NamedTuple


class OpaqueToken(NamedTuple):
    raw: str
    hash: str


def hash_opaque_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate(byte_length: int = 32) -> OpaqueToken:
    raw = secrets.token_hex(byte_length)
    return OpaqueToken(raw=raw, hash=hash_opaque_token(raw))


def verify(raw: str, stored_hash: str) -> bool:
    candidate = hash_opaque_token(raw)
    return hmac.compare_digest(candidate.encode("ascii"), stored_hash.encode("ascii"))
