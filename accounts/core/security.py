"""Security helpers (hashing, verification and one-time codes)."""

from __future__ import annotations

import secrets
from functools import lru_cache

from argon2 import PasswordHasher, exceptions as argon_exc

from accounts.core.config import get_settings

CODE_MIN = 100000
CODE_MAX = 999999


@lru_cache
def _hasher() -> PasswordHasher:
    settings = get_settings()
    return PasswordHasher(time_cost=settings.argon2_time_cost, memory_cost=settings.argon2_memory_cost)


def hash_secret(secret: str) -> str:
    """Salted Argon2 digest for passwords and numeric codes alike."""
    if not secret:
        raise ValueError("secret must be a non-empty string")
    return _hasher().hash(secret)


def verify_secret(secret: str, digest: str | None) -> bool:
    """Malformed or missing digests count as a mismatch, never as an error."""
    if not secret or not digest:
        return False
    try:
        return _hasher().verify(digest, secret)
    except (argon_exc.VerificationError, argon_exc.InvalidHashError):
        return False


def needs_rehash(digest: str) -> bool:
    try:
        return _hasher().check_needs_rehash(digest)
    except argon_exc.InvalidHashError:
        return True


class CodeGenerator:
    """Six digit codes from the OS CSPRNG, always in [100000, 999999]."""

    def next(self) -> str:
        return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def new_session_token() -> str:
    return secrets.token_urlsafe(32)
