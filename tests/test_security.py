from __future__ import annotations

import pytest

from accounts.core.security import CodeGenerator, hash_secret, needs_rehash, verify_secret


def test_codes_are_six_digits_in_range(db_env):
    gen = CodeGenerator()
    codes = [gen.next() for _ in range(2000)]
    for code in codes:
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999
    # fonte aleatoria, nao uma sequencia fixa
    assert len(set(codes)) > 1500


def test_hash_is_salted_and_verifies(db_env):
    first = hash_secret("123456")
    second = hash_secret("123456")
    assert first != second
    assert "123456" not in first
    assert verify_secret("123456", first)
    assert verify_secret("123456", second)
    assert not verify_secret("123457", first)


def test_malformed_digest_is_a_mismatch(db_env):
    assert verify_secret("pw", "not-a-digest") is False
    assert verify_secret("pw", "") is False
    assert verify_secret("pw", None) is False
    assert verify_secret("", hash_secret("pw")) is False


def test_empty_secret_is_rejected(db_env):
    with pytest.raises(ValueError):
        hash_secret("")


def test_needs_rehash_when_cost_changes(db_env, monkeypatch):
    from accounts.core import config as core_config
    from accounts.core import security

    digest = hash_secret("pw1")
    assert needs_rehash(digest) is False

    monkeypatch.setenv("ARGON2_TIME_COST", "2")
    core_config.get_settings.cache_clear()
    security._hasher.cache_clear()
    assert needs_rehash(digest) is True
    assert verify_secret("pw1", digest)
