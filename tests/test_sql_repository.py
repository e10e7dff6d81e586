"""
Conditional updates of SQLRepository against a temporary SQLite database.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from accounts.db.models import SUBSCRIPTION_ACTIVE, SUBSCRIPTION_INACTIVE, SUBSCRIPTION_PENDING
from accounts.repositories.sql_repository import SQLRepository


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _create(repo: SQLRepository, email: str = "alice@example.com", code_hash: str = "vhash"):
    return repo.create_user(
        email,
        "pwhash",
        verification_code_hash=code_hash,
        verification_expires_at=_now() + timedelta(hours=24),
    )


def test_create_user_normalizes_and_rejects_duplicates(db_env):
    repo = SQLRepository()
    user = _create(repo, "  Alice@Example.com ")
    assert user is not None
    assert user.email == "alice@example.com"
    assert user.verified is False
    assert user.subscription_status == SUBSCRIPTION_INACTIVE

    assert _create(repo, "ALICE@example.com") is None
    assert repo.get_user("aLiCe@example.COM").id == user.id
    assert repo.get_user_by_id(user.id).email == "alice@example.com"


def test_consume_verification_applies_once(db_env):
    repo = SQLRepository()
    user = _create(repo)

    assert repo.consume_verification(user.id, "wrong", _now()) is False
    assert repo.consume_verification(user.id, "vhash", _now()) is True
    assert repo.consume_verification(user.id, "vhash", _now()) is False

    stored = repo.get_user(user.email)
    assert stored.verified is True
    assert stored.verification_code_hash is None
    assert stored.verification_expires_at is None


def test_consume_verification_respects_expiry(db_env):
    repo = SQLRepository()
    user = _create(repo)
    assert repo.consume_verification(user.id, "vhash", _now() + timedelta(hours=25)) is False
    assert repo.get_user(user.email).verified is False


def test_reset_token_overwrite_and_single_consumption(db_env):
    repo = SQLRepository()
    user = _create(repo)
    expires = _now() + timedelta(hours=1)
    repo.store_reset_token(user.id, "first", expires)
    repo.store_reset_token(user.id, "second", expires)

    assert repo.consume_reset(user.id, "first", _now(), "new") is False
    assert repo.consume_reset(user.id, "second", _now(), "new") is True
    assert repo.consume_reset(user.id, "second", _now(), "newer") is False

    stored = repo.get_user(user.email)
    assert stored.password_hash == "new"
    assert stored.reset_token_hash is None
    assert stored.reset_expires_at is None


def test_subscription_compare_and_set(db_env):
    repo = SQLRepository()
    user = _create(repo)

    assert repo.set_customer_id_if_absent(user.id, "cus_1") is True
    assert repo.set_customer_id_if_absent(user.id, "cus_2") is False

    now = _now()
    stale_before = now - timedelta(minutes=1)
    assert repo.claim_subscription_attempt(user.id, 0, now, stale_before) is True
    # um segundo pedido que leu a mesma versao perde a corrida
    assert repo.claim_subscription_attempt(user.id, 0, now, stale_before) is False
    # nem quem ja leu a versao nova entra enquanto a reserva estiver viva
    assert repo.claim_subscription_attempt(user.id, 1, now, stale_before) is False
    assert repo.get_user(user.email).subscription_claimed_at is not None
    assert repo.mark_subscription_pending(user.id, 1, "ref_1") is True
    assert repo.get_user(user.email).subscription_claimed_at is None

    stored = repo.get_user(user.email)
    assert stored.provider_customer_id == "cus_1"
    assert stored.subscription_status == SUBSCRIPTION_PENDING
    assert stored.provider_subscription_id == "ref_1"
    assert repo.get_user_by_reference("ref_1").id == user.id

    assert repo.apply_subscription_status(user.id, "ref_other", SUBSCRIPTION_ACTIVE) is False
    assert repo.apply_subscription_status(user.id, "ref_1", SUBSCRIPTION_ACTIVE) is True
    # active nao e rebaixado
    assert repo.apply_subscription_status(user.id, "ref_1", SUBSCRIPTION_INACTIVE) is False
    assert repo.get_user(user.email).subscription_status == SUBSCRIPTION_ACTIVE


def test_subscription_claim_release_and_stale_takeover(db_env):
    repo = SQLRepository()
    user = _create(repo)
    started = _now()
    window = timedelta(minutes=1)

    assert repo.claim_subscription_attempt(user.id, 0, started, started - window) is True
    # falha no provedor libera a reserva
    assert repo.release_subscription_claim(user.id, 1) is True
    assert repo.claim_subscription_attempt(user.id, 1, started, started - window) is True

    # reserva abandonada: so e tomada depois da janela
    later = started + timedelta(seconds=30)
    assert repo.claim_subscription_attempt(user.id, 2, later, later - window) is False
    much_later = started + timedelta(minutes=2)
    assert repo.claim_subscription_attempt(user.id, 2, much_later, much_later - window) is True

    # o dono antigo nao consegue mais gravar pending
    assert repo.mark_subscription_pending(user.id, 2, "ref_old") is False
    assert repo.mark_subscription_pending(user.id, 3, "ref_new") is True
    assert repo.get_user(user.email).provider_subscription_id == "ref_new"


def test_sessions(db_env):
    repo = SQLRepository()
    user = _create(repo)
    token = repo.create_session(user.id, _now() + timedelta(hours=1))
    assert repo.get_session_record(token).user_id == user.id
    repo.delete_session(token)
    assert repo.get_session_record(token) is None

    other = repo.create_session(user.id, _now() + timedelta(hours=1))
    repo.delete_user_sessions(user.id)
    assert repo.get_session_record(other) is None
