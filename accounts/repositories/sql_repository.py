"""High-level data access helpers backed by SQLAlchemy.

Every state transition is a single conditional UPDATE whose WHERE clause
pins the row state the caller observed; the returned bool says whether the
transition applied.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError

from accounts.core.security import new_session_token
from accounts.core.utils import normalize_email
from accounts.db.models import (
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_INACTIVE,
    SUBSCRIPTION_PENDING,
    User,
    UserSession,
)
from accounts.db.session import get_session


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SQLRepository:
    """CRUD helpers wrapping the SQLAlchemy session."""

    def _apply(self, stmt) -> bool:
        with get_session() as session:
            result = session.execute(stmt.execution_options(synchronize_session=False))
            session.commit()
            return result.rowcount == 1

    # -------------------------- users --------------------------
    def get_user(self, email: str) -> Optional[User]:
        email_norm = normalize_email(email)
        if not email_norm:
            return None
        with get_session() as session:
            stmt = select(User).where(User.email == email_norm)
            return session.execute(stmt).scalar_one_or_none()

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with get_session() as session:
            return session.get(User, user_id)

    def get_user_by_reference(self, reference_id: str) -> Optional[User]:
        if not reference_id:
            return None
        with get_session() as session:
            stmt = select(User).where(User.provider_subscription_id == reference_id)
            return session.execute(stmt).scalars().first()

    def create_user(
        self,
        email: str,
        password_hash: str,
        *,
        verification_code_hash: str,
        verification_expires_at: datetime,
    ) -> Optional[User]:
        """Insert a pending-verification user; returns None when the email is taken."""
        now = _utcnow()
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            verified=False,
            verification_code_hash=verification_code_hash,
            verification_expires_at=verification_expires_at,
            subscription_status=SUBSCRIPTION_INACTIVE,
            subscription_version=0,
            created_at=now,
            updated_at=now,
        )
        with get_session() as session:
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return None
            session.refresh(user)
            return user

    def update_user_password(self, user_id: int, password_hash: str) -> None:
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash, updated_at=_utcnow())
            )
            session.execute(stmt)
            session.commit()

    # -------------------------- credential tokens --------------------------
    def consume_verification(self, user_id: int, code_hash: str, now: datetime) -> bool:
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.verified.is_(False),
                User.verification_code_hash == code_hash,
                User.verification_expires_at >= now,
            )
            .values(verified=True, verification_code_hash=None, verification_expires_at=None, updated_at=_utcnow())
        )
        return self._apply(stmt)

    def store_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        """Overwrites any reset token still in flight."""
        with get_session() as session:
            stmt = (
                update(User)
                .where(User.id == user_id)
                .values(reset_token_hash=token_hash, reset_expires_at=expires_at, updated_at=_utcnow())
            )
            session.execute(stmt)
            session.commit()

    def consume_reset(self, user_id: int, token_hash: str, now: datetime, new_password_hash: str) -> bool:
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.reset_token_hash == token_hash,
                User.reset_expires_at >= now,
            )
            .values(
                password_hash=new_password_hash,
                reset_token_hash=None,
                reset_expires_at=None,
                updated_at=_utcnow(),
            )
        )
        return self._apply(stmt)

    # -------------------------- subscription --------------------------
    def set_customer_id_if_absent(self, user_id: int, customer_id: str) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id, User.provider_customer_id.is_(None))
            .values(provider_customer_id=customer_id, updated_at=_utcnow())
        )
        return self._apply(stmt)

    def claim_subscription_attempt(self, user_id: int, version: int, now: datetime, stale_before: datetime) -> bool:
        """Take the per-user creation lock before any provider object is created.

        The lock is held while ``subscription_claimed_at`` is set; a claim older
        than ``stale_before`` (crashed request) may be taken over.
        """
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.subscription_version == version,
                User.subscription_status == SUBSCRIPTION_INACTIVE,
                or_(User.subscription_claimed_at.is_(None), User.subscription_claimed_at < stale_before),
            )
            .values(subscription_version=version + 1, subscription_claimed_at=now, updated_at=_utcnow())
        )
        return self._apply(stmt)

    def release_subscription_claim(self, user_id: int, claimed_version: int) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id, User.subscription_version == claimed_version)
            .values(subscription_claimed_at=None, updated_at=_utcnow())
        )
        return self._apply(stmt)

    def mark_subscription_pending(self, user_id: int, claimed_version: int, reference_id: str) -> bool:
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.subscription_version == claimed_version,
                User.subscription_status == SUBSCRIPTION_INACTIVE,
                User.subscription_claimed_at.is_not(None),
            )
            .values(
                subscription_status=SUBSCRIPTION_PENDING,
                provider_subscription_id=reference_id,
                subscription_claimed_at=None,
                updated_at=_utcnow(),
            )
        )
        return self._apply(stmt)

    def apply_subscription_status(self, user_id: int, reference_id: str, status: str) -> bool:
        # active e terminal: nunca rebaixado por reconciliacao
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.provider_subscription_id == reference_id,
                User.subscription_status != SUBSCRIPTION_ACTIVE,
            )
            .values(
                subscription_status=status,
                subscription_version=User.subscription_version + 1,
                updated_at=_utcnow(),
            )
        )
        return self._apply(stmt)

    # -------------------------- sessions --------------------------
    def create_session(self, user_id: int, expires_at: datetime) -> str:
        token = new_session_token()
        with get_session() as session:
            session.add(UserSession(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()
        return token

    def get_session_record(self, token: str) -> Optional[UserSession]:
        if not token:
            return None
        with get_session() as session:
            return session.get(UserSession, token)

    def delete_session(self, token: str) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.token == token))
            session.commit()

    def delete_user_sessions(self, user_id: int) -> None:
        with get_session() as session:
            session.execute(delete(UserSession).where(UserSession.user_id == user_id))
            session.commit()
