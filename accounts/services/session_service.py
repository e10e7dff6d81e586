"""Login, server-side sessions and the single session guard used by routers."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from fastapi import HTTPException, Request, Response

from accounts.core.config import get_settings
from accounts.core.logger import get_logger
from accounts.core.security import hash_secret, needs_rehash, verify_secret
from accounts.core.utils import as_utc, normalize_email
from accounts.repositories.sql_repository import SQLRepository
from accounts.services.errors import InvalidCredentials, NotVerified

SESSION_COOKIE_NAME = "session"

log = get_logger(__name__)


@lru_cache
def _dummy_digest() -> str:
    # equaliza o custo de login entre e-mail desconhecido e senha errada
    return hash_secret("dummy-password-for-timing")


@dataclass
class SessionPrincipal:
    user_id: int
    email: str
    subscription_status: str


@dataclass
class LoginSuccess:
    principal: SessionPrincipal
    session_token: str
    max_age: int
    message: str = "Bem-vindo!"


@dataclass
class SessionService:
    """Validates credentials and account state, then issues a session."""

    repository: Optional[SQLRepository] = None

    def __post_init__(self):
        self.settings = get_settings()
        if self.repository is None:
            self.repository = SQLRepository()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def session_ttl(self, remember_me: bool) -> int:
        ttl = self.settings.session_remember_ttl_seconds if remember_me else self.settings.session_ttl_seconds
        return max(60, ttl)

    def login(self, email: str, password: str, remember_me: bool = False) -> LoginSuccess:
        email_norm = normalize_email(email)
        user = self.repository.get_user(email_norm) if email_norm else None
        if not user:
            verify_secret(password or "", _dummy_digest())
            raise InvalidCredentials()
        if not verify_secret(password or "", user.password_hash):
            raise InvalidCredentials()
        if not user.verified:
            raise NotVerified("Conta nao verificada. Confirme o codigo enviado por e-mail.")

        if needs_rehash(user.password_hash):
            self.repository.update_user_password(user.id, hash_secret(password))

        max_age = self.session_ttl(remember_me)
        token = self.repository.create_session(user.id, self._now() + timedelta(seconds=max_age))
        principal = SessionPrincipal(user_id=user.id, email=user.email, subscription_status=user.subscription_status)
        log.info("User %s logged in", user.id)
        return LoginSuccess(principal=principal, session_token=token, max_age=max_age)

    def principal_for_token(self, token: Optional[str]) -> Optional[SessionPrincipal]:
        """Return the principal behind a session token, if still valid."""
        if not token:
            return None
        record = self.repository.get_session_record(token)
        if not record:
            return None
        expires = as_utc(record.expires_at)
        if expires is None or expires < self._now():
            self.repository.delete_session(token)
            return None
        user = self.repository.get_user_by_id(record.user_id)
        if not user:
            return None
        return SessionPrincipal(user_id=user.id, email=user.email, subscription_status=user.subscription_status)

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        self.repository.delete_session(token)


def require_session(request: Request) -> SessionPrincipal:
    """FastAPI dependency guarding every route that needs a logged-in user."""
    principal = SessionService().principal_for_token(request.cookies.get(SESSION_COOKIE_NAME))
    if principal is None:
        raise HTTPException(401, "Faca login para continuar.")
    return principal


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    settings = get_settings()
    secure_cookie = settings.app_env == "prod"
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=secure_cookie,
        samesite="lax",
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
