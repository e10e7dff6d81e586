"""
Registration, e-mail verification and password reset use cases.

A user moves PendingVerification -> Verified and, independently,
NoResetInFlight <-> ResetInFlight. Expiry is always checked before the
code comparison, and the match-and-clear step is one conditional update.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from accounts.core.config import get_settings
from accounts.core.logger import get_logger
from accounts.core.security import CodeGenerator, hash_secret, verify_secret
from accounts.core.utils import as_utc, normalize_email
from accounts.repositories.sql_repository import SQLRepository
from accounts.services import notification_service
from accounts.services.errors import (
    CodeMismatch,
    DuplicateEmail,
    ExpiredToken,
    MissingFieldError,
    NoResetInFlight,
    NotFound,
    NotVerified,
    ValidationError,
)

log = get_logger(__name__)


@dataclass
class RegisterResult:
    user_id: int
    email: str
    email_sent: bool
    message: str


@dataclass
class VerifyResult:
    email: str
    message: str


@dataclass
class ResetRequestResult:
    email: str
    email_sent: bool
    expires_at: datetime
    message: str


@dataclass
class PasswordResetResult:
    email: str
    message: str


@dataclass
class AuthService:
    """Owns the credential lifecycle of a user record."""

    repository: Optional[SQLRepository] = None
    code_generator: Optional[CodeGenerator] = None

    def __post_init__(self):
        self.settings = get_settings()
        if self.repository is None:
            self.repository = SQLRepository()
        if self.code_generator is None:
            self.code_generator = CodeGenerator()

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _is_expired(self, expires_at: datetime | None, now: datetime) -> bool:
        expires = as_utc(expires_at)
        return expires is None or now > expires

    def _require_email(self, email: str) -> str:
        email_norm = normalize_email(email)
        if not email_norm:
            raise MissingFieldError("Email obrigatorio")
        return email_norm

    def _require_code(self, code: str) -> str:
        code_value = (code or "").strip()
        if not code_value:
            raise MissingFieldError("Codigo obrigatorio")
        return code_value

    def _check_password(self, password: str) -> None:
        if not password:
            raise MissingFieldError("Senha obrigatoria")
        if len(password) < self.settings.password_min_length:
            raise ValidationError(f"Senha muito curta. Use no minimo {self.settings.password_min_length} caracteres")

    # -------------------------------------- registro --------------------------------------
    def register(self, email: str, password: str) -> RegisterResult:
        email_norm = self._require_email(email)
        self._check_password(password)
        # Uma conta nao verificada tambem bloqueia novo cadastro.
        if self.repository.get_user(email_norm):
            raise DuplicateEmail()

        code = self.code_generator.next()
        expires_at = self._now() + timedelta(seconds=self.settings.email_verification_ttl_seconds)
        user = self.repository.create_user(
            email_norm,
            hash_secret(password),
            verification_code_hash=hash_secret(code),
            verification_expires_at=expires_at,
        )
        if user is None:
            raise DuplicateEmail()
        log.info("User %s registered; verification pending", user.id)

        email_sent = notification_service.send_verification_code(
            email_norm, code, self.settings.email_verification_ttl_seconds
        )
        message = (
            "Verifique seu e-mail para ativar a conta."
            if email_sent
            else "Conta criada, mas houve erro ao enviar o e-mail de verificacao."
        )
        return RegisterResult(user_id=user.id, email=email_norm, email_sent=email_sent, message=message)

    # -------------------------------------- verificacao --------------------------------------
    def verify_email(self, email: str, code: str) -> VerifyResult:
        email_norm = self._require_email(email)
        code_value = self._require_code(code)
        user = self.repository.get_user(email_norm)
        if not user:
            raise NotFound()
        if user.verified or not user.verification_code_hash:
            raise CodeMismatch("Nenhum codigo de verificacao pendente para este e-mail.")

        now = self._now()
        if self._is_expired(user.verification_expires_at, now):
            raise ExpiredToken("Codigo expirado. Registre-se novamente.")
        if not verify_secret(code_value, user.verification_code_hash):
            raise CodeMismatch()
        if not self.repository.consume_verification(user.id, user.verification_code_hash, now):
            # outro pedido consumiu ou substituiu o codigo entre a leitura e a escrita
            raise CodeMismatch()
        log.info("User %s verified", user.id)
        return VerifyResult(email=email_norm, message="E-mail verificado. Faca login.")

    # -------------------------------------- reset de senha --------------------------------------
    def request_password_reset(self, email: str) -> ResetRequestResult:
        email_norm = self._require_email(email)
        user = self.repository.get_user(email_norm)
        if not user:
            raise NotFound()
        if self.settings.require_verified_for_reset and not user.verified:
            raise NotVerified("Conta nao verificada. Por favor, verifique seu e-mail primeiro.")

        code = self.code_generator.next()
        expires_at = self._now() + timedelta(seconds=self.settings.password_reset_ttl)
        self.repository.store_reset_token(user.id, hash_secret(code), expires_at)
        log.info("Password reset issued for user %s", user.id)

        email_sent = notification_service.send_reset_code(email_norm, code, self.settings.password_reset_ttl)
        message = (
            "Codigo de recuperacao enviado para o seu e-mail."
            if email_sent
            else "Erro ao enviar e-mail com codigo de recuperacao."
        )
        return ResetRequestResult(email=email_norm, email_sent=email_sent, expires_at=expires_at, message=message)

    def reset_password(self, email: str, code: str, new_password: str) -> PasswordResetResult:
        email_norm = self._require_email(email)
        code_value = self._require_code(code)
        self._check_password(new_password)
        user = self.repository.get_user(email_norm)
        if not user:
            raise NotFound()
        if not user.reset_token_hash:
            raise NoResetInFlight()

        now = self._now()
        if self._is_expired(user.reset_expires_at, now):
            raise ExpiredToken("Codigo invalido ou expirado. Tente solicitar um novo codigo.")
        if not verify_secret(code_value, user.reset_token_hash):
            raise CodeMismatch()
        if not self.repository.consume_reset(user.id, user.reset_token_hash, now, hash_secret(new_password)):
            raise NoResetInFlight()
        self.repository.delete_user_sessions(user.id)
        log.info("Password reset completed for user %s", user.id)
        return PasswordResetResult(email=email_norm, message="Senha redefinida com sucesso! Faca login.")
