"""
Configuration helpers for the accounts service.

Exposes a frozen Settings object read from environment variables so that
routers/services never fetch os.environ directly.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    public_base_url: str
    database_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    smtp_from: str
    email_verification_ttl_seconds: int
    password_reset_ttl: int
    require_verified_for_reset: bool
    password_min_length: int
    session_ttl_seconds: int
    session_remember_ttl_seconds: int
    argon2_time_cost: int
    argon2_memory_cost: int
    payment_provider: str
    stripe_secret_key: str
    stripe_price_id: str
    mercadopago_access_token: str
    plan_amount: float
    plan_currency: str
    plan_reason: str
    provider_timeout_seconds: int


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    return Settings(
        app_env=(os.getenv("APP_ENV") or "dev").lower(),
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", ""),
        smtp_host=os.getenv("SMTP_HOST", ""),
        smtp_port=_int(os.getenv("SMTP_PORT", "465"), 465),
        smtp_user=os.getenv("SMTP_USER", ""),
        smtp_password=os.getenv("SMTP_PASSWORD", ""),
        smtp_from=os.getenv("SMTP_FROM", os.getenv("SMTP_USER", "")),
        email_verification_ttl_seconds=_int(os.getenv("EMAIL_VERIFICATION_TTL_SECONDS", "86400"), 86400),
        password_reset_ttl=_int(os.getenv("PASSWORD_RESET_TTL", "3600"), 3600),
        require_verified_for_reset=_bool(os.getenv("REQUIRE_VERIFIED_FOR_RESET"), True),
        password_min_length=max(1, _int(os.getenv("PASSWORD_MIN_LENGTH", "1"), 1)),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "3600"), 3600),
        session_remember_ttl_seconds=_int(os.getenv("SESSION_REMEMBER_TTL_SECONDS", "2592000"), 2592000),
        argon2_time_cost=_int(os.getenv("ARGON2_TIME_COST", "3"), 3),
        argon2_memory_cost=_int(os.getenv("ARGON2_MEMORY_COST", "65536"), 65536),
        payment_provider=(os.getenv("PAYMENT_PROVIDER") or "stripe").lower(),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
        stripe_price_id=os.getenv("STRIPE_PRICE_ID", ""),
        mercadopago_access_token=os.getenv("MERCADOPAGO_ACCESS_TOKEN", ""),
        plan_amount=_float(os.getenv("PLAN_AMOUNT", "29.90"), 29.90),
        plan_currency=(os.getenv("PLAN_CURRENCY") or "BRL").upper(),
        plan_reason=os.getenv("PLAN_REASON", "Assinatura mensal"),
        provider_timeout_seconds=_int(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"), 10),
    )
