from __future__ import annotations

import re
import sys
from pathlib import Path

import pytest

# Garante que o pacote accounts seja importavel durante os testes locais
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from accounts.core import config as core_config  # noqa: E402
from accounts.core import security  # noqa: E402
from accounts.core.rate_limiter import reset_rate_limits  # noqa: E402
from accounts.db import models  # noqa: E402
from accounts.db import session as db_session  # noqa: E402
from accounts.services import notification_service  # noqa: E402
from accounts.services import session_service  # noqa: E402
from accounts.services.errors import ProviderError  # noqa: E402
from accounts.services.payment_provider import CheckoutObject, PaymentProvider  # noqa: E402


def _clear_caches() -> None:
    core_config.get_settings.cache_clear()
    security._hasher.cache_clear()
    session_service._dummy_digest.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Configura um SQLite temporario e reseta caches de settings/engine/hasher."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    # Argon2 barato para a suite; os parametros reais vem do ambiente.
    monkeypatch.setenv("ARGON2_TIME_COST", "1")
    monkeypatch.setenv("ARGON2_MEMORY_COST", "64")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://accounts.test")
    for name in ("SMTP_HOST", "SMTP_USER", "SMTP_PASSWORD", "REQUIRE_VERIFIED_FOR_RESET", "PASSWORD_MIN_LENGTH"):
        monkeypatch.delenv(name, raising=False)
    _clear_caches()
    reset_rate_limits()

    db_session.init_schema(reset=True)
    engine = db_session.get_engine()

    yield db_file

    models.Base.metadata.drop_all(bind=engine)
    engine.dispose()
    _clear_caches()


class Mailbox:
    def __init__(self) -> None:
        self.messages: list[dict] = []
        self.deliver = True

    def send(self, subject, to_email, html_body, text_body=None):
        self.messages.append({"subject": subject, "to": to_email, "html": html_body, "text": text_body or ""})
        return self.deliver

    def last_code(self, to_email: str) -> str:
        for message in reversed(self.messages):
            if message["to"] == to_email:
                return re.search(r"\b(\d{6})\b", message["text"]).group(1)
        raise AssertionError(f"no message sent to {to_email}")


@pytest.fixture()
def mailbox(monkeypatch):
    box = Mailbox()
    monkeypatch.setattr(notification_service, "send_email", box.send)
    return box


class FakeProvider(PaymentProvider):
    """In-memory provider counting every object it creates."""

    def __init__(self, status: str = "authorized") -> None:
        self.status = status
        self.customers: dict[str, str] = {}
        self.customer_calls = 0
        self.checkouts: list[tuple[str, str]] = []
        self.status_calls = 0
        self.fail_checkout = False
        self.fail_status = False

    def create_customer(self, email: str) -> str:
        self.customer_calls += 1
        if email not in self.customers:
            self.customers[email] = f"cus_{len(self.customers) + 1}"
        return self.customers[email]

    def create_checkout(self, customer_id, plan) -> CheckoutObject:
        if self.fail_checkout:
            raise ProviderError("Erro ao criar sessao de pagamento.")
        reference = f"ref_{len(self.checkouts) + 1}"
        self.checkouts.append((customer_id, reference))
        return CheckoutObject(reference_id=reference, redirect_url=f"https://pay.test/{reference}")

    def get_subscription_status(self, reference_id: str) -> str:
        self.status_calls += 1
        if self.fail_status:
            raise ProviderError("Erro ao verificar o pagamento.")
        return self.status


@pytest.fixture()
def provider():
    return FakeProvider()
