"""
Subscription creation and reconciliation against the payment provider.

Local states: inactive -> pending -> active, plus pending -> inactive on a
failed payment. Every write is a compare-and-set in SQLRepository. Creation
holds an exclusive claim on the user row while the provider is called, so a
second create cannot reach the provider and a stale reconcile cannot
overwrite a newer attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from accounts.core.config import get_settings
from accounts.core.logger import get_logger
from accounts.db.models import SUBSCRIPTION_ACTIVE, SUBSCRIPTION_INACTIVE, SUBSCRIPTION_PENDING
from accounts.repositories.sql_repository import SQLRepository
from accounts.services.errors import (
    AlreadyActiveOrPending,
    MissingReference,
    NotFound,
    ReferenceMismatch,
)
from accounts.services.payment_provider import PaymentProvider, PlanSpec, plan_from_settings

log = get_logger(__name__)

ACTIVE_PROVIDER_STATUSES = frozenset({"authorized", "paid", "active", "complete"})
PENDING_PROVIDER_STATUSES = frozenset({"open", "unpaid", "pending", "in_process"})

_MESSAGES = {
    SUBSCRIPTION_ACTIVE: "Assinatura ativada com sucesso! Bem-vindo.",
    SUBSCRIPTION_PENDING: "Pagamento pendente. Sua assinatura sera ativada em breve.",
    SUBSCRIPTION_INACTIVE: "Problema no pagamento. Tente novamente.",
}


def map_provider_status(provider_status: str) -> str:
    status = (provider_status or "").strip().lower()
    if status in ACTIVE_PROVIDER_STATUSES:
        return SUBSCRIPTION_ACTIVE
    if status in PENDING_PROVIDER_STATUSES:
        return SUBSCRIPTION_PENDING
    return SUBSCRIPTION_INACTIVE


@dataclass
class SubscriptionStarted:
    reference_id: str
    redirect_url: str
    status: str = SUBSCRIPTION_PENDING


@dataclass
class ReconcileResult:
    status: str
    reference_id: str
    changed: bool
    message: str


@dataclass
class SubscriptionService:
    """Creates provider-side subscriptions and reconciles their status locally."""

    provider: PaymentProvider
    repository: Optional[SQLRepository] = None
    plan: Optional[PlanSpec] = None

    def __post_init__(self):
        if self.repository is None:
            self.repository = SQLRepository()
        if self.plan is None:
            self.plan = plan_from_settings(get_settings())

    def _ensure_customer(self, user) -> str:
        if user.provider_customer_id:
            return user.provider_customer_id
        customer_id = self.provider.create_customer(user.email)
        if self.repository.set_customer_id_if_absent(user.id, customer_id):
            return customer_id
        # outra requisicao gravou primeiro; usa o id persistido
        stored = self.repository.get_user_by_id(user.id)
        return stored.provider_customer_id

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _claim_ttl(self) -> timedelta:
        # tempo maximo de uma tentativa (cliente + checkout) antes de ser considerada abandonada
        return timedelta(seconds=max(60, get_settings().provider_timeout_seconds * 6))

    def create_subscription(self, email: str) -> SubscriptionStarted:
        user = self.repository.get_user(email)
        if not user:
            raise NotFound("Usuario nao encontrado.")
        if user.subscription_status in (SUBSCRIPTION_ACTIVE, SUBSCRIPTION_PENDING):
            raise AlreadyActiveOrPending()

        version = user.subscription_version
        now = self._now()
        if not self.repository.claim_subscription_attempt(user.id, version, now, now - self._claim_ttl()):
            raise AlreadyActiveOrPending("Ja existe uma tentativa de assinatura em andamento.")

        claimed = version + 1
        try:
            customer_id = self._ensure_customer(user)
            checkout = self.provider.create_checkout(customer_id, self.plan)
        except Exception:
            self.repository.release_subscription_claim(user.id, claimed)
            raise
        if not self.repository.mark_subscription_pending(user.id, claimed, checkout.reference_id):
            raise AlreadyActiveOrPending()
        log.info("Subscription pending for user %s", user.id)
        return SubscriptionStarted(reference_id=checkout.reference_id, redirect_url=checkout.redirect_url)

    def reconcile(self, reference_id: Optional[str], requester_email: str) -> ReconcileResult:
        reference = (reference_id or "").strip()
        if not reference:
            raise MissingReference()
        user = self.repository.get_user(requester_email)
        if not user:
            raise NotFound("Usuario nao encontrado.")
        if user.provider_subscription_id != reference:
            raise ReferenceMismatch()
        if user.subscription_status == SUBSCRIPTION_ACTIVE:
            return ReconcileResult(SUBSCRIPTION_ACTIVE, reference, False, _MESSAGES[SUBSCRIPTION_ACTIVE])

        mapped = map_provider_status(self.provider.get_subscription_status(reference))
        if not self.repository.apply_subscription_status(user.id, reference, mapped):
            current = self.repository.get_user_by_id(user.id)
            if current and current.subscription_status == SUBSCRIPTION_ACTIVE and current.provider_subscription_id == reference:
                return ReconcileResult(SUBSCRIPTION_ACTIVE, reference, False, _MESSAGES[SUBSCRIPTION_ACTIVE])
            raise ReferenceMismatch()

        changed = mapped != user.subscription_status
        if changed:
            log.info("Subscription for user %s moved %s -> %s", user.id, user.subscription_status, mapped)
        return ReconcileResult(mapped, reference, changed, _MESSAGES[mapped])

    def reconcile_reference(self, reference_id: Optional[str]) -> ReconcileResult:
        """Provider notifications carry only the reference; resolve its owner first."""
        reference = (reference_id or "").strip()
        if not reference:
            raise MissingReference()
        user = self.repository.get_user_by_reference(reference)
        if not user:
            raise NotFound("Referencia desconhecida.")
        return self.reconcile(reference, user.email)
