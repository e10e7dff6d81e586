"""Payment provider adapters behind one interface.

The reconciler only needs three calls: create a customer, create a
checkout/pre-approval for a fixed plan, and read the provider-side status
of that object. Request and response shapes stay inside each adapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests
import stripe

from accounts.core.config import Settings, get_settings
from accounts.core.logger import get_logger
from accounts.core.utils import absolute_url
from accounts.services.errors import ProviderError

log = get_logger(__name__)


@dataclass(frozen=True)
class PlanSpec:
    """Recurring plan pinned at subscription creation time."""

    amount: float
    currency: str
    reason: str
    frequency: int = 1
    frequency_type: str = "months"
    price_id: str = ""


@dataclass(frozen=True)
class CheckoutObject:
    reference_id: str
    redirect_url: str


class PaymentProvider(ABC):
    """Interface for payment backends."""

    @abstractmethod
    def create_customer(self, email: str) -> str:
        """Return the provider customer id for this e-mail, creating it at most once."""

    @abstractmethod
    def create_checkout(self, customer_id: str, plan: PlanSpec) -> CheckoutObject:
        """Create the checkout session / pre-approval and return its reference and redirect target."""

    @abstractmethod
    def get_subscription_status(self, reference_id: str) -> str:
        """Return the provider-side status string for a reference."""


def plan_from_settings(settings: Settings) -> PlanSpec:
    return PlanSpec(
        amount=settings.plan_amount,
        currency=settings.plan_currency,
        reason=settings.plan_reason,
        price_id=settings.stripe_price_id,
    )


class StripePaymentProvider(PaymentProvider):
    """Stripe Checkout in subscription mode (card + boleto)."""

    def __init__(self, api_key: str, *, timeout: int = 10):
        if not api_key:
            raise ProviderError("Stripe secret key is not configured.")
        self.api_key = api_key
        self.timeout = timeout

    def _init_stripe(self) -> None:
        stripe.api_key = self.api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    def create_customer(self, email: str) -> str:
        self._init_stripe()
        try:
            existing = stripe.Customer.list(email=email, limit=1)
            if existing.data:
                return existing.data[0].id
            customer = stripe.Customer.create(
                email=email,
                metadata={"account_email": email},
                idempotency_key=f"customer-{email}",
            )
        except stripe.StripeError as exc:
            log.error("Stripe customer creation failed: %s", exc)
            raise ProviderError() from exc
        return customer.id

    def create_checkout(self, customer_id: str, plan: PlanSpec) -> CheckoutObject:
        self._init_stripe()
        if plan.price_id:
            line_item = {"price": plan.price_id, "quantity": 1}
        else:
            line_item = {
                "price_data": {
                    "currency": plan.currency.lower(),
                    "unit_amount": int(round(plan.amount * 100)),
                    "recurring": {"interval": "month", "interval_count": plan.frequency},
                    "product_data": {"name": plan.reason},
                },
                "quantity": 1,
            }
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card", "boleto"],
                mode="subscription",
                line_items=[line_item],
                customer=customer_id,
                success_url=absolute_url("/subscription/success?reference_id={CHECKOUT_SESSION_ID}"),
                cancel_url=absolute_url("/subscription"),
                locale="pt-BR",
            )
        except stripe.StripeError as exc:
            log.error("Stripe checkout creation failed: %s", exc)
            raise ProviderError("Erro ao criar sessao de pagamento.") from exc
        return CheckoutObject(reference_id=session.id, redirect_url=session.url)

    def get_subscription_status(self, reference_id: str) -> str:
        self._init_stripe()
        try:
            session = stripe.checkout.Session.retrieve(reference_id)
        except stripe.StripeError as exc:
            log.error("Stripe checkout lookup failed: %s", exc)
            raise ProviderError("Erro ao verificar o pagamento.") from exc
        if session.status == "expired":
            return "expired"
        if session.payment_status in ("paid", "no_payment_required"):
            return "paid"
        if session.status == "open":
            return "open"
        return session.payment_status or session.status or ""


class MercadoPagoPaymentProvider(PaymentProvider):
    """Mercado Pago recurring pre-approval over its REST API."""

    BASE_URL = "https://api.mercadopago.com"

    def __init__(self, access_token: str, *, timeout: int = 10):
        if not access_token:
            raise ProviderError("Mercado Pago access token is not configured.")
        self.access_token = access_token
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> dict:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        try:
            response = requests.request(method, f"{self.BASE_URL}{path}", headers=headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            log.error("Mercado Pago %s %s failed: %s", method, path, exc)
            raise ProviderError() from exc

    def create_customer(self, email: str) -> str:
        found = self._request("GET", "/v1/customers/search", params={"email": email})
        results = found.get("results") or []
        if results:
            return str(results[0]["id"])
        created = self._request("POST", "/v1/customers", json={"email": email})
        return str(created["id"])

    def create_checkout(self, customer_id: str, plan: PlanSpec) -> CheckoutObject:
        customer = self._request("GET", f"/v1/customers/{customer_id}")
        payload = {
            "reason": plan.reason,
            "external_reference": customer_id,
            "payer_email": customer.get("email"),
            "auto_recurring": {
                "frequency": plan.frequency,
                "frequency_type": plan.frequency_type,
                "transaction_amount": plan.amount,
                "currency_id": plan.currency,
            },
            "back_url": absolute_url("/subscription/success"),
            "status": "pending",
        }
        data = self._request("POST", "/preapproval", json=payload)
        reference = data.get("id")
        redirect = data.get("init_point")
        if not reference or not redirect:
            raise ProviderError("Resposta invalida do provedor de pagamento.")
        return CheckoutObject(reference_id=str(reference), redirect_url=redirect)

    def get_subscription_status(self, reference_id: str) -> str:
        data = self._request("GET", f"/preapproval/{reference_id}")
        return str(data.get("status") or "")


def get_payment_provider() -> PaymentProvider:
    """Build the configured provider; used as a FastAPI dependency."""
    settings = get_settings()
    if settings.payment_provider == "mercadopago":
        return MercadoPagoPaymentProvider(settings.mercadopago_access_token, timeout=settings.provider_timeout_seconds)
    if settings.payment_provider == "stripe":
        return StripePaymentProvider(settings.stripe_secret_key, timeout=settings.provider_timeout_seconds)
    raise ProviderError(f"Unknown payment provider: {settings.payment_provider}")
