from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from accounts.services.payment_provider import PaymentProvider, get_payment_provider
from accounts.services.session_service import SessionPrincipal, require_session
from accounts.services.subscription_service import SubscriptionService

router = APIRouter(tags=["account"])


def get_subscription_service(provider: PaymentProvider = Depends(get_payment_provider)) -> SubscriptionService:
    return SubscriptionService(provider=provider)


@router.get("/account/me")
def me(principal: SessionPrincipal = Depends(require_session)):
    return {"ok": True, "email": principal.email, "subscription_status": principal.subscription_status}


@router.post("/subscription/create")
def create_subscription(
    principal: SessionPrincipal = Depends(require_session),
    service: SubscriptionService = Depends(get_subscription_service),
):
    started = service.create_subscription(principal.email)
    return {
        "ok": True,
        "status": started.status,
        "reference_id": started.reference_id,
        "redirect_url": started.redirect_url,
    }


@router.get("/subscription/success")
def subscription_success(
    reference_id: Optional[str] = None,
    preapproval_id: Optional[str] = None,
    principal: SessionPrincipal = Depends(require_session),
    service: SubscriptionService = Depends(get_subscription_service),
):
    result = service.reconcile(reference_id or preapproval_id, principal.email)
    return {"ok": True, "status": result.status, "changed": result.changed, "message": result.message}
