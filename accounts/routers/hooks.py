from fastapi import APIRouter, Depends

from accounts.routers.account import get_subscription_service
from accounts.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/hooks", tags=["hooks"])


def _reference_from(payload: dict) -> str:
    if payload.get("reference_id"):
        return str(payload["reference_id"])
    data = payload.get("data") or {}
    # Stripe: data.object.id / Mercado Pago: data.id
    obj = data.get("object") or {}
    return str(obj.get("id") or data.get("id") or "")


@router.post("/payments")
def payments(payload: dict, service: SubscriptionService = Depends(get_subscription_service)):
    # O status e sempre relido do provedor; o payload so aponta a referencia.
    result = service.reconcile_reference(_reference_from(payload))
    return {"ok": True, "status": result.status, "changed": result.changed}
