from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, Field

from core.payments import PaymentService
from core.stores import payment_to_dict
from web.backend.deps import get_current_user_id, get_payment_service

router = APIRouter()


class CheckoutRequest(BaseModel):
    product_key: str = Field("", validation_alias=AliasChoices("product_key", "productKey"))
    quantity: int = 1


class VerifyRequest(BaseModel):
    session_id: str = ""
    product_key: str = ""


@router.post("/checkout")
def checkout(
    req: CheckoutRequest,
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
):
    session = service.create_checkout(user_id, req.product_key, req.quantity)
    return {"success": True, **session}


@router.post("/payments/verify")
def verify_payment(
    req: VerifyRequest,
    user_id: str = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
):
    result = service.verify(user_id, req.session_id, req.product_key)
    payment = result["payment"]
    if result["already_recorded"]:
        return {
            "success": True,
            "status": payment.status.value,
            "message": "Payment already recorded",
        }
    return {"success": True, "verified": True, "payment": payment_to_dict(payment)}
