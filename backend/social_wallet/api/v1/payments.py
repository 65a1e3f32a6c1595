"""Payment routes - Stripe top-ups"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from social_wallet.api.deps import get_current_admin_user, get_current_user
from social_wallet.core.database import get_db
from social_wallet.models.user import User
from social_wallet.schemas.payment import (
    CreatePaymentIntentRequest,
    PaymentHistoryResponse,
    PaymentIntentResponse,
    RefundRequest,
    RefundResponse,
    TopUpOption,
)
from social_wallet.services.audit_service import PAYMENT_REFUNDED, AuditService
from social_wallet.services.payment_service import PaymentService

router = APIRouter()


@router.post("/create-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    body: CreatePaymentIntentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Start a wallet top-up; the client confirms it with the returned secret"""
    return PaymentService(db).create_payment_intent(
        current_user.id,
        body.amount,
        currency=body.currency,
        payment_method_id=body.payment_method_id,
        return_url=body.return_url,
    )


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """Stripe event receiver; the signature header is mandatory"""
    payload = await request.body()
    event_type = await run_in_threadpool(PaymentService(db).handle_webhook, payload, stripe_signature)
    return {"received": True, "type": event_type}


@router.get("/history", response_model=PaymentHistoryResponse)
def get_payment_history(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return PaymentService(db).get_payment_history(current_user.id, limit=limit, offset=offset)


@router.post("/{payment_id}/refund", response_model=RefundResponse)
def refund_payment(
    payment_id: str,
    request: Request,
    body: Optional[RefundRequest] = None,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    reason = body.reason if body else None
    result = PaymentService(db).refund_payment(payment_id, reason)
    AuditService(db).log_event(
        user_id=admin.id,
        action=PAYMENT_REFUNDED,
        target_type="payment",
        target_id=payment_id,
        ip_address=request.client.host if request.client else "unknown",
        metadata={"refund_id": result["refund_id"], "reason": reason},
    )
    return result


@router.get("/topup-options", response_model=List[TopUpOption])
def get_topup_options():
    return PaymentService.get_topup_options()
