"""Payment schemas"""

from typing import List, Optional

from pydantic import BaseModel, Field

from social_wallet.schemas.wallet import Pagination


class CreatePaymentIntentRequest(BaseModel):
    amount: float = Field(..., description="Top-up amount in USD")
    currency: str = "usd"
    payment_method_id: Optional[str] = None
    return_url: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    payment_intent_id: str
    client_secret: Optional[str]
    amount_cents: int
    coins: int
    status: str


class PaymentResponse(BaseModel):
    id: int
    payment_intent_id: str
    amount_cents: int
    amount_usd: float
    coins: int
    status: str
    currency: str
    created_at: Optional[str]
    completed_at: Optional[str]


class PaymentHistoryResponse(BaseModel):
    payments: List[PaymentResponse]
    pagination: Pagination


class RefundRequest(BaseModel):
    reason: Optional[str] = None


class RefundResponse(BaseModel):
    refund_id: str
    amount: int
    status: str


class TopUpOption(BaseModel):
    usd: int
    coins: int
    bonus: int = 0
