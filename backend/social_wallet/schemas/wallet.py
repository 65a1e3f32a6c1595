"""Wallet schemas"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WalletBalanceResponse(BaseModel):
    balance_coins: int
    balance_usd: float
    total_spent: int
    total_earned: int


class WalletTransactionResponse(BaseModel):
    id: int
    type: str
    amount: int
    balance_after: int
    description: Optional[str]
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime]


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class TransactionHistoryResponse(BaseModel):
    transactions: List[WalletTransactionResponse]
    pagination: Pagination


class TransferRequest(BaseModel):
    to_user_id: int
    coins: int = Field(..., gt=0)
    message: Optional[str] = Field(None, max_length=255)


class TransferResponse(BaseModel):
    transfer_id: str
    balance_coins: int
    message: str = "Transfer completed successfully"


class BonusRequest(BaseModel):
    user_id: int
    coins: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=255)


class LockRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class WalletStatsResponse(BaseModel):
    total_wallets: int
    total_coins_in_circulation: int
    total_transactions: int
    average_balance: int
    total_value_usd: float
