"""Wallet routes"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from social_wallet.api.deps import get_current_admin_user, get_current_user
from social_wallet.config import settings
from social_wallet.core.database import get_db
from social_wallet.core.exceptions import InvalidAmountError, ResourceNotFoundError
from social_wallet.models.user import User
from social_wallet.schemas.response import APIResponse
from social_wallet.schemas.wallet import (
    BonusRequest,
    LockRequest,
    TransactionHistoryResponse,
    TransferRequest,
    TransferResponse,
    WalletBalanceResponse,
    WalletStatsResponse,
)
from social_wallet.services.audit_service import (
    WALLET_BONUS,
    WALLET_LOCKED,
    WALLET_UNLOCKED,
    AuditService,
)
from social_wallet.services.user_service import UserService
from social_wallet.services.wallet_service import TransactionType, WalletLedger

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.get("/balance", response_model=WalletBalanceResponse)
def get_balance(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    balance = WalletLedger(db).get_balance(current_user.id)
    return WalletBalanceResponse(
        balance_coins=balance.balance_coins,
        balance_usd=balance.balance_usd,
        total_spent=balance.total_spent,
        total_earned=balance.total_earned,
    )


@router.get("/transactions", response_model=TransactionHistoryResponse)
def get_transactions(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest-first page of the caller's ledger entries"""
    page = WalletLedger(db).get_transactions(current_user.id, limit=limit, offset=offset)
    return TransactionHistoryResponse(
        transactions=page["transactions"],
        pagination={
            "limit": page["limit"],
            "offset": page["offset"],
            "total": page["total"],
            "has_more": page["has_more"],
        },
    )


@router.post("/transfer", response_model=TransferResponse)
def transfer(
    body: TransferRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    description = body.message or f"Transfer to user {body.to_user_id}"
    result = WalletLedger(db).transfer(current_user.id, body.to_user_id, body.coins, description)
    return TransferResponse(transfer_id=result.transfer_id, balance_coins=result.from_balance)


@router.post("/bonus", response_model=APIResponse)
def add_bonus(
    body: BonusRequest,
    request: Request,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """Credit promotional coins to a user (admin only)"""
    if body.coins > settings.MAX_BONUS_COINS:
        raise InvalidAmountError(f"Bonus cannot exceed {settings.MAX_BONUS_COINS} coins")
    if not UserService(db).get_user_by_id(body.user_id):
        raise ResourceNotFoundError("User")

    balance = WalletLedger(db).credit(
        body.user_id,
        body.coins,
        TransactionType.BONUS,
        body.reason or "Admin bonus",
        reference_type="admin_bonus",
        reference_id=str(admin.id),
    )
    AuditService(db).log_event(
        user_id=admin.id,
        action=WALLET_BONUS,
        target_type="wallet",
        target_id=str(body.user_id),
        ip_address=_client_ip(request),
        metadata={"coins": body.coins, "reason": body.reason},
    )
    return APIResponse(message="Bonus credited", data={"user_id": body.user_id, "balance_coins": balance})


@router.get("/stats", response_model=WalletStatsResponse)
def get_stats(
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    return WalletStatsResponse(**WalletLedger(db).get_stats())


@router.post("/{user_id}/lock", response_model=APIResponse)
def lock_wallet(
    user_id: int,
    body: LockRequest,
    request: Request,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    WalletLedger(db).lock(user_id, body.reason)
    AuditService(db).log_event(
        user_id=admin.id,
        action=WALLET_LOCKED,
        target_type="wallet",
        target_id=str(user_id),
        ip_address=_client_ip(request),
        metadata={"reason": body.reason},
    )
    return APIResponse(message="Wallet locked")


@router.post("/{user_id}/unlock", response_model=APIResponse)
def unlock_wallet(
    user_id: int,
    request: Request,
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    WalletLedger(db).unlock(user_id)
    AuditService(db).log_event(
        user_id=admin.id,
        action=WALLET_UNLOCKED,
        target_type="wallet",
        target_id=str(user_id),
        ip_address=_client_ip(request),
    )
    return APIResponse(message="Wallet unlocked")
