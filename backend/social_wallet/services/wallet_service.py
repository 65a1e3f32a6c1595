"""Wallet ledger - coin balances backed by an append-only transaction log"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging
import math
import secrets
import time

from sqlalchemy import func
from sqlalchemy.orm import Session

from social_wallet.config import settings
from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidTransferError,
    ResourceNotFoundError,
    WalletExistsError,
    WalletLockedError,
    WalletNotFoundError,
)
from social_wallet.core.metrics import LEDGER_COINS
from social_wallet.models.user import User
from social_wallet.models.wallet import Wallet, WalletTransaction

logger = logging.getLogger(__name__)


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    GIFT_SENT = "gift_sent"
    GIFT_RECEIVED = "gift_received"
    BONUS = "bonus"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"
    PENALTY = "penalty"


PEER_TRANSFER = "peer_transfer"


def round_half_up(value: float) -> int:
    """Round .5 upward (2.5 -> 3, 3.5 -> 4), unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def coins_to_usd(coins: int) -> float:
    return coins / settings.COINS_PER_USD


def usd_to_coins(usd: float) -> int:
    return round_half_up(usd * settings.COINS_PER_USD)


def transaction_fee(coins: int) -> int:
    return round_half_up(coins * settings.SOCIAL_WALLET_FEE_RATE)


def generate_reference(prefix: str, nbytes: int = 4) -> str:
    """Sortable reference id such as ``transfer_1700000000000_9f2c1a0b``."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(nbytes)}"


def record_movement(tx_type: str, amount: int) -> None:
    """Count a committed ledger movement; ``amount`` is signed."""
    value = tx_type.value if isinstance(tx_type, TransactionType) else tx_type
    direction = "credit" if amount > 0 else "debit"
    LEDGER_COINS.labels(value, direction).inc(abs(amount))


@dataclass
class WalletBalance:
    user_id: int
    balance_coins: int
    total_earned: int
    total_spent: int
    is_locked: bool = False

    @property
    def balance_usd(self) -> float:
        return coins_to_usd(self.balance_coins)


@dataclass
class TransferResult:
    transfer_id: str
    from_balance: int
    to_balance: int


class WalletLedger:
    """
    Coin balances per user.

    Every balance change appends exactly one ``WalletTransaction`` whose
    ``balance_after`` equals the wallet balance after the change, so a
    wallet's balance always equals the sum of its transaction amounts.

    The ``apply_*`` methods only flush and are meant to be called inside a
    ``run_in_transaction`` block owned by the caller. The public methods
    wrap them in their own unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    # Row access

    def _locked_wallet(self, tx: Session, user_id: int) -> Optional[Wallet]:
        return tx.query(Wallet).filter(Wallet.user_id == user_id).with_for_update().first()

    def _get_or_create_locked(self, tx: Session, user_id: int) -> Wallet:
        wallet = self._locked_wallet(tx, user_id)
        if wallet is None:
            wallet = Wallet(user_id=user_id, balance_coins=0, total_earned=0, total_spent=0, is_locked=False)
            tx.add(wallet)
            tx.flush()
            logger.info(f"Wallet created for user_id={user_id}")
        return wallet

    def lock_wallets(self, tx: Session, user_ids: List[int]) -> None:
        """Take row locks in ascending user id order so concurrent flows cannot deadlock."""
        for user_id in sorted(set(user_ids)):
            self._locked_wallet(tx, user_id)

    # In-transaction primitives

    def check_debit(self, tx: Session, user_id: int, amount: int) -> Wallet:
        """Lock the wallet and raise if a debit of ``amount`` would be refused."""
        if amount is None or amount <= 0:
            raise InvalidAmountError()

        wallet = self._locked_wallet(tx, user_id)
        if wallet is None:
            raise WalletNotFoundError()
        if wallet.is_locked:
            raise WalletLockedError()
        if wallet.balance_coins < amount:
            raise InsufficientBalanceError(required=amount, available=wallet.balance_coins)
        return wallet

    def apply_credit(
        self,
        tx: Session,
        user_id: int,
        amount: int,
        tx_type: TransactionType,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        if amount is None or amount <= 0:
            raise InvalidAmountError()

        wallet = self._get_or_create_locked(tx, user_id)
        wallet.balance_coins += amount
        wallet.total_earned += amount
        tx.add(
            WalletTransaction(
                wallet_id=wallet.id,
                type=TransactionType(tx_type).value,
                amount=amount,
                balance_after=wallet.balance_coins,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                metadata_json=metadata,
            )
        )
        tx.flush()
        return wallet.balance_coins

    def apply_debit(
        self,
        tx: Session,
        user_id: int,
        amount: int,
        tx_type: TransactionType,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        wallet = self.check_debit(tx, user_id, amount)
        wallet.balance_coins -= amount
        wallet.total_spent += amount
        tx.add(
            WalletTransaction(
                wallet_id=wallet.id,
                type=TransactionType(tx_type).value,
                amount=-amount,
                balance_after=wallet.balance_coins,
                description=description,
                reference_type=reference_type,
                reference_id=reference_id,
                metadata_json=metadata,
            )
        )
        tx.flush()
        return wallet.balance_coins

    # Public operations

    def get_balance(self, user_id: int) -> WalletBalance:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if wallet is None:
            wallet = run_in_transaction(self.db, lambda tx: self._get_or_create_locked(tx, user_id))
        return WalletBalance(
            user_id=user_id,
            balance_coins=wallet.balance_coins,
            total_earned=wallet.total_earned,
            total_spent=wallet.total_spent,
            is_locked=wallet.is_locked,
        )

    def create_wallet(self, user_id: int) -> WalletBalance:
        if self.db.query(Wallet).filter(Wallet.user_id == user_id).first() is not None:
            raise WalletExistsError()
        return self.get_balance(user_id)

    def credit(
        self,
        user_id: int,
        amount: int,
        tx_type: TransactionType,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        balance = run_in_transaction(
            self.db,
            lambda tx: self.apply_credit(
                tx, user_id, amount, tx_type, description, reference_type, reference_id, metadata
            ),
        )
        record_movement(tx_type, amount)
        logger.info(f"Credited {amount} coins to user_id={user_id} type={TransactionType(tx_type).value}")
        return balance

    def debit(
        self,
        user_id: int,
        amount: int,
        tx_type: TransactionType,
        description: str,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        balance = run_in_transaction(
            self.db,
            lambda tx: self.apply_debit(
                tx, user_id, amount, tx_type, description, reference_type, reference_id, metadata
            ),
        )
        record_movement(tx_type, -amount)
        logger.info(f"Debited {amount} coins from user_id={user_id} type={TransactionType(tx_type).value}")
        return balance

    def transfer(
        self,
        from_user_id: int,
        to_user_id: int,
        amount: int,
        description: str = "Peer to peer transfer",
    ) -> TransferResult:
        """
        Move coins between two users atomically.

        Both ledger entries share ``reference_type="peer_transfer"`` and the
        generated transfer id. Either both are written or neither is.
        """
        if from_user_id == to_user_id:
            raise InvalidTransferError()
        if amount is None or amount <= 0:
            raise InvalidAmountError()
        if amount > settings.MAX_TRANSFER_COINS:
            raise InvalidAmountError(f"Transfer cannot exceed {settings.MAX_TRANSFER_COINS} coins")
        if self.db.query(User.id).filter(User.id == to_user_id).first() is None:
            raise ResourceNotFoundError("Recipient")

        transfer_id = generate_reference("transfer")
        metadata = {"from_user_id": from_user_id, "to_user_id": to_user_id}

        def _move(tx: Session) -> Tuple[int, int]:
            self.lock_wallets(tx, [from_user_id, to_user_id])
            from_balance = self.apply_debit(
                tx, from_user_id, amount, TransactionType.GIFT_SENT,
                description, PEER_TRANSFER, transfer_id, metadata,
            )
            to_balance = self.apply_credit(
                tx, to_user_id, amount, TransactionType.GIFT_RECEIVED,
                description, PEER_TRANSFER, transfer_id, metadata,
            )
            return from_balance, to_balance

        from_balance, to_balance = run_in_transaction(self.db, _move)
        record_movement(TransactionType.GIFT_SENT, -amount)
        record_movement(TransactionType.GIFT_RECEIVED, amount)

        logger.info(f"Transfer {transfer_id}: {amount} coins user_id={from_user_id} -> user_id={to_user_id}")
        return TransferResult(transfer_id=transfer_id, from_balance=from_balance, to_balance=to_balance)

    def _set_locked(self, user_id: int, locked: bool) -> Wallet:
        def _flip(tx: Session) -> Wallet:
            wallet = self._locked_wallet(tx, user_id)
            if wallet is None:
                raise WalletNotFoundError()
            wallet.is_locked = locked
            tx.flush()
            return wallet

        return run_in_transaction(self.db, _flip)

    def lock(self, user_id: int, reason: str) -> None:
        self._set_locked(user_id, True)
        logger.warning(f"Wallet locked user_id={user_id} reason={reason!r}")

    def unlock(self, user_id: int) -> None:
        self._set_locked(user_id, False)
        logger.info(f"Wallet unlocked user_id={user_id}")

    def get_transactions(self, user_id: int, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        wallet = self.db.query(Wallet).filter(Wallet.user_id == user_id).first()
        if wallet is None:
            return {"transactions": [], "total": 0, "limit": limit, "offset": offset, "has_more": False}

        query = self.db.query(WalletTransaction).filter(WalletTransaction.wallet_id == wallet.id)
        total = query.count()
        rows = (
            query.order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "transactions": [row.to_dict() for row in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        }

    def get_stats(self) -> Dict[str, Any]:
        total_wallets, total_coins = self.db.query(
            func.count(Wallet.id), func.coalesce(func.sum(Wallet.balance_coins), 0)
        ).one()
        total_transactions = self.db.query(func.count(WalletTransaction.id)).scalar() or 0
        average = round_half_up(total_coins / total_wallets) if total_wallets else 0
        return {
            "total_wallets": total_wallets,
            "total_coins_in_circulation": int(total_coins),
            "total_transactions": total_transactions,
            "average_balance": average,
            "total_value_usd": coins_to_usd(int(total_coins)),
        }
