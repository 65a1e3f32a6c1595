"""Gift service - catalog, gift sends and history"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from social_wallet.config import settings
from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    GiftNotAvailableError,
    GiftNotFoundError,
    InsufficientQuantityError,
    InvalidQuantityError,
    InvalidRecipientError,
    ResourceNotFoundError,
)
from social_wallet.models.gift import GiftMarketplace, GiftTransaction, GiftType
from social_wallet.models.user import User
from social_wallet.schemas.gift import GiftRarity, GiftTypeCreate
from social_wallet.services.wallet_service import (
    TransactionType,
    WalletLedger,
    coins_to_usd,
    generate_reference,
    record_movement,
    round_half_up,
)

logger = logging.getLogger(__name__)

GIFT_REFERENCE = "gift_transaction"
RARITY_ORDER = {rarity.value: index for index, rarity in enumerate(GiftRarity)}
TOP_GIFTS_LIMIT = 10


@dataclass
class GiftFeeBreakdown:
    total_gift_cost: int
    platform_fee: int
    social_wallet_fee: int

    @property
    def sender_cost(self) -> int:
        return self.total_gift_cost + self.social_wallet_fee

    @property
    def receiver_amount(self) -> int:
        return self.total_gift_cost - self.platform_fee - self.social_wallet_fee


@dataclass
class GiftSendResult:
    transaction_id: str
    total_cost: int
    receiver_amount: int
    platform_fee: int
    social_wallet_fee: int


def calculate_fees(price_coins: int, quantity: int, revenue_share: float) -> GiftFeeBreakdown:
    """
    Split a gift send into its fee parts.

    Each fee is rounded half-up on its own, so the parts are not forced to
    reconcile with the total.
    """
    total = price_coins * quantity
    return GiftFeeBreakdown(
        total_gift_cost=total,
        platform_fee=round_half_up(total * revenue_share),
        social_wallet_fee=round_half_up(total * settings.SOCIAL_WALLET_FEE_RATE),
    )


class GiftService:
    """Gift catalog and the atomic gift-send flow."""

    def __init__(
        self,
        db: Session,
        ledger: Optional[WalletLedger] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.ledger = ledger or WalletLedger(db)
        self.clock = clock

    def _revenue_share(self, platform_id: Optional[int]) -> float:
        """Configured share for the platform; unset or zero falls back to the default."""
        if platform_id is None:
            return settings.DEFAULT_PLATFORM_REVENUE_SHARE
        marketplace = self.db.query(GiftMarketplace).filter(GiftMarketplace.platform_id == platform_id).first()
        if marketplace is None or not marketplace.revenue_share:
            return settings.DEFAULT_PLATFORM_REVENUE_SHARE
        return float(marketplace.revenue_share)

    @staticmethod
    def _check_stock(gift: GiftType, quantity: int) -> None:
        if gift.is_limited and gift.max_quantity:
            available = gift.max_quantity - gift.sold_quantity
            if available < quantity:
                raise InsufficientQuantityError(available=available, requested=quantity)

    def send_gift(
        self,
        from_user_id: int,
        to_user_id: int,
        gift_type_id: int,
        platform_id: Optional[int],
        quantity: int = 1,
        message: Optional[str] = None,
    ) -> GiftSendResult:
        """
        Send ``quantity`` gifts from one user to another.

        The sender pays the gift value plus the Social Wallet fee. The
        receiver gets the gift value minus both fees. The sender debit,
        receiver credit, gift record and stock update commit together; any
        failure leaves no trace.
        """
        if from_user_id == to_user_id:
            raise InvalidRecipientError()
        if quantity is None or quantity < 1 or quantity > settings.MAX_GIFT_QUANTITY:
            raise InvalidQuantityError()

        gift = self.db.query(GiftType).filter(GiftType.id == gift_type_id).first()
        if gift is None or not gift.is_active:
            raise GiftNotFoundError()
        if gift.platform_id is not None and gift.platform_id != platform_id:
            raise GiftNotAvailableError()
        self._check_stock(gift, quantity)

        if self.db.query(User.id).filter(User.id == to_user_id).first() is None:
            raise ResourceNotFoundError("Recipient")

        fees = calculate_fees(gift.price_coins, quantity, self._revenue_share(platform_id))
        transaction_id = generate_reference("gift", nbytes=8)
        gift_name = gift.name
        metadata = {"gift_type_id": gift_type_id, "quantity": quantity, "platform_id": platform_id}

        def _send(tx: Session) -> None:
            locked_gift = tx.query(GiftType).filter(GiftType.id == gift_type_id).with_for_update().one()
            self._check_stock(locked_gift, quantity)

            self.ledger.lock_wallets(tx, [from_user_id, to_user_id])
            self.ledger.apply_debit(
                tx, from_user_id, fees.sender_cost, TransactionType.GIFT_SENT,
                f"Sent {quantity}x {gift_name} to user", GIFT_REFERENCE, transaction_id, metadata,
            )
            if fees.receiver_amount > 0:
                self.ledger.apply_credit(
                    tx, to_user_id, fees.receiver_amount, TransactionType.GIFT_RECEIVED,
                    f"Received {quantity}x {gift_name}", GIFT_REFERENCE, transaction_id, metadata,
                )
            else:
                logger.warning(f"Gift {transaction_id} leaves nothing for the receiver after fees")

            tx.add(
                GiftTransaction(
                    transaction_id=transaction_id,
                    from_user_id=from_user_id,
                    to_user_id=to_user_id,
                    gift_type_id=gift_type_id,
                    platform_id=platform_id,
                    quantity=quantity,
                    total_coins=fees.total_gift_cost,
                    platform_fee=fees.platform_fee,
                    social_wallet_fee=fees.social_wallet_fee,
                    message=message,
                    status="completed",
                )
            )
            if locked_gift.is_limited:
                locked_gift.sold_quantity += quantity
            tx.flush()

        run_in_transaction(self.db, _send)
        record_movement(TransactionType.GIFT_SENT, -fees.sender_cost)
        if fees.receiver_amount > 0:
            record_movement(TransactionType.GIFT_RECEIVED, fees.receiver_amount)

        logger.info(
            f"Gift sent {transaction_id}: {quantity}x {gift_name} user_id={from_user_id} -> user_id={to_user_id} "
            f"cost={fees.sender_cost} platform_fee={fees.platform_fee} wallet_fee={fees.social_wallet_fee}"
        )
        return GiftSendResult(
            transaction_id=transaction_id,
            total_cost=fees.sender_cost,
            receiver_amount=max(fees.receiver_amount, 0),
            platform_fee=fees.platform_fee,
            social_wallet_fee=fees.social_wallet_fee,
        )

    def get_catalog(
        self,
        platform_id: Optional[int] = None,
        category: Optional[str] = None,
        rarity: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Active gifts visible to a platform: its own plus the universal ones."""
        query = self.db.query(GiftType).filter(GiftType.is_active == True)  # noqa: E712
        if platform_id is not None:
            query = query.filter(or_(GiftType.platform_id == platform_id, GiftType.platform_id.is_(None)))
        else:
            query = query.filter(GiftType.platform_id.is_(None))
        if category:
            query = query.filter(GiftType.category == category)
        if rarity:
            query = query.filter(GiftType.rarity == rarity)

        gifts = sorted(query.all(), key=lambda g: (RARITY_ORDER.get(g.rarity, len(RARITY_ORDER)), g.price_coins))

        active = self.db.query(GiftType).filter(GiftType.is_active == True)  # noqa: E712
        categories = sorted({row.category for row in active.with_entities(GiftType.category).distinct()})
        rarities = sorted(
            {row.rarity for row in active.with_entities(GiftType.rarity).distinct()},
            key=lambda r: RARITY_ORDER.get(r, len(RARITY_ORDER)),
        )

        return {
            "gifts": [
                {
                    "id": gift.id,
                    "name": gift.name,
                    "description": gift.description,
                    "price_coins": gift.price_coins,
                    "price_usd": coins_to_usd(gift.price_coins),
                    "icon_url": gift.icon_url,
                    "animation_url": gift.animation_url,
                    "rarity": gift.rarity,
                    "category": gift.category,
                    "is_limited": gift.is_limited,
                    "available": gift.available,
                    "platform": gift.platform.client_name if gift.platform else None,
                }
                for gift in gifts
            ],
            "categories": categories,
            "rarities": rarities,
        }

    def create_gift_type(self, data: GiftTypeCreate, platform_id: Optional[int] = None) -> GiftType:
        def _create(tx: Session) -> GiftType:
            gift = GiftType(
                name=data.name,
                description=data.description,
                platform_id=platform_id,
                price_coins=data.price_coins,
                icon_url=data.icon_url,
                animation_url=data.animation_url,
                rarity=data.rarity.value,
                category=data.category or "general",
                is_limited=data.is_limited,
                max_quantity=data.max_quantity,
                sold_quantity=0,
                is_active=True,
            )
            tx.add(gift)
            tx.flush()
            return gift

        gift = run_in_transaction(self.db, _create)
        logger.info(f"Gift type created id={gift.id} name={gift.name!r} price={gift.price_coins} platform_id={platform_id}")
        return gift

    def get_history(
        self,
        user_id: int,
        direction: str = "all",
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        query = self.db.query(GiftTransaction)
        if direction == "sent":
            query = query.filter(GiftTransaction.from_user_id == user_id)
        elif direction == "received":
            query = query.filter(GiftTransaction.to_user_id == user_id)
        else:
            query = query.filter(
                or_(GiftTransaction.from_user_id == user_id, GiftTransaction.to_user_id == user_id)
            )

        total = query.count()
        rows: List[GiftTransaction] = (
            query.order_by(GiftTransaction.created_at.desc(), GiftTransaction.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "transactions": [
                {
                    "id": row.id,
                    "transaction_id": row.transaction_id,
                    "gift_name": row.gift_type.name,
                    "from_user_id": row.from_user_id,
                    "to_user_id": row.to_user_id,
                    "quantity": row.quantity,
                    "total_coins": row.total_coins,
                    "message": row.message,
                    "created_at": row.created_at,
                }
                for row in rows
            ],
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": total,
                "has_more": offset + limit < total,
            },
        }

    def get_popular(self, platform_id: Optional[int] = None, days: int = 7) -> Dict[str, Any]:
        """Most-sent gifts in the last ``days`` days, optionally for one platform."""
        since = self.clock() - timedelta(days=days)
        send_count = func.count(GiftTransaction.id)
        query = (
            self.db.query(GiftType, send_count, func.coalesce(func.sum(GiftTransaction.total_coins), 0))
            .join(GiftTransaction, GiftTransaction.gift_type_id == GiftType.id)
            .filter(GiftTransaction.created_at >= since)
        )
        if platform_id is not None:
            query = query.filter(GiftTransaction.platform_id == platform_id)
        rows = query.group_by(GiftType.id).order_by(send_count.desc(), GiftType.id).limit(TOP_GIFTS_LIMIT).all()

        return {
            "popular_gifts": [
                {
                    "gift": {
                        "id": gift.id,
                        "name": gift.name,
                        "icon_url": gift.icon_url,
                        "price_coins": gift.price_coins,
                    },
                    "send_count": int(count),
                    "total_revenue": int(revenue),
                }
                for gift, count, revenue in rows
            ],
            "period_days": days,
        }

    def get_analytics(self, platform_id: int, days: int = 30) -> Dict[str, Any]:
        """Gift totals, top gifts by quantity and per-day figures for one platform."""
        since = self.clock() - timedelta(days=days)
        rows: List[GiftTransaction] = (
            self.db.query(GiftTransaction)
            .filter(GiftTransaction.platform_id == platform_id, GiftTransaction.created_at >= since)
            .order_by(GiftTransaction.created_at, GiftTransaction.id)
            .all()
        )

        gifts: Dict[str, Dict[str, Any]] = {}
        daily: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for row in rows:
            stats = gifts.setdefault(row.gift_type.name, {"name": row.gift_type.name, "count": 0, "revenue": 0})
            stats["count"] += row.quantity
            stats["revenue"] += row.total_coins

            day = row.created_at.date().isoformat()
            bucket = daily.setdefault(day, {"date": day, "transactions": 0, "revenue": 0})
            bucket["transactions"] += 1
            bucket["revenue"] += row.total_coins

        return {
            "total_transactions": len(rows),
            "total_revenue": sum(row.total_coins for row in rows),
            "platform_revenue": sum(row.platform_fee for row in rows),
            "top_gifts": sorted(gifts.values(), key=lambda g: g["count"], reverse=True)[:TOP_GIFTS_LIMIT],
            "daily_stats": list(daily.values()),
            "period_days": days,
        }
