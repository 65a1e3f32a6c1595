"""Marketplace service - per-platform revenue share and revenue reporting"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    InvalidRevenueShareError,
    MarketplaceNotFoundError,
    ResourceNotFoundError,
)
from social_wallet.models.client import ApiClient
from social_wallet.models.gift import GiftMarketplace, GiftTransaction, GiftType
from social_wallet.services.wallet_service import coins_to_usd

logger = logging.getLogger(__name__)

TOP_GIFTS_LIMIT = 10


def _check_share(revenue_share: Optional[float]) -> float:
    if revenue_share is None or revenue_share < 0 or revenue_share > 1:
        raise InvalidRevenueShareError()
    return float(revenue_share)


class MarketplaceService:
    """
    Platform marketplace configuration.

    A platform's revenue share is the fraction of every gift sent through it
    that the platform keeps. Shares are stored as fractions (0.15 = 15%).
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    def _platform(self, platform_id: int) -> ApiClient:
        platform = self.db.query(ApiClient).filter(ApiClient.id == platform_id).first()
        if platform is None:
            raise ResourceNotFoundError("Platform")
        return platform

    def _configure(
        self,
        platform_id: int,
        revenue_share: float,
        is_enabled: bool,
        custom_branding: Optional[Dict[str, Any]] = None,
    ) -> GiftMarketplace:
        share = _check_share(revenue_share)
        platform = self._platform(platform_id)

        def _upsert(tx: Session) -> GiftMarketplace:
            marketplace = (
                tx.query(GiftMarketplace)
                .filter(GiftMarketplace.platform_id == platform_id)
                .with_for_update()
                .first()
            )
            if marketplace is None:
                marketplace = GiftMarketplace(platform_id=platform_id)
                tx.add(marketplace)
            marketplace.revenue_share = share
            marketplace.is_enabled = is_enabled
            if custom_branding is not None:
                marketplace.custom_branding = custom_branding
            tx.flush()
            return marketplace

        marketplace = run_in_transaction(self.db, _upsert)
        logger.info(
            f"Marketplace {'enabled' if is_enabled else 'disabled'} platform_id={platform_id} "
            f"name={platform.client_name!r} share={share * 100:.1f}%"
        )
        return marketplace

    def enable(
        self,
        platform_id: int,
        revenue_share: float,
        custom_branding: Optional[Dict[str, Any]] = None,
    ) -> GiftMarketplace:
        return self._configure(platform_id, revenue_share, True, custom_branding)

    def disable(self, platform_id: int) -> GiftMarketplace:
        """Turn the marketplace off; gift sends fall back to the default share."""
        return self._configure(platform_id, 0.0, False)

    def update_revenue_share(self, platform_id: int, revenue_share: float) -> Dict[str, float]:
        share = _check_share(revenue_share)

        def _update(tx: Session) -> float:
            marketplace = (
                tx.query(GiftMarketplace)
                .filter(GiftMarketplace.platform_id == platform_id)
                .with_for_update()
                .first()
            )
            if marketplace is None:
                raise MarketplaceNotFoundError()
            previous = float(marketplace.revenue_share or 0)
            marketplace.revenue_share = share
            return previous

        old_share = run_in_transaction(self.db, _update)
        logger.info(f"Revenue share updated platform_id={platform_id} old={old_share * 100:.1f}% new={share * 100:.1f}%")
        return {"old_share": old_share * 100, "new_share": share * 100}

    def _completed_since(self, days: int):
        since = self.clock() - timedelta(days=days)
        return self.db.query(GiftTransaction).filter(
            GiftTransaction.created_at >= since,
            GiftTransaction.status == "completed",
        )

    def get_platform_revenue(self, platform_id: int, days: int = 30) -> Dict[str, Any]:
        """Gift revenue for one platform over the last ``days`` days."""
        if self.db.query(GiftMarketplace.id).filter(GiftMarketplace.platform_id == platform_id).first() is None:
            raise MarketplaceNotFoundError()

        base = self._completed_since(days).filter(GiftTransaction.platform_id == platform_id)
        count, total, platform_share, wallet_share = base.with_entities(
            func.count(GiftTransaction.id),
            func.coalesce(func.sum(GiftTransaction.total_coins), 0),
            func.coalesce(func.sum(GiftTransaction.platform_fee), 0),
            func.coalesce(func.sum(GiftTransaction.social_wallet_fee), 0),
        ).one()

        revenue = func.sum(GiftTransaction.total_coins)
        top = (
            base.join(GiftType, GiftType.id == GiftTransaction.gift_type_id)
            .with_entities(GiftType.name, revenue, func.sum(GiftTransaction.quantity))
            .group_by(GiftType.name)
            .order_by(revenue.desc())
            .limit(TOP_GIFTS_LIMIT)
            .all()
        )

        return {
            "total_revenue_coins": int(total),
            "total_revenue_usd": coins_to_usd(int(total)),
            "platform_share_coins": int(platform_share),
            "platform_share_usd": coins_to_usd(int(platform_share)),
            "social_wallet_share_coins": int(wallet_share),
            "social_wallet_share_usd": coins_to_usd(int(wallet_share)),
            "transaction_count": int(count),
            "average_transaction_value": int(total) / count if count else 0,
            "top_gifts": [
                {"gift_name": name, "revenue": int(gift_revenue), "count": int(quantity)}
                for name, gift_revenue, quantity in top
            ],
            "period_days": days,
        }

    def get_marketplace_analytics(self, days: int = 30) -> Dict[str, Any]:
        """Revenue across every enabled marketplace (admin view)."""
        marketplaces = (
            self.db.query(GiftMarketplace)
            .filter(GiftMarketplace.is_enabled == True)  # noqa: E712
            .order_by(GiftMarketplace.platform_id)
            .all()
        )
        totals = {
            platform_id: (int(revenue), int(count))
            for platform_id, revenue, count in self._completed_since(days)
            .with_entities(
                GiftTransaction.platform_id,
                func.coalesce(func.sum(GiftTransaction.total_coins), 0),
                func.count(GiftTransaction.id),
            )
            .group_by(GiftTransaction.platform_id)
            .all()
        }

        platforms = []
        for marketplace in marketplaces:
            revenue, count = totals.get(marketplace.platform_id, (0, 0))
            platforms.append({
                "platform_id": marketplace.platform_id,
                "platform_name": marketplace.platform.client_name,
                "revenue": revenue,
                "transaction_count": count,
                "revenue_share": marketplace.revenue_share * 100,
            })

        shares = [m.revenue_share for m in marketplaces]
        return {
            "platforms": platforms,
            "total_revenue": sum(p["revenue"] for p in platforms),
            "total_transactions": sum(p["transaction_count"] for p in platforms),
            "average_revenue_share": (sum(shares) / len(shares) * 100) if shares else 0,
            "period_days": days,
        }
