"""Client service - platform registration, subscriptions and usage quotas"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Optional
import logging
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import MonthlyLimitExceededError, RateLimitExceededError
from social_wallet.core.security import generate_token, hash_client_secret
from social_wallet.models.client import ApiClient, ApiUsage, Subscription
from social_wallet.schemas.client import ClientCreate, SubscriptionTier
from social_wallet.services.rate_limiter import InMemoryRateLimiter, rate_limiter

logger = logging.getLogger(__name__)

UNLIMITED = -1
BILLING_PERIOD_DAYS = 30


@dataclass(frozen=True)
class TierLimits:
    monthly_fee: Decimal
    monthly_limit: int
    rate_limit_per_minute: int


TIER_LIMITS: Dict[str, TierLimits] = {
    SubscriptionTier.BASIC.value: TierLimits(Decimal("299.00"), 10_000, 100),
    SubscriptionTier.PREMIUM.value: TierLimits(Decimal("999.00"), 50_000, 500),
    SubscriptionTier.ENTERPRISE.value: TierLimits(Decimal("2999.00"), UNLIMITED, 1000),
}
DEFAULT_LIMITS = TierLimits(Decimal("0.00"), 1_000, 10)


def get_tier_limits(tier: Optional[str]) -> TierLimits:
    return TIER_LIMITS.get(tier or "", DEFAULT_LIMITS)


def generate_client_key() -> str:
    return f"sw_{secrets.token_hex(16)}"


@dataclass
class UsageStatus:
    rate_limit: int
    rate_remaining: int
    monthly_limit: int
    monthly_remaining: Optional[int]

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.rate_limit),
            "X-RateLimit-Remaining": str(self.rate_remaining),
        }
        if self.monthly_limit != UNLIMITED:
            headers["X-Monthly-Limit"] = str(self.monthly_limit)
            headers["X-Monthly-Remaining"] = str(self.monthly_remaining)
        return headers


class ClientService:
    """Registers platforms and enforces their subscription quotas."""

    def __init__(
        self,
        db: Session,
        limiter: InMemoryRateLimiter = rate_limiter,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.limiter = limiter
        self.clock = clock

    def register_client(self, data: ClientCreate) -> Dict[str, object]:
        """
        Register a platform with an active subscription for the first period.

        The plaintext secret is only present in the returned payload; the
        database keeps a bcrypt hash.
        """
        tier = data.subscription_tier.value
        limits = get_tier_limits(tier)
        client_key = generate_client_key()
        client_secret = generate_token()
        now = self.clock()
        period_end = now + timedelta(days=BILLING_PERIOD_DAYS)

        def _create(tx: Session) -> ApiClient:
            client = ApiClient(
                client_name=data.client_name,
                client_key=client_key,
                client_secret_hash=hash_client_secret(client_secret),
                callback_urls=list(data.callback_urls),
                subscription_tier=tier,
                monthly_fee=limits.monthly_fee,
                is_active=True,
            )
            tx.add(client)
            tx.flush()
            tx.add(
                Subscription(
                    client_id=client.id,
                    status="active",
                    current_period_start=now,
                    current_period_end=period_end,
                    monthly_fee=limits.monthly_fee,
                    next_billing_date=period_end,
                )
            )
            tx.flush()
            return client

        client = run_in_transaction(self.db, _create)
        logger.info(f"API client registered id={client.id} key={client_key} tier={tier}")
        return {
            "client_id": client_key,
            "client_secret": client_secret,
            "client_name": client.client_name,
            "subscription_tier": tier,
            "monthly_fee": float(limits.monthly_fee),
            "request_limit": limits.monthly_limit,
            "current_period_end": period_end,
        }

    def monthly_usage(self, client_id: int) -> int:
        today = self.clock().date()
        month_start = date(today.year, today.month, 1)
        total = (
            self.db.query(func.coalesce(func.sum(ApiUsage.request_count), 0))
            .filter(ApiUsage.client_id == client_id, ApiUsage.date >= month_start)
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def _next_month(today: date) -> date:
        if today.month == 12:
            return date(today.year + 1, 1, 1)
        return date(today.year, today.month + 1, 1)

    def enforce_limits(self, client: ApiClient, endpoint: str) -> UsageStatus:
        """
        Check the monthly quota and the per-minute rate for ``client`` and
        record one request against ``endpoint`` for today.
        """
        limits = get_tier_limits(client.subscription_tier)
        today = self.clock().date()

        used = 0
        if limits.monthly_limit != UNLIMITED:
            used = self.monthly_usage(client.id)
            if used >= limits.monthly_limit:
                logger.warning(f"Monthly quota exhausted client_id={client.id} used={used}")
                raise MonthlyLimitExceededError(
                    limit=limits.monthly_limit,
                    used=used,
                    reset_date=self._next_month(today).isoformat(),
                )

        rate_key = f"client:{client.id}"
        if not self.limiter.allow(rate_key, limits.rate_limit_per_minute, 60):
            logger.warning(f"Rate limit hit client_id={client.id}")
            raise RateLimitExceededError(
                "Rate limit exceeded",
                details={"limit": limits.rate_limit_per_minute, "window": "1 minute"},
            )

        self._record_usage(client.id, endpoint, today)

        return UsageStatus(
            rate_limit=limits.rate_limit_per_minute,
            rate_remaining=self.limiter.remaining(rate_key, limits.rate_limit_per_minute, 60),
            monthly_limit=limits.monthly_limit,
            monthly_remaining=None if limits.monthly_limit == UNLIMITED else max(0, limits.monthly_limit - used - 1),
        )

    def _record_usage(self, client_id: int, endpoint: str, today: date) -> None:
        def _bump(tx: Session) -> None:
            usage = (
                tx.query(ApiUsage)
                .filter(ApiUsage.client_id == client_id, ApiUsage.endpoint == endpoint, ApiUsage.date == today)
                .with_for_update()
                .first()
            )
            if usage is None:
                tx.add(ApiUsage(client_id=client_id, endpoint=endpoint, date=today, request_count=1))
            else:
                usage.request_count += 1

        run_in_transaction(self.db, _bump)
