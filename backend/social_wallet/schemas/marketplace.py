"""Marketplace schemas; revenue shares travel as percentages over the wire"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MarketplaceEnableRequest(BaseModel):
    revenue_share: float = Field(..., gt=0, le=100, description="Platform share in percent")
    custom_branding: Optional[Dict[str, Any]] = None


class RevenueShareUpdate(BaseModel):
    revenue_share: float = Field(..., gt=0, le=100, description="Platform share in percent")


class RevenueShareChange(BaseModel):
    message: str = "Revenue share updated successfully"
    old_share: float
    new_share: float


class TopGiftRevenue(BaseModel):
    gift_name: str
    revenue: int
    count: int


class PlatformRevenueResponse(BaseModel):
    total_revenue_coins: int
    total_revenue_usd: float
    platform_share_coins: int
    platform_share_usd: float
    social_wallet_share_coins: int
    social_wallet_share_usd: float
    transaction_count: int
    average_transaction_value: float
    top_gifts: List[TopGiftRevenue]
    period_days: int


class MarketplacePlatformStats(BaseModel):
    platform_id: int
    platform_name: str
    revenue: int
    transaction_count: int
    revenue_share: float


class MarketplaceAnalyticsResponse(BaseModel):
    platforms: List[MarketplacePlatformStats]
    total_revenue: int
    total_transactions: int
    average_revenue_share: float
    period_days: int
