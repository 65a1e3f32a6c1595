"""Gift schemas"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from social_wallet.schemas.wallet import Pagination


class GiftRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class GiftTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price_coins: int = Field(..., gt=0, le=1_000_000)
    icon_url: Optional[str] = None
    animation_url: Optional[str] = None
    rarity: GiftRarity = GiftRarity.COMMON
    category: str = "general"
    is_limited: bool = False
    max_quantity: Optional[int] = Field(None, gt=0)


class GiftResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price_coins: int
    price_usd: float
    icon_url: Optional[str]
    animation_url: Optional[str]
    rarity: str
    category: str
    is_limited: bool
    available: Optional[int]
    platform: Optional[str]


class GiftCatalogResponse(BaseModel):
    gifts: List[GiftResponse]
    categories: List[str]
    rarities: List[str]


class SendGiftRequest(BaseModel):
    to_user_id: int
    gift_type_id: int
    quantity: int = 1
    message: Optional[str] = Field(None, max_length=500)


class GiftFees(BaseModel):
    platform_fee: int
    social_wallet_fee: int


class SendGiftResponse(BaseModel):
    transaction_id: str
    message: str = "Gift sent successfully"
    total_cost: int
    receiver_amount: int
    fees: GiftFees


class GiftHistoryItem(BaseModel):
    id: int
    transaction_id: str
    gift_name: str
    from_user_id: int
    to_user_id: int
    quantity: int
    total_coins: int
    message: Optional[str]
    created_at: Optional[datetime]


class GiftHistoryResponse(BaseModel):
    transactions: List[GiftHistoryItem]
    pagination: Pagination


class PopularGiftSummary(BaseModel):
    id: int
    name: str
    icon_url: Optional[str]
    price_coins: int


class PopularGift(BaseModel):
    gift: PopularGiftSummary
    send_count: int
    total_revenue: int


class PopularGiftsResponse(BaseModel):
    popular_gifts: List[PopularGift]
    period_days: int


class GiftStat(BaseModel):
    name: str
    count: int
    revenue: int


class DailyGiftStat(BaseModel):
    date: str
    transactions: int
    revenue: int


class GiftAnalyticsResponse(BaseModel):
    total_transactions: int
    total_revenue: int
    platform_revenue: int
    top_gifts: List[GiftStat]
    daily_stats: List[DailyGiftStat]
    period_days: int
