"""Gift routes - platform-facing catalog and sends, user-facing history"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from social_wallet.api.deps import (
    enforce_subscription_limits,
    get_current_user,
    require_access_token,
)
from social_wallet.core.database import get_db
from social_wallet.models.user import User
from social_wallet.schemas.gift import (
    GiftAnalyticsResponse,
    GiftCatalogResponse,
    GiftFees,
    GiftHistoryResponse,
    GiftRarity,
    GiftTypeCreate,
    PopularGiftsResponse,
    SendGiftRequest,
    SendGiftResponse,
)
from social_wallet.schemas.oauth import Scope
from social_wallet.schemas.response import APIResponse
from social_wallet.services.gift_service import GiftService
from social_wallet.services.oauth_service import TokenInfo

router = APIRouter()


@router.get("/catalog", response_model=GiftCatalogResponse)
def get_catalog(
    category: Optional[str] = Query(None),
    rarity: Optional[GiftRarity] = Query(None),
    token: TokenInfo = Depends(require_access_token()),
    db: Session = Depends(get_db),
):
    """Gifts usable on the calling platform, including universal ones"""
    return GiftService(db).get_catalog(
        platform_id=token.platform_id,
        category=category,
        rarity=rarity.value if rarity else None,
    )


@router.post("/send", response_model=SendGiftResponse)
def send_gift(
    body: SendGiftRequest,
    token: TokenInfo = Depends(require_access_token(Scope.GIFTS)),
    _usage: TokenInfo = Depends(enforce_subscription_limits),
    db: Session = Depends(get_db),
):
    """Send a gift on behalf of the token's user"""
    result = GiftService(db).send_gift(
        from_user_id=token.user_id,
        to_user_id=body.to_user_id,
        gift_type_id=body.gift_type_id,
        platform_id=token.platform_id,
        quantity=body.quantity,
        message=body.message,
    )
    return SendGiftResponse(
        transaction_id=result.transaction_id,
        total_cost=result.total_cost,
        receiver_amount=result.receiver_amount,
        fees=GiftFees(platform_fee=result.platform_fee, social_wallet_fee=result.social_wallet_fee),
    )


@router.get("/history", response_model=GiftHistoryResponse)
def get_history(
    type: str = Query("all", pattern="^(sent|received|all)$"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return GiftService(db).get_history(current_user.id, direction=type, limit=limit, offset=offset)


@router.post("/create", response_model=APIResponse, status_code=status.HTTP_201_CREATED)
def create_gift_type(
    body: GiftTypeCreate,
    token: TokenInfo = Depends(require_access_token(Scope.GIFT_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    """Add a platform-exclusive gift type"""
    gift = GiftService(db).create_gift_type(body, platform_id=token.platform_id)
    return APIResponse(message="Gift type created successfully", data={"id": gift.id})


@router.get("/popular", response_model=PopularGiftsResponse)
def get_popular_gifts(
    days: int = Query(7, ge=1, le=365),
    token: TokenInfo = Depends(require_access_token()),
    db: Session = Depends(get_db),
):
    """Most-sent gifts on the calling platform"""
    return GiftService(db).get_popular(platform_id=token.platform_id, days=days)


@router.get("/analytics", response_model=GiftAnalyticsResponse)
def get_gift_analytics(
    days: int = Query(30, ge=1, le=365),
    token: TokenInfo = Depends(require_access_token(Scope.ANALYTICS)),
    db: Session = Depends(get_db),
):
    return GiftService(db).get_analytics(token.platform_id, days=days)
