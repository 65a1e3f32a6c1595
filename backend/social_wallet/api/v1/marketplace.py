"""Marketplace routes - per-platform revenue share and revenue reports"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from social_wallet.api.deps import get_current_admin_user, require_access_token
from social_wallet.core.database import get_db
from social_wallet.models.user import User
from social_wallet.schemas.marketplace import (
    MarketplaceAnalyticsResponse,
    MarketplaceEnableRequest,
    PlatformRevenueResponse,
    RevenueShareChange,
    RevenueShareUpdate,
)
from social_wallet.schemas.oauth import Scope
from social_wallet.schemas.response import APIResponse
from social_wallet.services.audit_service import MARKETPLACE_UPDATED, AuditService
from social_wallet.services.marketplace_service import MarketplaceService
from social_wallet.services.oauth_service import TokenInfo

router = APIRouter()


def _audit(db: Session, request: Request, token: TokenInfo, metadata: dict) -> None:
    AuditService(db).log_event(
        user_id=token.user_id,
        action=MARKETPLACE_UPDATED,
        target_type="platform",
        target_id=str(token.platform_id),
        ip_address=request.client.host if request.client else "unknown",
        metadata=metadata,
    )


@router.post("/enable", response_model=APIResponse)
def enable_marketplace(
    body: MarketplaceEnableRequest,
    request: Request,
    token: TokenInfo = Depends(require_access_token(Scope.MARKETPLACE)),
    db: Session = Depends(get_db),
):
    """Enable gifting revenue for the calling platform"""
    marketplace = MarketplaceService(db).enable(
        token.platform_id, body.revenue_share / 100, custom_branding=body.custom_branding
    )
    _audit(db, request, token, {"enabled": True, "revenue_share": marketplace.revenue_share})
    return APIResponse(
        message=(
            f"Marketplace enabled for {marketplace.platform.client_name} "
            f"with {marketplace.revenue_share * 100:.1f}% revenue share"
        ),
        data={"revenue_share": marketplace.revenue_share * 100, "is_enabled": True},
    )


@router.post("/disable", response_model=APIResponse)
def disable_marketplace(
    request: Request,
    token: TokenInfo = Depends(require_access_token(Scope.MARKETPLACE)),
    db: Session = Depends(get_db),
):
    MarketplaceService(db).disable(token.platform_id)
    _audit(db, request, token, {"enabled": False})
    return APIResponse(message="Marketplace disabled successfully")


@router.put("/revenue-share", response_model=RevenueShareChange)
def update_revenue_share(
    body: RevenueShareUpdate,
    request: Request,
    token: TokenInfo = Depends(require_access_token(Scope.MARKETPLACE)),
    db: Session = Depends(get_db),
):
    change = MarketplaceService(db).update_revenue_share(token.platform_id, body.revenue_share / 100)
    _audit(db, request, token, change)
    return RevenueShareChange(**change)


@router.get("/revenue", response_model=PlatformRevenueResponse)
def get_platform_revenue(
    days: int = Query(30, ge=1, le=365),
    token: TokenInfo = Depends(require_access_token(Scope.ANALYTICS)),
    db: Session = Depends(get_db),
):
    """Gift revenue for the calling platform over the last ``days`` days"""
    return MarketplaceService(db).get_platform_revenue(token.platform_id, days=days)


@router.get("/admin/analytics", response_model=MarketplaceAnalyticsResponse)
def get_marketplace_analytics(
    days: int = Query(30, ge=1, le=365),
    admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    return MarketplaceService(db).get_marketplace_analytics(days=days)
