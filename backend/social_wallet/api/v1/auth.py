"""Authentication routes - first-party Social Wallet sessions"""

from fastapi import APIRouter, Depends, status, Request
from sqlalchemy.orm import Session

from social_wallet.core.database import get_db
from social_wallet.config import settings
from social_wallet.schemas.user import (
    UserCreate,
    UserLogin,
    TokenResponse,
    UserResponse,
    RefreshTokenRequest,
)
from social_wallet.services.user_service import UserService
from social_wallet.services.wallet_service import WalletLedger
from social_wallet.services.rate_limiter import rate_limiter
from social_wallet.api.deps import get_current_user
from social_wallet.models.user import User
from social_wallet.core.exceptions import RateLimitExceededError

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _token_response(user: User, access_token: str, refresh_token: str) -> TokenResponse:
    return TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user)
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserCreate,
    db: Session = Depends(get_db)
):
    """
    Create an account and its empty wallet, and start a session

    Args:
        user_data: Email, password and optional username
        db: Database session

    Returns:
        JWT token pair and user info
    """
    service = UserService(db)
    user = service.register(user_data)
    WalletLedger(db).get_balance(user.id)
    access_token, refresh_token = service.issue_token_pair(user)
    return _token_response(user, access_token, refresh_token)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    credentials: UserLogin,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login endpoint - authenticate user and return JWT token

    Args:
        credentials: Email and password
        db: Database session

    Returns:
        JWT token and user info
    """
    client_ip = _client_ip(request)
    user_key = credentials.email.strip().lower()
    per_min_key = f"login:min:{client_ip}:{user_key}"
    per_hour_key = f"login:hour:{client_ip}:{user_key}"
    if not rate_limiter.allow(per_min_key, settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60):
        raise RateLimitExceededError("Too many login attempts. Please wait a minute.")
    if not rate_limiter.allow(per_hour_key, settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600):
        raise RateLimitExceededError("Too many login attempts. Please try again later.")

    service = UserService(db)
    user = service.authenticate_user(credentials.email, credentials.password)
    access_token, refresh_token = service.issue_token_pair(user)
    return _token_response(user, access_token, refresh_token)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information"""
    return UserResponse.model_validate(current_user)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Exchange a session refresh token for a new pair"""
    client_ip = _client_ip(request)
    if not rate_limiter.allow(f"refresh:min:{client_ip}", settings.RATE_LIMIT_PER_MINUTE, 60):
        raise RateLimitExceededError("Too many refresh attempts. Slow down.")
    if not rate_limiter.allow(f"refresh:hour:{client_ip}", settings.RATE_LIMIT_PER_HOUR, 3600):
        raise RateLimitExceededError("Too many refresh attempts. Try later.")

    user, access_token, refresh_token_value = UserService(db).refresh_session(req.refresh_token)
    return _token_response(user, access_token, refresh_token_value)
