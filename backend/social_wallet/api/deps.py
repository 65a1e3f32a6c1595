"""API dependencies - authentication, client credentials and OAuth scopes"""

from fastapi import Depends, Header, Request, Response
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable, Optional

from social_wallet.core.database import get_db
from social_wallet.core.security import decode_access_token
from social_wallet.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    InsufficientScopeError,
    InvalidAccessTokenError,
    InvalidClientCredentialsError,
)
from social_wallet.models.client import ApiClient
from social_wallet.models.user import User
from social_wallet.schemas.oauth import Scope
from social_wallet.services.client_service import ClientService
from social_wallet.services.oauth_service import AuthorizationBroker, TokenInfo
from social_wallet.services.user_service import UserService

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def _user_from_token(token: str, db: Session) -> Optional[User]:
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    user = UserService(db).get_user_by_id(int(payload["sub"]))
    return user if user and user.is_active else None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from the session JWT

    Raises:
        AuthenticationError: If token is missing, invalid or the user is disabled
    """
    if not credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    user = UserService(db).get_user_by_id(int(user_id))
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("User account is disabled")

    return user


async def get_current_admin_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current admin user (authorization check)

    Raises:
        AuthorizationError: If user is not admin
    """
    if current_user.role != "admin":
        raise AuthorizationError("Admin access required")
    return current_user


def get_optional_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Current user if a valid session token is present, None otherwise"""
    if not credentials:
        return None
    return _user_from_token(credentials.credentials, db)


def get_authenticated_client(
    x_client_id: Optional[str] = Header(None),
    x_client_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> ApiClient:
    """Platform authenticated through X-Client-Id / X-Client-Secret headers"""
    if not x_client_id or not x_client_secret:
        raise InvalidClientCredentialsError()
    return AuthorizationBroker(db).authenticate_client(x_client_id, x_client_secret)


def get_access_token_info(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> TokenInfo:
    """Resolve a platform-issued OAuth bearer token"""
    if not credentials:
        raise InvalidAccessTokenError()
    return AuthorizationBroker(db).validate_access_token(credentials.credentials)


def require_access_token(*required: Scope) -> Callable[..., TokenInfo]:
    """
    Dependency factory checking that the OAuth token grants every scope in ``required``.

    Usage:
        token: TokenInfo = Depends(require_access_token(Scope.GIFTS))
    """
    needed = [scope.value for scope in required]

    def _dependency(info: TokenInfo = Depends(get_access_token_info)) -> TokenInfo:
        missing = [scope for scope in needed if scope not in info.scopes]
        if missing:
            raise InsufficientScopeError(required=needed, granted=list(info.scopes))
        return info

    return _dependency


def enforce_subscription_limits(
    request: Request,
    response: Response,
    info: TokenInfo = Depends(get_access_token_info),
    db: Session = Depends(get_db),
) -> TokenInfo:
    """Count the call against the platform's quota and expose the limits as headers"""
    client = db.query(ApiClient).filter(ApiClient.id == info.platform_id).first()
    if client is None:
        raise InvalidClientCredentialsError()
    status = ClientService(db).enforce_limits(client, request.url.path)
    for name, value in status.headers().items():
        response.headers[name] = value
    return info
