"""Pydantic schemas for API validation"""

from social_wallet.schemas.user import (
    UserCreate,
    UserResponse,
    UserLogin,
    TokenResponse,
    RefreshTokenRequest,
)
from social_wallet.schemas.oauth import Scope, parse_scopes, join_scopes
from social_wallet.schemas.response import APIResponse, ErrorResponse
from social_wallet.schemas.audit import AuditEventResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "TokenResponse", "RefreshTokenRequest",
    "Scope", "parse_scopes", "join_scopes",
    "AuditEventResponse",
    "APIResponse", "ErrorResponse"
]
