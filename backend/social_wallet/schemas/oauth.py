"""OAuth broker schemas"""

from enum import Enum
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel, Field

from social_wallet.core.exceptions import InvalidScopeError


class Scope(str, Enum):
    """Closed set of permissions a platform may request"""
    PROFILE = "profile"
    MEDIA = "media"
    GIFTS = "gifts"
    GIFT_MANAGEMENT = "gift_management"
    ANALYTICS = "analytics"
    MARKETPLACE = "marketplace"
    WALLET = "wallet"


def parse_scopes(raw) -> List[Scope]:
    """
    Parse a space-delimited string or a list of scope strings.

    Duplicates are dropped while keeping request order. Unknown names raise
    InvalidScopeError so nothing unvalidated reaches the broker.
    """
    if raw is None:
        return []
    items: Iterable[str] = raw.split() if isinstance(raw, str) else raw
    scopes: List[Scope] = []
    invalid: List[str] = []
    for item in items:
        value = item.value if isinstance(item, Scope) else str(item).strip()
        if not value:
            continue
        try:
            scope = Scope(value)
        except ValueError:
            invalid.append(value)
            continue
        if scope not in scopes:
            scopes.append(scope)
    if invalid:
        raise InvalidScopeError(invalid)
    return scopes


def join_scopes(scopes: Iterable) -> str:
    return " ".join(s.value if isinstance(s, Scope) else str(s) for s in scopes)


class AuthorizeRequest(BaseModel):
    """Authorization request submitted by a logged-in user"""
    client_id: str = Field(..., min_length=1)
    redirect_uri: str = Field(..., min_length=1, max_length=500)
    scope: Union[str, List[str]] = Field(..., description="Space-delimited string or list of scopes")
    state: Optional[str] = None


class AuthorizeResponse(BaseModel):
    requires_login: bool = False
    authorization_url: Optional[str] = None
    client_name: str


class TokenRequest(BaseModel):
    """Token endpoint body for both supported grants"""
    grant_type: str
    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    refresh_token: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    scope: str


class TokenActionRequest(BaseModel):
    """Body of revoke and introspect calls"""
    token: str = Field(..., min_length=1)


class IntrospectResponse(BaseModel):
    active: bool
    client_id: Optional[str] = None
    user_id: Optional[int] = None
    scope: Optional[str] = None
