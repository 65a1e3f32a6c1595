"""OAuth routes - authorization, token exchange, revocation and introspection"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from social_wallet.api.deps import get_authenticated_client, get_current_user, get_optional_current_user
from social_wallet.core.database import get_db
from social_wallet.models.client import ApiClient
from social_wallet.models.user import User
from social_wallet.schemas.oauth import (
    AuthorizeRequest,
    AuthorizeResponse,
    IntrospectResponse,
    TokenActionRequest,
    TokenRequest,
    TokenResponse,
    join_scopes,
    parse_scopes,
)
from social_wallet.schemas.response import APIResponse
from social_wallet.services.oauth_service import AuthorizationBroker

router = APIRouter()


@router.get("/authorize", response_model=AuthorizeResponse)
def authorize(
    client_id: str = Query(..., min_length=1),
    redirect_uri: str = Query(..., min_length=1),
    scope: str = Query(...),
    state: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_current_user),
    db: Session = Depends(get_db),
):
    """
    Browser entry point of the authorization-code grant.

    Anonymous callers get a login-required payload; logged-in users are
    redirected to the platform callback with the code and state.
    """
    result = AuthorizationBroker(db).initiate_authorization(
        client_id, redirect_uri, parse_scopes(scope), state, current_user
    )
    if result.requires_login:
        return AuthorizeResponse(requires_login=True, client_name=result.client_name)
    return RedirectResponse(result.authorization_url, status_code=status.HTTP_302_FOUND)


@router.post("/authorize", response_model=AuthorizeResponse)
def approve_authorization(
    body: AuthorizeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Consent submitted by a logged-in user; returns the redirect URL as JSON"""
    result = AuthorizationBroker(db).initiate_authorization(
        body.client_id, body.redirect_uri, parse_scopes(body.scope), body.state, current_user
    )
    return AuthorizeResponse(
        requires_login=False,
        authorization_url=result.authorization_url,
        client_name=result.client_name,
    )


@router.post("/token", response_model=TokenResponse)
def token(body: TokenRequest, db: Session = Depends(get_db)):
    """Exchange an authorization code or a refresh token for a bearer token pair"""
    grant = AuthorizationBroker(db).exchange_token(
        body.grant_type,
        body.client_id,
        body.client_secret,
        code=body.code,
        redirect_uri=body.redirect_uri,
        refresh_token=body.refresh_token,
    )
    return TokenResponse(
        access_token=grant.access_token,
        token_type=grant.token_type,
        expires_in=grant.expires_in,
        refresh_token=grant.refresh_token,
        scope=join_scopes(grant.scopes),
    )


@router.post("/revoke", response_model=APIResponse)
def revoke(
    body: TokenActionRequest,
    client: ApiClient = Depends(get_authenticated_client),
    db: Session = Depends(get_db),
):
    AuthorizationBroker(db).revoke_token(body.token, client_id=client.id)
    return APIResponse(message="Token revoked successfully")


@router.post("/introspect", response_model=IntrospectResponse)
def introspect(
    body: TokenActionRequest,
    client: ApiClient = Depends(get_authenticated_client),
    db: Session = Depends(get_db),
):
    data = AuthorizationBroker(db).introspect(body.token)
    if data.get("active") and data.get("client_id") != client.client_key:
        return IntrospectResponse(active=False)
    return IntrospectResponse(**data)
