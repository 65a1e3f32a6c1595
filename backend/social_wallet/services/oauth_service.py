"""Authorization broker - OAuth2 authorization-code grant for third-party platforms"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse
import logging

from sqlalchemy.orm import Session

from social_wallet.config import settings
from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    CodeAlreadyUsedError,
    CodeExpiredError,
    CodeValidationFailedError,
    InactiveAccountError,
    InvalidAccessTokenError,
    InvalidClientCredentialsError,
    InvalidClientError,
    InvalidCodeError,
    InvalidRedirectUriError,
    InvalidRefreshTokenError,
    SubscriptionInactiveError,
    TokenExpiredError,
    UnsupportedGrantTypeError,
)
from social_wallet.core.security import generate_token, verify_client_secret
from social_wallet.models.client import ApiClient, Subscription
from social_wallet.models.oauth import AccessToken, AuthorizationCode
from social_wallet.models.user import User
from social_wallet.schemas.oauth import Scope

logger = logging.getLogger(__name__)

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"


@dataclass
class AuthorizationResult:
    client_name: str
    requires_login: bool = False
    authorization_url: Optional[str] = None


@dataclass
class TokenGrant:
    access_token: str
    refresh_token: str
    expires_in: int
    scopes: List[str] = field(default_factory=list)
    token_type: str = "Bearer"


@dataclass
class TokenInfo:
    user_id: int
    client_id: str
    scopes: List[str]
    platform_id: int


def _naive_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=None) if dt and dt.tzinfo else dt


def _scope_values(scopes: Sequence) -> List[str]:
    return [s.value if isinstance(s, Scope) else str(s) for s in scopes]


def _append_query(url: str, params: Dict[str, str]) -> str:
    parts = urlparse(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend(params.items())
    return urlunparse(parts._replace(query=urlencode(query)))


class AuthorizationBroker:
    """Issues authorization codes and exchanges them for scoped token pairs."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    # Clients

    def _find_active_client(self, client_key: str) -> Optional[ApiClient]:
        return (
            self.db.query(ApiClient)
            .filter(ApiClient.client_key == client_key, ApiClient.is_active == True)  # noqa: E712
            .first()
        )

    def authenticate_client(self, client_key: str, client_secret: str) -> ApiClient:
        """Check client credentials without requiring a subscription."""
        client = self._find_active_client(client_key)
        if not client or not client_secret or not verify_client_secret(client_secret, client.client_secret_hash):
            logger.warning(f"Client authentication failed for key {client_key!r}")
            raise InvalidClientCredentialsError()
        return client

    def _validate_client(self, client_key: str, client_secret: str) -> ApiClient:
        client = self.authenticate_client(client_key, client_secret)
        subscription = (
            self.db.query(Subscription)
            .filter(Subscription.client_id == client.id, Subscription.status == "active")
            .first()
        )
        if not subscription:
            raise SubscriptionInactiveError()
        return client

    # Authorization

    def initiate_authorization(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: Sequence[Scope],
        state: Optional[str] = None,
        user: Optional[User] = None,
    ) -> AuthorizationResult:
        """
        Start an authorization-code grant.

        Without a user the caller gets a login-required result and nothing is
        written. With a user a 10-minute code is stored and the redirect URL
        carries the code plus the untouched ``state``.
        """
        client = self._find_active_client(client_id)
        if not client:
            raise InvalidClientError()

        if redirect_uri not in (client.callback_urls or []):
            raise InvalidRedirectUriError()

        if user is None:
            return AuthorizationResult(client_name=client.client_name, requires_login=True)

        scope_values = _scope_values(scopes)
        code_value = generate_token()
        expires_at = self.clock() + timedelta(seconds=settings.AUTHORIZATION_CODE_TTL_SECONDS)

        def _store(tx: Session) -> None:
            tx.add(
                AuthorizationCode(
                    code=code_value,
                    user_id=user.id,
                    client_id=client.id,
                    redirect_uri=redirect_uri,
                    scopes=scope_values,
                    expires_at=expires_at,
                    used=False,
                )
            )

        run_in_transaction(self.db, _store)

        params = {"code": code_value}
        if state is not None:
            params["state"] = state

        logger.info(
            f"Authorization code generated user_id={user.id} client_id={client.id} scope={','.join(scope_values)}"
        )
        return AuthorizationResult(
            client_name=client.client_name,
            authorization_url=_append_query(redirect_uri, params),
        )

    # Token endpoint

    def exchange_token(
        self,
        grant_type: str,
        client_id: str,
        client_secret: str,
        code: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> TokenGrant:
        if grant_type == GRANT_AUTHORIZATION_CODE:
            return self.exchange_code(client_id, client_secret, code, redirect_uri)
        if grant_type == GRANT_REFRESH_TOKEN:
            self._validate_client(client_id, client_secret)
            return self.exchange_refresh_token(client_id, refresh_token)
        raise UnsupportedGrantTypeError(grant_type)

    def exchange_code(self, client_id: str, client_secret: str, code: str, redirect_uri: str) -> TokenGrant:
        """
        Exchange a one-time authorization code for an access/refresh pair.

        The code is consumed and the token created in one transaction. The
        consume step only matches rows still marked unused, so a concurrent
        exchange of the same code cannot yield a second token.
        """
        client = self._validate_client(client_id, client_secret)

        auth_code = self.db.query(AuthorizationCode).filter(AuthorizationCode.code == code).first()
        if not auth_code:
            raise InvalidCodeError()
        if auth_code.used:
            raise CodeAlreadyUsedError()
        if _naive_utc(auth_code.expires_at) < self.clock():
            raise CodeExpiredError()
        if auth_code.client_id != client.id or auth_code.redirect_uri != redirect_uri:
            raise CodeValidationFailedError()

        code_id = auth_code.id
        user_id = auth_code.user_id
        scopes = list(auth_code.scopes or [])
        access_value = generate_token()
        refresh_value = generate_token()
        expires_at = self.clock() + timedelta(seconds=settings.OAUTH_ACCESS_TOKEN_TTL_SECONDS)

        def _consume_and_issue(tx: Session) -> None:
            consumed = (
                tx.query(AuthorizationCode)
                .filter(AuthorizationCode.id == code_id, AuthorizationCode.used == False)  # noqa: E712
                .update({AuthorizationCode.used: True}, synchronize_session=False)
            )
            if consumed != 1:
                raise CodeAlreadyUsedError()
            tx.add(
                AccessToken(
                    token=access_value,
                    refresh_token=refresh_value,
                    user_id=user_id,
                    client_id=client.id,
                    scopes=scopes,
                    expires_at=expires_at,
                )
            )
            tx.flush()

        run_in_transaction(self.db, _consume_and_issue)
        self.db.expire(auth_code)

        logger.info(f"Access token issued user_id={user_id} client_id={client.id} scope={','.join(scopes)}")
        return TokenGrant(
            access_token=access_value,
            refresh_token=refresh_value,
            expires_in=settings.OAUTH_ACCESS_TOKEN_TTL_SECONDS,
            scopes=scopes,
        )

    def exchange_refresh_token(self, client_id: str, refresh_token: Optional[str]) -> TokenGrant:
        """Rotate a token pair in place; the previous access token stops working immediately."""
        record = None
        if refresh_token:
            record = self.db.query(AccessToken).filter(AccessToken.refresh_token == refresh_token).first()
        if not record or record.client is None or record.client.client_key != client_id:
            raise InvalidRefreshTokenError()

        access_value = generate_token()
        refresh_value = generate_token()
        expires_at = self.clock() + timedelta(seconds=settings.OAUTH_ACCESS_TOKEN_TTL_SECONDS)

        def _rotate(tx: Session) -> None:
            record.token = access_value
            record.refresh_token = refresh_value
            record.expires_at = expires_at
            tx.flush()

        run_in_transaction(self.db, _rotate)

        logger.info(f"Token refreshed user_id={record.user_id} client_id={record.client_id}")
        return TokenGrant(
            access_token=access_value,
            refresh_token=refresh_value,
            expires_in=settings.OAUTH_ACCESS_TOKEN_TTL_SECONDS,
            scopes=list(record.scopes or []),
        )

    # Resource server side

    def validate_access_token(self, token: str) -> TokenInfo:
        record = self.db.query(AccessToken).filter(AccessToken.token == token).first() if token else None
        if not record:
            raise InvalidAccessTokenError()
        if _naive_utc(record.expires_at) < self.clock():
            raise TokenExpiredError()
        if not record.user.is_active or not record.client.is_active:
            raise InactiveAccountError()
        return TokenInfo(
            user_id=record.user_id,
            client_id=record.client.client_key,
            scopes=list(record.scopes or []),
            platform_id=record.client_id,
        )

    def revoke_token(self, token: str, client_id: Optional[int] = None) -> bool:
        """
        Delete the token row; revoking an unknown token is a no-op.

        With ``client_id`` only tokens issued to that client are touched.
        """
        query = self.db.query(AccessToken).filter(AccessToken.token == token)
        if client_id is not None:
            query = query.filter(AccessToken.client_id == client_id)
        record = query.first()
        if not record:
            return False

        user_id, client_id = record.user_id, record.client_id
        run_in_transaction(self.db, lambda tx: tx.delete(record))
        logger.info(f"Access token revoked user_id={user_id} client_id={client_id}")
        return True

    def introspect(self, token: str) -> Dict[str, object]:
        try:
            info = self.validate_access_token(token)
        except (InvalidAccessTokenError, TokenExpiredError, InactiveAccountError):
            return {"active": False}
        return {
            "active": True,
            "client_id": info.client_id,
            "user_id": info.user_id,
            "scope": " ".join(info.scopes),
        }
