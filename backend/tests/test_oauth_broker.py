from datetime import datetime, timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from conftest import CALLBACK, CLIENT_SECRET, make_client, make_user
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
from social_wallet.models.oauth import AccessToken, AuthorizationCode
from social_wallet.schemas.oauth import Scope
from social_wallet.services.oauth_service import AuthorizationBroker


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _issue_code(broker, user, scopes=(Scope.PROFILE, Scope.GIFTS), state="xyz", client_key="sw_test"):
    result = broker.initiate_authorization(client_key, CALLBACK, list(scopes), state, user)
    query = parse_qs(urlparse(result.authorization_url).query)
    return query["code"][0], query


def test_anonymous_authorization_requires_login_and_writes_nothing(db):
    make_client(db)
    result = AuthorizationBroker(db).initiate_authorization("sw_test", CALLBACK, [Scope.PROFILE], "s", None)
    assert result.requires_login is True
    assert result.client_name == "Platform sw_test"
    assert db.query(AuthorizationCode).count() == 0


def test_authorization_url_carries_code_and_state(db):
    make_client(db)
    user = make_user(db)
    code, query = _issue_code(AuthorizationBroker(db), user, state="opaque-state")

    assert len(code) == 64
    assert query["state"] == ["opaque-state"]
    stored = db.query(AuthorizationCode).one()
    assert stored.scopes == ["profile", "gifts"]
    assert stored.used is False


def test_authorization_rejects_unknown_client_and_redirect(db):
    make_client(db)
    user = make_user(db)
    broker = AuthorizationBroker(db)
    with pytest.raises(InvalidClientError):
        broker.initiate_authorization("sw_missing", CALLBACK, [Scope.PROFILE], None, user)
    with pytest.raises(InvalidRedirectUriError):
        broker.initiate_authorization("sw_test", "https://evil.example.com/cb", [Scope.PROFILE], None, user)


def test_code_exchange_is_single_use(db):
    make_client(db)
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)

    grant = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)
    assert grant.token_type == "Bearer"
    assert grant.expires_in == 3600
    assert grant.scopes == ["profile", "gifts"]

    with pytest.raises(CodeAlreadyUsedError):
        broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)
    assert db.query(AccessToken).count() == 1


def test_code_expires_after_ten_minutes(db):
    make_client(db)
    user = make_user(db)
    clock = FakeClock()
    broker = AuthorizationBroker(db, clock=clock)
    code, _ = _issue_code(broker, user)

    clock.advance(minutes=10, seconds=1)
    with pytest.raises(CodeExpiredError):
        broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)
    assert db.query(AccessToken).count() == 0


def test_code_exchange_checks_client_and_redirect(db):
    make_client(db)
    make_client(db, key="sw_other")
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)

    with pytest.raises(CodeValidationFailedError):
        broker.exchange_code("sw_other", CLIENT_SECRET, code, CALLBACK)
    with pytest.raises(CodeValidationFailedError):
        broker.exchange_code("sw_test", CLIENT_SECRET, code, "https://platform.example.com/other")
    with pytest.raises(InvalidCodeError):
        broker.exchange_code("sw_test", CLIENT_SECRET, "not-a-code", CALLBACK)


def test_code_exchange_requires_valid_credentials_and_subscription(db):
    make_client(db)
    make_client(db, key="sw_lapsed", subscription_status="suspended")
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)

    with pytest.raises(InvalidClientCredentialsError):
        broker.exchange_code("sw_test", "wrong-secret", code, CALLBACK)
    with pytest.raises(SubscriptionInactiveError):
        broker.exchange_code("sw_lapsed", CLIENT_SECRET, code, CALLBACK)


def test_refresh_rotates_token_in_place(db):
    make_client(db)
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)
    first = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)

    second = broker.exchange_token("refresh_token", "sw_test", CLIENT_SECRET, refresh_token=first.refresh_token)

    assert second.access_token != first.access_token
    assert db.query(AccessToken).count() == 1
    with pytest.raises(InvalidAccessTokenError):
        broker.validate_access_token(first.access_token)
    assert broker.validate_access_token(second.access_token).user_id == user.id
    with pytest.raises(InvalidRefreshTokenError):
        broker.exchange_refresh_token("sw_test", first.refresh_token)


def test_refresh_token_bound_to_its_client(db):
    make_client(db)
    make_client(db, key="sw_other")
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)
    grant = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)

    with pytest.raises(InvalidRefreshTokenError):
        broker.exchange_token("refresh_token", "sw_other", CLIENT_SECRET, refresh_token=grant.refresh_token)


def test_unsupported_grant_type(db):
    with pytest.raises(UnsupportedGrantTypeError):
        AuthorizationBroker(db).exchange_token("password", "sw_test", CLIENT_SECRET)


def test_validate_access_token(db):
    client = make_client(db)
    user = make_user(db)
    clock = FakeClock()
    broker = AuthorizationBroker(db, clock=clock)
    code, _ = _issue_code(broker, user)
    grant = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)

    info = broker.validate_access_token(grant.access_token)
    assert info.user_id == user.id
    assert info.client_id == "sw_test"
    assert info.platform_id == client.id
    assert info.scopes == ["profile", "gifts"]

    clock.advance(hours=1, seconds=1)
    with pytest.raises(TokenExpiredError):
        broker.validate_access_token(grant.access_token)


def test_inactive_user_token_rejected(db):
    make_client(db)
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)
    grant = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)

    user.is_active = False
    db.commit()
    with pytest.raises(InactiveAccountError):
        broker.validate_access_token(grant.access_token)
    assert broker.introspect(grant.access_token) == {"active": False}


def test_revoke_and_introspect(db):
    make_client(db)
    user = make_user(db)
    broker = AuthorizationBroker(db)
    code, _ = _issue_code(broker, user)
    grant = broker.exchange_code("sw_test", CLIENT_SECRET, code, CALLBACK)

    assert broker.introspect(grant.access_token) == {
        "active": True,
        "client_id": "sw_test",
        "user_id": user.id,
        "scope": "profile gifts",
    }
    assert broker.revoke_token(grant.access_token) is True
    assert broker.revoke_token(grant.access_token) is False
    with pytest.raises(InvalidAccessTokenError):
        broker.validate_access_token(grant.access_token)
