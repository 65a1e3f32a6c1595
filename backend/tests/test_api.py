from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from conftest import CALLBACK, CLIENT_SECRET, make_client, make_user
from social_wallet.core.database import get_db
from social_wallet.main import app
from social_wallet.models.gift import GiftType
from social_wallet.services.user_service import UserService
from social_wallet.services.wallet_service import TransactionType, WalletLedger


@pytest.fixture
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _session_token(user):
    access_token, _ = UserService.issue_token_pair(user)
    return access_token


def _oauth_grant(client, user, scope="profile gifts"):
    response = client.get(
        "/api/v1/oauth/authorize",
        params={"client_id": "sw_test", "redirect_uri": CALLBACK, "scope": scope, "state": "abc"},
        headers=_bearer(_session_token(user)),
        follow_redirects=False,
    )
    assert response.status_code == 302
    query = parse_qs(urlparse(response.headers["location"]).query)
    assert query["state"] == ["abc"]

    token = client.post(
        "/api/v1/oauth/token",
        json={
            "grant_type": "authorization_code",
            "client_id": "sw_test",
            "client_secret": CLIENT_SECRET,
            "code": query["code"][0],
            "redirect_uri": CALLBACK,
        },
    )
    assert token.status_code == 200
    return token.json()


def test_register_login_and_balance(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"email": "carol@example.com", "password": "secret123", "username": "carol"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["role"] == "user"

    balance = client.get("/api/v1/wallet/balance", headers=_bearer(body["access_token"]))
    assert balance.status_code == 200
    assert balance.json()["balance_coins"] == 0

    login = client.post("/api/v1/auth/login", json={"email": "carol@example.com", "password": "secret123"})
    assert login.status_code == 200
    assert client.get("/api/v1/auth/me", headers=_bearer(login.json()["access_token"])).json()["email"] == (
        "carol@example.com"
    )


def test_error_envelope(client, db):
    make_user(db, "dup@example.com")
    response = client.post("/api/v1/auth/register", json={"email": "dup@example.com", "password": "secret123"})

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "EMAIL_EXISTS"
    assert body["path"] == "/api/v1/auth/register"
    assert "timestamp" in body
    assert "X-Request-ID" in response.headers


def test_validation_and_auth_errors(client):
    invalid = client.post("/api/v1/auth/register", json={"email": "not-an-email", "password": "x"})
    assert invalid.status_code == 422
    assert invalid.json()["error"]["code"] == "VALIDATION_ERROR"

    anonymous = client.get("/api/v1/wallet/balance")
    assert anonymous.status_code == 401

    wrong = client.post("/api/v1/auth/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert wrong.status_code == 401
    assert wrong.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_anonymous_authorize_requires_login(client, db):
    make_client(db)
    response = client.get(
        "/api/v1/oauth/authorize",
        params={"client_id": "sw_test", "redirect_uri": CALLBACK, "scope": "profile"},
        follow_redirects=False,
    )
    assert response.status_code == 200
    assert response.json()["requires_login"] is True
    assert response.json()["client_name"] == "Platform sw_test"


def test_unknown_scope_rejected(client, db):
    make_client(db)
    response = client.get(
        "/api/v1/oauth/authorize",
        params={"client_id": "sw_test", "redirect_uri": CALLBACK, "scope": "profile admin"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_SCOPE"


def test_oauth_gift_flow_end_to_end(client, db):
    make_client(db)
    sender = make_user(db, "sender@example.com")
    receiver = make_user(db, "receiver@example.com")
    WalletLedger(db).credit(sender.id, 1000, TransactionType.DEPOSIT, "Top-up")
    gift = GiftType(name="Rose", price_coins=100, rarity="common", category="romance")
    db.add(gift)
    db.commit()

    grant = _oauth_grant(client, sender)
    assert grant["scope"] == "profile gifts"

    catalog = client.get("/api/v1/gifts/catalog", headers=_bearer(grant["access_token"]))
    assert [g["name"] for g in catalog.json()["gifts"]] == ["Rose"]

    sent = client.post(
        "/api/v1/gifts/send",
        json={"to_user_id": receiver.id, "gift_type_id": gift.id, "quantity": 2},
        headers=_bearer(grant["access_token"]),
    )
    assert sent.status_code == 200
    assert sent.json()["total_cost"] == 203
    assert sent.json()["receiver_amount"] == 177
    assert sent.headers["X-RateLimit-Limit"] == "100"

    assert WalletLedger(db).get_balance(sender.id).balance_coins == 797
    history = client.get("/api/v1/gifts/history?type=received", headers=_bearer(_session_token(receiver)))
    assert history.json()["pagination"]["total"] == 1


def test_gift_send_requires_scope(client, db):
    make_client(db)
    user = make_user(db)
    grant = _oauth_grant(client, user, scope="profile")

    response = client.post(
        "/api/v1/gifts/send",
        json={"to_user_id": user.id + 1, "gift_type_id": 1},
        headers=_bearer(grant["access_token"]),
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_SCOPE"


def test_introspect_and_revoke(client, db):
    make_client(db)
    make_client(db, key="sw_other")
    user = make_user(db)
    grant = _oauth_grant(client, user)
    own = {"X-Client-Id": "sw_test", "X-Client-Secret": CLIENT_SECRET}
    other = {"X-Client-Id": "sw_other", "X-Client-Secret": CLIENT_SECRET}

    active = client.post("/api/v1/oauth/introspect", json={"token": grant["access_token"]}, headers=own)
    assert active.json() == {"active": True, "client_id": "sw_test", "user_id": user.id, "scope": "profile gifts"}
    hidden = client.post("/api/v1/oauth/introspect", json={"token": grant["access_token"]}, headers=other)
    assert hidden.json()["active"] is False

    assert client.post("/api/v1/oauth/revoke", json={"token": grant["access_token"]}, headers=own).status_code == 200
    after = client.post("/api/v1/oauth/introspect", json={"token": grant["access_token"]}, headers=own)
    assert after.json()["active"] is False

    unauthenticated = client.post("/api/v1/oauth/revoke", json={"token": "x"})
    assert unauthenticated.status_code == 401


@patch("stripe.Webhook.construct_event")
def test_webhook_endpoint(mock_construct, client, db):
    user = make_user(db)
    mock_construct.return_value = {
        "id": "evt_1",
        "type": "payment_intent.succeeded",
        "data": {"object": {"id": "pi_9", "amount": 500, "metadata": {"user_id": str(user.id), "coins": "500"}}},
    }

    response = client.post("/api/v1/payments/webhook", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    assert response.status_code == 200
    assert response.json() == {"received": True, "type": "payment_intent.succeeded"}
    assert WalletLedger(db).get_balance(user.id).balance_coins == 500

    missing = client.post("/api/v1/payments/webhook", content=b"{}")
    assert missing.status_code == 400
    assert missing.json()["error"]["code"] == "INVALID_WEBHOOK_SIGNATURE"


def test_wallet_lock_is_admin_only(client, db):
    admin = make_user(db, "root@example.com", role="admin")
    user = make_user(db)
    WalletLedger(db).get_balance(user.id)

    forbidden = client.post(
        f"/api/v1/wallet/{user.id}/lock", json={"reason": "review"}, headers=_bearer(_session_token(user))
    )
    assert forbidden.status_code == 403

    locked = client.post(
        f"/api/v1/wallet/{user.id}/lock", json={"reason": "review"}, headers=_bearer(_session_token(admin))
    )
    assert locked.status_code == 200


def test_health_and_metrics(client):
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["readiness"]["payments"]["configured"] is True

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "social_wallet_http_requests_total" in metrics.text


def test_marketplace_routes(client, db):
    make_client(db)
    user = make_user(db)
    grant = _oauth_grant(client, user, scope="marketplace analytics")
    headers = _bearer(grant["access_token"])

    missing = client.get("/api/v1/marketplace/revenue", headers=headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "MARKETPLACE_NOT_FOUND"

    enabled = client.post(
        "/api/v1/marketplace/enable", json={"revenue_share": 15, "custom_branding": {"theme": "dark"}}, headers=headers
    )
    assert enabled.status_code == 200
    assert enabled.json()["message"] == "Marketplace enabled for Platform sw_test with 15.0% revenue share"

    zero = client.post("/api/v1/marketplace/enable", json={"revenue_share": 0}, headers=headers)
    assert zero.status_code == 422

    updated = client.put("/api/v1/marketplace/revenue-share", json={"revenue_share": 20}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["old_share"] == pytest.approx(15.0)
    assert updated.json()["new_share"] == pytest.approx(20.0)

    revenue = client.get("/api/v1/marketplace/revenue?days=7", headers=headers)
    assert revenue.status_code == 200
    assert revenue.json()["transaction_count"] == 0
    assert revenue.json()["period_days"] == 7

    assert client.get("/api/v1/marketplace/revenue?days=400", headers=headers).status_code == 422
    assert client.post("/api/v1/marketplace/disable", headers=headers).status_code == 200


def test_marketplace_requires_scope(client, db):
    make_client(db)
    user = make_user(db)
    grant = _oauth_grant(client, user, scope="analytics")

    response = client.post("/api/v1/marketplace/enable", json={"revenue_share": 15}, headers=_bearer(grant["access_token"]))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_SCOPE"

    admin_only = client.get("/api/v1/marketplace/admin/analytics", headers=_bearer(_session_token(user)))
    assert admin_only.status_code == 403


def test_popular_and_analytics_gift_routes(client, db):
    make_client(db)
    sender = make_user(db, "sender@example.com")
    receiver = make_user(db, "receiver@example.com")
    WalletLedger(db).credit(sender.id, 1000, TransactionType.DEPOSIT, "Top-up")
    gift = GiftType(name="Rose", price_coins=100, rarity="common", category="romance")
    db.add(gift)
    db.commit()
    grant = _oauth_grant(client, sender, scope="gifts")
    client.post(
        "/api/v1/gifts/send",
        json={"to_user_id": receiver.id, "gift_type_id": gift.id},
        headers=_bearer(grant["access_token"]),
    )

    popular = client.get("/api/v1/gifts/popular", headers=_bearer(grant["access_token"]))
    assert popular.status_code == 200
    assert popular.json()["popular_gifts"][0]["gift"]["name"] == "Rose"
    assert popular.json()["popular_gifts"][0]["send_count"] == 1

    forbidden = client.get("/api/v1/gifts/analytics", headers=_bearer(grant["access_token"]))
    assert forbidden.status_code == 403

    analytics_grant = _oauth_grant(client, sender, scope="analytics")
    analytics = client.get("/api/v1/gifts/analytics", headers=_bearer(analytics_grant["access_token"]))
    assert analytics.status_code == 200
    assert analytics.json()["total_revenue"] == 100
    assert analytics.json()["platform_revenue"] == 10
