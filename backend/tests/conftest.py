import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from social_wallet.core.database import Base
from social_wallet.core.security import get_password_hash, hash_client_secret
from social_wallet.models.client import ApiClient, Subscription
from social_wallet.models.user import User
from social_wallet.services.rate_limiter import rate_limiter

CLIENT_SECRET = "platform-secret"
CALLBACK = "https://platform.example.com/callback"


def _make_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return SessionLocal()


@pytest.fixture
def db():
    session = _make_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


def make_user(db, email="alice@example.com", role="user", password="password1", is_active=True):
    user = User(
        email=email,
        username=email.split("@")[0],
        password_hash=get_password_hash(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_client(db, key="sw_test", tier="basic", subscription_status="active", callbacks=None):
    client = ApiClient(
        client_name=f"Platform {key}",
        client_key=key,
        client_secret_hash=hash_client_secret(CLIENT_SECRET),
        callback_urls=callbacks or [CALLBACK],
        subscription_tier=tier,
        is_active=True,
    )
    db.add(client)
    db.flush()
    now = datetime.utcnow()
    db.add(
        Subscription(
            client_id=client.id,
            status=subscription_status,
            current_period_start=now,
            current_period_end=now + timedelta(days=30),
        )
    )
    db.commit()
    db.refresh(client)
    return client
