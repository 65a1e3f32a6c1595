"""Third-party platform (API client) and subscription models"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Numeric, JSON,
    UniqueConstraint, Index, CheckConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from social_wallet.core.database import Base


class ApiClient(Base):
    """Registered platform allowed to request user data through OAuth"""

    __tablename__ = "api_clients"

    id = Column(Integer, primary_key=True, index=True)
    client_name = Column(String(100), nullable=False)
    client_key = Column(String(64), unique=True, nullable=False, index=True)
    client_secret_hash = Column(String(255), nullable=False)
    callback_urls = Column(JSON, nullable=False, default=list)
    subscription_tier = Column(String(20), nullable=False, default="basic")
    monthly_fee = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscriptions = relationship("Subscription", back_populates="client", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "subscription_tier IN ('basic', 'premium', 'enterprise')",
            name='chk_subscription_tier'
        ),
    )

    def __repr__(self):
        return f"<ApiClient(id={self.id}, key='{self.client_key}', name='{self.client_name}')>"


class Subscription(Base):
    """Billing period of a client; only ``active`` subscriptions may exchange tokens"""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("api_clients.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    current_period_start = Column(DateTime, nullable=False)
    current_period_end = Column(DateTime, nullable=False)
    monthly_fee = Column(Numeric(10, 2), nullable=False, default=0)
    next_billing_date = Column(DateTime)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    client = relationship("ApiClient", back_populates="subscriptions")

    __table_args__ = (
        Index('idx_subscriptions_client_status', 'client_id', 'status'),
        CheckConstraint(
            "status IN ('active', 'suspended', 'cancelled')",
            name='chk_subscription_status'
        ),
    )


class ApiUsage(Base):
    """Daily per-endpoint request counter used for monthly quotas"""

    __tablename__ = "api_usage"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("api_clients.id", ondelete="CASCADE"), nullable=False)
    endpoint = Column(String(100), nullable=False)
    date = Column(Date, nullable=False)
    request_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('client_id', 'endpoint', 'date', name='uq_usage_client_endpoint_date'),
        Index('idx_api_usage_client_date', 'client_id', 'date'),
    )
