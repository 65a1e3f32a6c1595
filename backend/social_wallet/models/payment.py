"""Stripe top-up payment model"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from social_wallet.core.database import Base


class StripePayment(Base):
    """Wallet top-up; ``stripe_payment_id`` is the webhook idempotency key"""

    __tablename__ = "stripe_payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    stripe_payment_id = Column(String(128), unique=True, nullable=False)
    stripe_customer_id = Column(String(128))
    amount = Column(Integer, nullable=False)  # cents
    coins = Column(Integer, nullable=False)
    status = Column(String(20), default="pending", nullable=False)
    currency = Column(String(10), default="usd", nullable=False)
    description = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))

    user = relationship("User")

    __table_args__ = (
        Index('idx_stripe_payments_user', 'user_id'),
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed', 'canceled', 'refunded')",
            name='chk_payment_status'
        ),
    )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "payment_intent_id": self.stripe_payment_id,
            "amount_cents": self.amount,
            "amount_usd": self.amount / 100,
            "coins": self.coins,
            "status": self.status,
            "currency": self.currency,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }
