"""Gift catalog and gift transaction models"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Float, Text, Index, CheckConstraint, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from social_wallet.core.database import Base


class GiftType(Base):
    """Catalog entry; ``platform_id`` NULL means available on every platform"""

    __tablename__ = "gift_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    platform_id = Column(Integer, ForeignKey("api_clients.id", ondelete="CASCADE"), nullable=True)
    price_coins = Column(Integer, nullable=False)
    icon_url = Column(String(500))
    animation_url = Column(String(500))
    rarity = Column(String(20), default="common", nullable=False)
    category = Column(String(50), default="general", nullable=False)
    is_limited = Column(Boolean, default=False, nullable=False)
    max_quantity = Column(Integer)
    sold_quantity = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    platform = relationship("ApiClient")

    __table_args__ = (
        Index('idx_gift_types_platform', 'platform_id'),
        CheckConstraint('price_coins > 0', name='chk_gift_price_positive'),
        CheckConstraint(
            "rarity IN ('common', 'rare', 'epic', 'legendary')",
            name='chk_gift_rarity'
        ),
    )

    @property
    def available(self):
        """Remaining stock for limited gifts, None when unlimited"""
        if not self.is_limited or not self.max_quantity:
            return None
        return self.max_quantity - self.sold_quantity


class GiftTransaction(Base):
    """Audit record of a completed gift send"""

    __tablename__ = "gift_transactions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(String(64), unique=True, nullable=False)
    from_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gift_type_id = Column(Integer, ForeignKey("gift_types.id"), nullable=False)
    platform_id = Column(Integer, ForeignKey("api_clients.id", ondelete="SET NULL"), nullable=True)
    quantity = Column(Integer, nullable=False)
    total_coins = Column(Integer, nullable=False)
    platform_fee = Column(Integer, nullable=False, default=0)
    social_wallet_fee = Column(Integer, nullable=False, default=0)
    message = Column(Text)
    status = Column(String(20), default="completed", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    gift_type = relationship("GiftType")
    sender = relationship("User", foreign_keys=[from_user_id])
    receiver = relationship("User", foreign_keys=[to_user_id])

    __table_args__ = (
        Index('idx_gift_transactions_sender', 'from_user_id'),
        Index('idx_gift_transactions_receiver', 'to_user_id'),
        Index('idx_gift_transactions_platform', 'platform_id'),
    )


class GiftMarketplace(Base):
    """Per-platform revenue share applied to gift sends"""

    __tablename__ = "gift_marketplaces"

    id = Column(Integer, primary_key=True, index=True)
    platform_id = Column(Integer, ForeignKey("api_clients.id", ondelete="CASCADE"), unique=True, nullable=False)
    revenue_share = Column(Float, nullable=False, default=0.1)
    is_enabled = Column(Boolean, default=True, nullable=False)
    custom_branding = Column(JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    platform = relationship("ApiClient")

    __table_args__ = (
        CheckConstraint('revenue_share >= 0 AND revenue_share <= 1', name='chk_revenue_share_range'),
    )
