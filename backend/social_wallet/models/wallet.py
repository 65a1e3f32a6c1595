"""Wallet and ledger models"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from social_wallet.core.database import Base

TRANSACTION_TYPES = (
    "deposit",
    "gift_sent",
    "gift_received",
    "bonus",
    "refund",
    "withdrawal",
    "penalty",
)


class Wallet(Base):
    """Per-user coin balance"""

    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    balance_coins = Column(Integer, default=0, nullable=False)
    total_earned = Column(Integer, default=0, nullable=False)
    total_spent = Column(Integer, default=0, nullable=False)
    is_locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="wallet")
    transactions = relationship(
        "WalletTransaction",
        back_populates="wallet",
        order_by="WalletTransaction.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint('balance_coins >= 0', name='chk_balance_non_negative'),
    )

    def __repr__(self):
        return f"<Wallet(id={self.id}, user_id={self.user_id}, balance={self.balance_coins})>"


class WalletTransaction(Base):
    """Append-only ledger entry; never updated or deleted"""

    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False)
    amount = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)
    description = Column(Text)
    reference_type = Column(String(50))
    reference_id = Column(String(128))
    metadata_json = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    wallet = relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        Index('idx_wallet_transactions_wallet', 'wallet_id'),
        Index('idx_wallet_transactions_reference', 'reference_type', 'reference_id'),
        CheckConstraint('amount <> 0', name='chk_amount_non_zero'),
        CheckConstraint('balance_after >= 0', name='chk_balance_after_non_negative'),
        CheckConstraint(
            "type IN ('deposit', 'gift_sent', 'gift_received', 'bonus', 'refund', 'withdrawal', 'penalty')",
            name='chk_transaction_type'
        ),
    )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.id,
            "type": self.type,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "metadata": self.metadata_json,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
