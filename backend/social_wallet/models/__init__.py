"""Database models"""

from social_wallet.models.user import User
from social_wallet.models.client import ApiClient, Subscription, ApiUsage
from social_wallet.models.oauth import AuthorizationCode, AccessToken
from social_wallet.models.wallet import Wallet, WalletTransaction
from social_wallet.models.gift import GiftType, GiftTransaction, GiftMarketplace
from social_wallet.models.payment import StripePayment
from social_wallet.models.audit import AuditEvent

__all__ = [
    "User",
    "ApiClient", "Subscription", "ApiUsage",
    "AuthorizationCode", "AccessToken",
    "Wallet", "WalletTransaction",
    "GiftType", "GiftTransaction", "GiftMarketplace",
    "StripePayment",
    "AuditEvent",
]
