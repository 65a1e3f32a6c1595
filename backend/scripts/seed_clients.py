"""
Register demo API clients, one per subscription tier.
Run after migrations: python scripts/seed_clients.py

Client secrets are printed once and cannot be retrieved later.
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from social_wallet.core.database import SessionLocal
from social_wallet.schemas.client import ClientCreate, SubscriptionTier
from social_wallet.services.client_service import ClientService

DEMO_CLIENTS = [
    ("Facebook Integration", "https://facebook.com/auth/socialwallet/callback", SubscriptionTier.ENTERPRISE),
    ("TikTok Integration", "https://tiktok.com/auth/socialwallet/callback", SubscriptionTier.PREMIUM),
    ("StartupApp", "https://mystartup.com/auth/callback", SubscriptionTier.BASIC),
]


def main():
    db = SessionLocal()
    try:
        service = ClientService(db)
        for name, callback, tier in DEMO_CLIENTS:
            creds = service.register_client(
                ClientCreate(client_name=name, callback_urls=[callback], subscription_tier=tier)
            )
            print(f"\n{name} ({tier.value.upper()})")
            print(f"  Client ID:     {creds['client_id']}")
            print(f"  Client Secret: {creds['client_secret']}")
    finally:
        db.close()
    print("\nStore these secrets securely - they cannot be retrieved later.")


if __name__ == "__main__":
    main()
