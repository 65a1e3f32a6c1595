"""
Populate the gift catalog with universal and limited-edition gifts.
Run after migrations: python scripts/seed_gifts.py
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from social_wallet.core.database import SessionLocal
from social_wallet.models.gift import GiftType
from social_wallet.schemas.gift import GiftRarity, GiftTypeCreate
from social_wallet.services.gift_service import GiftService

UNIVERSAL_GIFTS = [
    ("Heart", 10, GiftRarity.COMMON, "emotions"),
    ("Rose", 50, GiftRarity.COMMON, "romance"),
    ("Star", 25, GiftRarity.COMMON, "appreciation"),
    ("Fire", 100, GiftRarity.RARE, "hype"),
    ("Diamond", 500, GiftRarity.EPIC, "luxury"),
    ("Crown", 1000, GiftRarity.LEGENDARY, "royalty"),
    ("Party", 75, GiftRarity.RARE, "celebration"),
    ("Rocket", 200, GiftRarity.RARE, "support"),
]

LIMITED_GIFTS = [
    ("Halloween Pumpkin", 250, GiftRarity.EPIC, "seasonal", 1000),
    ("Christmas Tree", 300, GiftRarity.EPIC, "seasonal", 500),
]


def main():
    db = SessionLocal()
    try:
        if db.query(GiftType).count():
            print("Gift catalog already seeded. Skipping.")
            return

        service = GiftService(db)
        for name, price, rarity, category in UNIVERSAL_GIFTS:
            service.create_gift_type(
                GiftTypeCreate(name=name, price_coins=price, rarity=rarity, category=category)
            )
            print(f"Created gift: {name} ({price} coins)")

        for name, price, rarity, category, max_quantity in LIMITED_GIFTS:
            service.create_gift_type(
                GiftTypeCreate(
                    name=name,
                    price_coins=price,
                    rarity=rarity,
                    category=category,
                    is_limited=True,
                    max_quantity=max_quantity,
                )
            )
            print(f"Created limited edition gift: {name} ({max_quantity} available)")
    finally:
        db.close()


if __name__ == "__main__":
    main()
