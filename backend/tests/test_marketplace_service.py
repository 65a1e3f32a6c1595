from datetime import datetime, timedelta

import pytest

from conftest import make_client, make_user
from social_wallet.core.exceptions import (
    InvalidRevenueShareError,
    MarketplaceNotFoundError,
    ResourceNotFoundError,
)
from social_wallet.models.gift import GiftMarketplace, GiftTransaction, GiftType
from social_wallet.services.gift_service import GiftService
from social_wallet.services.marketplace_service import MarketplaceService
from social_wallet.services.wallet_service import TransactionType, WalletLedger


def _gift(db, name="Rose", price=100):
    gift = GiftType(name=name, price_coins=price, rarity="common", category="romance")
    db.add(gift)
    db.commit()
    db.refresh(gift)
    return gift


def _funded_pair(db, coins=1000):
    sender = make_user(db, "sender@example.com")
    receiver = make_user(db, "receiver@example.com")
    WalletLedger(db).credit(sender.id, coins, TransactionType.DEPOSIT, "Top-up")
    return sender, receiver


def test_enable_upserts_single_row(db):
    platform = make_client(db)
    service = MarketplaceService(db)

    first = service.enable(platform.id, 0.15, custom_branding={"color": "#ff0000"})
    assert first.is_enabled is True
    assert first.revenue_share == pytest.approx(0.15)

    second = service.enable(platform.id, 0.2)
    assert second.id == first.id
    assert db.query(GiftMarketplace).count() == 1
    row = db.query(GiftMarketplace).one()
    assert row.revenue_share == pytest.approx(0.2)
    assert row.custom_branding == {"color": "#ff0000"}


@pytest.mark.parametrize("share", [-0.1, 1.5, None])
def test_enable_rejects_share_outside_unit_range(db, share):
    platform = make_client(db)
    with pytest.raises(InvalidRevenueShareError):
        MarketplaceService(db).enable(platform.id, share)
    assert db.query(GiftMarketplace).count() == 0


def test_enable_unknown_platform(db):
    with pytest.raises(ResourceNotFoundError):
        MarketplaceService(db).enable(9999, 0.1)


def test_disabled_marketplace_falls_back_to_default_share(db):
    platform = make_client(db)
    service = MarketplaceService(db)
    service.enable(platform.id, 0.3)
    service.disable(platform.id)

    row = db.query(GiftMarketplace).one()
    assert row.is_enabled is False
    assert row.revenue_share == 0

    sender, receiver = _funded_pair(db)
    gift = _gift(db)
    result = GiftService(db).send_gift(sender.id, receiver.id, gift.id, platform.id)
    assert result.platform_fee == 10


def test_update_revenue_share(db):
    platform = make_client(db)
    service = MarketplaceService(db)

    with pytest.raises(MarketplaceNotFoundError):
        service.update_revenue_share(platform.id, 0.2)

    service.enable(platform.id, 0.15)
    change = service.update_revenue_share(platform.id, 0.2)
    assert change["old_share"] == pytest.approx(15.0)
    assert change["new_share"] == pytest.approx(20.0)

    with pytest.raises(InvalidRevenueShareError):
        service.update_revenue_share(platform.id, 2)
    assert db.query(GiftMarketplace).one().revenue_share == pytest.approx(0.2)


def test_platform_revenue_counts_window_and_platform(db):
    platform = make_client(db)
    other = make_client(db, key="sw_other")
    service = MarketplaceService(db)
    service.enable(platform.id, 0.2)
    sender, receiver = _funded_pair(db)
    rose = _gift(db)
    star = _gift(db, name="Star", price=50)
    gifts = GiftService(db)
    gifts.send_gift(sender.id, receiver.id, rose.id, platform.id, quantity=2)
    gifts.send_gift(sender.id, receiver.id, star.id, platform.id)
    gifts.send_gift(sender.id, receiver.id, star.id, other.id)
    db.add(
        GiftTransaction(
            transaction_id="gift_old",
            from_user_id=sender.id,
            to_user_id=receiver.id,
            gift_type_id=rose.id,
            platform_id=platform.id,
            quantity=10,
            total_coins=1000,
            platform_fee=200,
            social_wallet_fee=15,
            status="completed",
            created_at=datetime.utcnow() - timedelta(days=60),
        )
    )
    db.commit()

    revenue = service.get_platform_revenue(platform.id)

    assert revenue["total_revenue_coins"] == 250
    assert revenue["total_revenue_usd"] == 2.5
    assert revenue["platform_share_coins"] == 50
    assert revenue["social_wallet_share_coins"] == 4
    assert revenue["transaction_count"] == 2
    assert revenue["average_transaction_value"] == 125
    assert revenue["top_gifts"] == [
        {"gift_name": "Rose", "revenue": 200, "count": 2},
        {"gift_name": "Star", "revenue": 50, "count": 1},
    ]
    assert revenue["period_days"] == 30

    assert service.get_platform_revenue(platform.id, days=90)["total_revenue_coins"] == 1250


def test_platform_revenue_requires_marketplace(db):
    platform = make_client(db)
    with pytest.raises(MarketplaceNotFoundError):
        MarketplaceService(db).get_platform_revenue(platform.id)


def test_marketplace_analytics_covers_enabled_platforms(db):
    first = make_client(db)
    second = make_client(db, key="sw_second")
    third = make_client(db, key="sw_third")
    service = MarketplaceService(db)
    service.enable(first.id, 0.2)
    service.enable(second.id, 0.1)
    service.enable(third.id, 0.3)
    service.disable(third.id)
    sender, receiver = _funded_pair(db)
    gift = _gift(db)
    GiftService(db).send_gift(sender.id, receiver.id, gift.id, first.id, quantity=3)

    analytics = service.get_marketplace_analytics()

    assert [p["platform_id"] for p in analytics["platforms"]] == [first.id, second.id]
    assert analytics["platforms"][0]["revenue"] == 300
    assert analytics["platforms"][0]["transaction_count"] == 1
    assert analytics["platforms"][1]["revenue"] == 0
    assert analytics["total_revenue"] == 300
    assert analytics["total_transactions"] == 1
    assert analytics["average_revenue_share"] == pytest.approx(15.0)
