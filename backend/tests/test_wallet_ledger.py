import pytest
from sqlalchemy import func

from conftest import make_user
from social_wallet.core.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidTransferError,
    ResourceNotFoundError,
    WalletExistsError,
    WalletLockedError,
    WalletNotFoundError,
)
from social_wallet.models.wallet import Wallet, WalletTransaction
from social_wallet.services.wallet_service import (
    TransactionType,
    WalletLedger,
    round_half_up,
    transaction_fee,
    usd_to_coins,
)


def _ledger_sum(db, user_id):
    wallet = db.query(Wallet).filter(Wallet.user_id == user_id).one()
    return db.query(func.coalesce(func.sum(WalletTransaction.amount), 0)).filter(
        WalletTransaction.wallet_id == wallet.id
    ).scalar()


def test_get_balance_creates_empty_wallet(db):
    user = make_user(db)
    balance = WalletLedger(db).get_balance(user.id)
    assert balance.balance_coins == 0
    assert balance.balance_usd == 0
    assert db.query(Wallet).count() == 1


def test_credit_and_debit_keep_balance_equal_to_ledger_sum(db):
    user = make_user(db)
    ledger = WalletLedger(db)

    assert ledger.credit(user.id, 1000, TransactionType.DEPOSIT, "Top-up") == 1000
    assert ledger.debit(user.id, 300, TransactionType.GIFT_SENT, "Gift") == 700
    assert ledger.credit(user.id, 50, TransactionType.BONUS, "Promo") == 750

    balance = ledger.get_balance(user.id)
    assert balance.balance_coins == 750
    assert balance.total_earned == 1050
    assert balance.total_spent == 300
    assert _ledger_sum(db, user.id) == 750

    last = db.query(WalletTransaction).order_by(WalletTransaction.id.desc()).first()
    assert last.balance_after == 750


def test_debit_insufficient_balance_leaves_no_trace(db):
    user = make_user(db)
    ledger = WalletLedger(db)
    ledger.credit(user.id, 1000, TransactionType.DEPOSIT, "Top-up")

    with pytest.raises(InsufficientBalanceError) as exc:
        ledger.debit(user.id, 1500, TransactionType.GIFT_SENT, "Too much")

    assert exc.value.details == {"required": 1500, "available": 1000}
    assert ledger.get_balance(user.id).balance_coins == 1000
    assert db.query(WalletTransaction).count() == 1


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amounts_rejected(db, amount):
    user = make_user(db)
    ledger = WalletLedger(db)
    with pytest.raises(InvalidAmountError):
        ledger.credit(user.id, amount, TransactionType.DEPOSIT, "x")
    with pytest.raises(InvalidAmountError):
        ledger.debit(user.id, amount, TransactionType.GIFT_SENT, "x")


def test_debit_without_wallet_raises_not_found(db):
    user = make_user(db)
    with pytest.raises(WalletNotFoundError):
        WalletLedger(db).debit(user.id, 1, TransactionType.GIFT_SENT, "x")


def test_locked_wallet_blocks_debits_but_not_credits(db):
    user = make_user(db)
    ledger = WalletLedger(db)
    ledger.credit(user.id, 500, TransactionType.DEPOSIT, "Top-up")
    ledger.lock(user.id, "chargeback review")

    with pytest.raises(WalletLockedError):
        ledger.debit(user.id, 10, TransactionType.GIFT_SENT, "x")
    assert ledger.credit(user.id, 10, TransactionType.BONUS, "still allowed") == 510

    ledger.unlock(user.id)
    assert ledger.debit(user.id, 10, TransactionType.GIFT_SENT, "x") == 500


def test_lock_unknown_wallet(db):
    with pytest.raises(WalletNotFoundError):
        WalletLedger(db).lock(999, "nope")


def test_create_wallet_twice_conflicts(db):
    user = make_user(db)
    ledger = WalletLedger(db)
    ledger.create_wallet(user.id)
    with pytest.raises(WalletExistsError) as exc:
        ledger.create_wallet(user.id)
    assert exc.value.status_code == 409


def test_transfer_moves_coins_with_shared_reference(db):
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")
    ledger = WalletLedger(db)
    ledger.credit(alice.id, 1000, TransactionType.DEPOSIT, "Top-up")

    result = ledger.transfer(alice.id, bob.id, 400)

    assert result.transfer_id.startswith("transfer_")
    assert result.from_balance == 600
    assert result.to_balance == 400
    legs = db.query(WalletTransaction).filter(WalletTransaction.reference_id == result.transfer_id).all()
    assert sorted(leg.amount for leg in legs) == [-400, 400]
    assert {leg.reference_type for leg in legs} == {"peer_transfer"}
    assert _ledger_sum(db, alice.id) + _ledger_sum(db, bob.id) == 1000


def test_failed_transfer_changes_nothing(db):
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")
    ledger = WalletLedger(db)
    ledger.credit(alice.id, 100, TransactionType.DEPOSIT, "Top-up")

    with pytest.raises(InsufficientBalanceError):
        ledger.transfer(alice.id, bob.id, 101)

    assert ledger.get_balance(alice.id).balance_coins == 100
    assert ledger.get_balance(bob.id).balance_coins == 0
    assert db.query(WalletTransaction).count() == 1


def test_transfer_validation(db):
    alice = make_user(db)
    ledger = WalletLedger(db)
    with pytest.raises(InvalidTransferError):
        ledger.transfer(alice.id, alice.id, 10)
    with pytest.raises(InvalidAmountError):
        ledger.transfer(alice.id, alice.id + 1, 0)
    with pytest.raises(ResourceNotFoundError):
        ledger.transfer(alice.id, 4242, 10)


def test_transactions_are_paged_newest_first(db):
    user = make_user(db)
    ledger = WalletLedger(db)
    for amount in (10, 20, 30):
        ledger.credit(user.id, amount, TransactionType.DEPOSIT, f"+{amount}")

    page = ledger.get_transactions(user.id, limit=2, offset=0)
    assert page["total"] == 3
    assert page["has_more"] is True
    assert [t["amount"] for t in page["transactions"]] == [30, 20]

    rest = ledger.get_transactions(user.id, limit=2, offset=2)
    assert rest["has_more"] is False
    assert [t["amount"] for t in rest["transactions"]] == [10]


def test_stats(db):
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")
    ledger = WalletLedger(db)
    ledger.credit(alice.id, 101, TransactionType.DEPOSIT, "x")
    ledger.credit(bob.id, 200, TransactionType.DEPOSIT, "x")

    stats = ledger.get_stats()
    assert stats["total_wallets"] == 2
    assert stats["total_coins_in_circulation"] == 301
    assert stats["total_transactions"] == 2
    assert stats["average_balance"] == 151
    assert stats["total_value_usd"] == pytest.approx(3.01)


def test_half_up_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
    assert transaction_fee(100) == 2
    assert transaction_fee(1000) == 15


def test_usd_to_coins_rounds_half_up():
    assert usd_to_coins(12.5) == 1250
    assert usd_to_coins(0.125) == 13
    assert usd_to_coins(0.124) == 12


def test_check_debit_guards_without_writing(db):
    user = make_user(db)
    ledger = WalletLedger(db)
    ledger.credit(user.id, 100, TransactionType.DEPOSIT, "Top-up")
    ledger.lock(user.id, "review")

    with pytest.raises(WalletLockedError):
        ledger.check_debit(db, user.id, 10)
    db.rollback()

    ledger.unlock(user.id)
    with pytest.raises(InsufficientBalanceError):
        ledger.check_debit(db, user.id, 101)
    db.rollback()
    assert ledger.check_debit(db, user.id, 100).balance_coins == 100
    db.rollback()
    assert db.query(WalletTransaction).count() == 1
