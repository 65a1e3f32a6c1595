from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from conftest import make_user
from social_wallet.core.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidPaymentStatusError,
    InvalidWebhookSignatureError,
    PaymentNotFoundError,
    WalletLockedError,
)
from social_wallet.models.payment import StripePayment
from social_wallet.models.wallet import WalletTransaction
from social_wallet.services.payment_service import PaymentService, map_stripe_status
from social_wallet.services.wallet_service import TransactionType, WalletLedger


def _intent_event(event_type, intent_id="pi_123", user_id=1, coins=1000, amount=1000, metadata=None):
    if metadata is None:
        metadata = {"user_id": str(user_id), "coins": str(coins), "type": "wallet_topup"}
    return {
        "id": "evt_1",
        "type": event_type,
        "data": {"object": {"id": intent_id, "amount": amount, "metadata": metadata, "latest_charge": "ch_1"}},
    }


def _pending_payment(db, user, intent_id="pi_123", coins=1000, amount=1000):
    payment = StripePayment(
        user_id=user.id,
        stripe_payment_id=intent_id,
        amount=amount,
        coins=coins,
        status="pending",
        currency="usd",
    )
    db.add(payment)
    db.commit()
    return payment


@patch("stripe.Webhook.construct_event")
def test_success_webhook_credits_once(mock_construct, db):
    user = make_user(db)
    _pending_payment(db, user)
    mock_construct.return_value = _intent_event("payment_intent.succeeded", user_id=user.id)
    service = PaymentService(db)

    assert service.handle_webhook(b"{}", "t=1,v1=sig") == "payment_intent.succeeded"
    service.handle_webhook(b"{}", "t=1,v1=sig")

    assert WalletLedger(db).get_balance(user.id).balance_coins == 1000
    deposits = db.query(WalletTransaction).filter(WalletTransaction.type == "deposit").all()
    assert len(deposits) == 1
    assert deposits[0].description == "Stripe payment: $10.00"
    assert deposits[0].reference_type == "stripe_payment"
    assert deposits[0].reference_id == "pi_123"

    payment = db.query(StripePayment).one()
    assert payment.status == "succeeded"
    assert payment.completed_at is not None


def test_handle_payment_succeeded_is_idempotent(db):
    user = make_user(db)
    _pending_payment(db, user)
    service = PaymentService(db)

    assert service.handle_payment_succeeded("pi_123", user.id, 1000, amount_cents=1000) is True
    assert service.handle_payment_succeeded("pi_123", user.id, 1000, amount_cents=1000) is False
    assert db.query(WalletTransaction).count() == 1


@patch("stripe.Webhook.construct_event")
def test_event_without_metadata_is_ignored(mock_construct, db):
    user = make_user(db)
    _pending_payment(db, user)
    mock_construct.return_value = _intent_event("payment_intent.succeeded", metadata={})

    PaymentService(db).handle_webhook(b"{}", "sig")

    assert db.query(WalletTransaction).count() == 0
    assert db.query(StripePayment).one().status == "pending"


@patch("stripe.Webhook.construct_event")
def test_bad_signature_rejected(mock_construct, db):
    mock_construct.side_effect = stripe.SignatureVerificationError("bad", "sig")
    with pytest.raises(InvalidWebhookSignatureError):
        PaymentService(db).handle_webhook(b"{}", "sig")


def test_missing_signature_rejected(db):
    with pytest.raises(InvalidWebhookSignatureError):
        PaymentService(db).handle_webhook(b"{}", None)


@patch("stripe.Webhook.construct_event")
def test_failed_and_canceled_update_status(mock_construct, db):
    user = make_user(db)
    _pending_payment(db, user, intent_id="pi_fail")
    _pending_payment(db, user, intent_id="pi_cancel")
    service = PaymentService(db)

    mock_construct.return_value = _intent_event("payment_intent.payment_failed", intent_id="pi_fail")
    service.handle_webhook(b"{}", "sig")
    mock_construct.return_value = _intent_event("payment_intent.canceled", intent_id="pi_cancel")
    service.handle_webhook(b"{}", "sig")

    statuses = {p.stripe_payment_id: p.status for p in db.query(StripePayment).all()}
    assert statuses == {"pi_fail": "failed", "pi_cancel": "canceled"}


@patch("stripe.PaymentIntent.create")
@patch("stripe.Customer.create")
def test_create_payment_intent(mock_customer, mock_intent, db):
    user = make_user(db)
    mock_customer.return_value = SimpleNamespace(id="cus_1")
    mock_intent.return_value = SimpleNamespace(id="pi_new", client_secret="secret_1", status="requires_payment_method")

    result = PaymentService(db).create_payment_intent(user.id, 12.5)

    assert result == {
        "payment_intent_id": "pi_new",
        "client_secret": "secret_1",
        "amount_cents": 1250,
        "coins": 1250,
        "status": "requires_payment_method",
    }
    kwargs = mock_intent.call_args.kwargs
    assert kwargs["metadata"] == {"user_id": str(user.id), "coins": "1250", "type": "wallet_topup"}
    payment = db.query(StripePayment).one()
    assert payment.status == "pending"
    assert payment.stripe_customer_id == "cus_1"


@pytest.mark.parametrize("amount", [0.5, 1000.01])
def test_create_payment_intent_amount_bounds(db, amount):
    user = make_user(db)
    with pytest.raises(InvalidAmountError):
        PaymentService(db).create_payment_intent(user.id, amount)


@patch("stripe.Refund.create")
def test_refund_debits_wallet_and_marks_payment(mock_refund, db):
    user = make_user(db)
    _pending_payment(db, user)
    service = PaymentService(db)
    service.handle_payment_succeeded("pi_123", user.id, 1000, amount_cents=1000)
    mock_refund.return_value = SimpleNamespace(id="re_1", amount=1000, status="succeeded")

    result = service.refund_payment("pi_123", "requested_by_customer")

    assert result == {"refund_id": "re_1", "amount": 1000, "status": "succeeded"}
    assert WalletLedger(db).get_balance(user.id).balance_coins == 0
    refund_leg = db.query(WalletTransaction).filter(WalletTransaction.type == "refund").one()
    assert refund_leg.reference_type == "stripe_refund"
    assert refund_leg.reference_id == "re_1"
    assert db.query(StripePayment).one().status == "refunded"


@patch("stripe.Refund.create")
def test_refund_guards(mock_refund, db):
    user = make_user(db)
    _pending_payment(db, user)
    service = PaymentService(db)

    with pytest.raises(PaymentNotFoundError):
        service.refund_payment("pi_missing")
    with pytest.raises(InvalidPaymentStatusError):
        service.refund_payment("pi_123")

    service.handle_payment_succeeded("pi_123", user.id, 1000, amount_cents=1000)
    WalletLedger(db).debit(user.id, 600, TransactionType.GIFT_SENT, "spent")
    with pytest.raises(InsufficientBalanceError):
        service.refund_payment("pi_123")
    mock_refund.assert_not_called()
    assert db.query(StripePayment).one().status == "succeeded"


def test_status_mapping_and_topup_options():
    assert map_stripe_status("succeeded") == "succeeded"
    assert map_stripe_status("requires_action") == "pending"
    assert map_stripe_status("canceled") == "canceled"
    assert map_stripe_status("something_else") == "failed"
    options = PaymentService.get_topup_options()
    assert options[2] == {"usd": 25, "coins": 2500, "bonus": 100}
    assert len(options) == 6


@patch("stripe.Refund.create")
def test_refund_on_locked_wallet_never_reaches_stripe(mock_refund, db):
    user = make_user(db)
    _pending_payment(db, user)
    service = PaymentService(db)
    service.handle_payment_succeeded("pi_123", user.id, 1000, amount_cents=1000)
    WalletLedger(db).lock(user.id, "fraud review")

    with pytest.raises(WalletLockedError):
        service.refund_payment("pi_123")

    mock_refund.assert_not_called()
    assert WalletLedger(db).get_balance(user.id).balance_coins == 1000
    assert db.query(StripePayment).one().status == "succeeded"
    assert db.query(WalletTransaction).filter(WalletTransaction.type == "refund").count() == 0


@patch("stripe.PaymentIntent.create")
@patch("stripe.Customer.create")
def test_fractional_cent_amount_rounds_coins_half_up(mock_customer, mock_intent, db):
    user = make_user(db)
    mock_customer.return_value = SimpleNamespace(id="cus_1")
    mock_intent.return_value = SimpleNamespace(id="pi_half", client_secret="s", status="requires_payment_method")

    result = PaymentService(db).create_payment_intent(user.id, 1.125)

    assert result["coins"] == 113
    assert result["amount_cents"] == 113
