"""Payment service - Stripe top-ups, webhook processing and refunds"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

import stripe
from sqlalchemy.orm import Session

from social_wallet.config import settings
from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    InvalidAmountError,
    InvalidPaymentStatusError,
    InvalidWebhookSignatureError,
    PaymentNotFoundError,
    PaymentProviderError,
    ResourceNotFoundError,
)
from social_wallet.core.metrics import WEBHOOK_EVENTS
from social_wallet.models.payment import StripePayment
from social_wallet.models.user import User
from social_wallet.services.wallet_service import (
    TransactionType,
    WalletLedger,
    record_movement,
    round_half_up,
    usd_to_coins,
)

logger = logging.getLogger(__name__)

PAYMENT_REFERENCE = "stripe_payment"
REFUND_REFERENCE = "stripe_refund"

TOPUP_OPTIONS: List[Dict[str, int]] = [
    {"usd": 5, "coins": 500, "bonus": 0},
    {"usd": 10, "coins": 1000, "bonus": 0},
    {"usd": 25, "coins": 2500, "bonus": 100},
    {"usd": 50, "coins": 5000, "bonus": 250},
    {"usd": 100, "coins": 10000, "bonus": 750},
    {"usd": 200, "coins": 20000, "bonus": 2000},
]


def map_stripe_status(status: Optional[str]) -> str:
    """Collapse Stripe PaymentIntent states onto the local payment states."""
    if status == "succeeded":
        return "succeeded"
    if status in ("processing", "requires_payment_method", "requires_confirmation", "requires_action"):
        return "pending"
    if status == "canceled":
        return "canceled"
    return "failed"


def _configure_stripe() -> None:
    stripe.api_key = settings.STRIPE_SECRET_KEY
    if settings.STRIPE_API_VERSION:
        stripe.api_version = settings.STRIPE_API_VERSION


class PaymentService:
    """Wallet top-ups through Stripe PaymentIntents."""

    def __init__(
        self,
        db: Session,
        ledger: Optional[WalletLedger] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.ledger = ledger or WalletLedger(db)
        self.clock = clock
        _configure_stripe()

    # Intents

    def _get_or_create_customer(self, user: User) -> str:
        existing = (
            self.db.query(StripePayment.stripe_customer_id)
            .filter(StripePayment.user_id == user.id, StripePayment.stripe_customer_id.isnot(None))
            .first()
        )
        if existing and existing.stripe_customer_id:
            return existing.stripe_customer_id

        customer = stripe.Customer.create(
            email=user.email,
            name=user.username or None,
            metadata={"user_id": str(user.id)},
        )
        logger.info(f"Stripe customer created user_id={user.id} customer_id={customer.id}")
        return customer.id

    def create_payment_intent(
        self,
        user_id: int,
        amount_usd: float,
        currency: str = "usd",
        payment_method_id: Optional[str] = None,
        return_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if amount_usd is None or amount_usd < settings.TOPUP_MIN_USD or amount_usd > settings.TOPUP_MAX_USD:
            raise InvalidAmountError(
                f"Amount must be between ${settings.TOPUP_MIN_USD:g} and ${settings.TOPUP_MAX_USD:g}"
            )

        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise ResourceNotFoundError("User")

        amount_cents = round_half_up(amount_usd * 100)
        coins = usd_to_coins(amount_usd)

        try:
            customer_id = self._get_or_create_customer(user)
            params: Dict[str, Any] = {
                "amount": amount_cents,
                "currency": currency,
                "customer": customer_id,
                "metadata": {"user_id": str(user_id), "coins": str(coins), "type": "wallet_topup"},
                "description": f"Social Wallet top-up: {coins} coins",
                "automatic_payment_methods": {"enabled": True},
            }
            if payment_method_id:
                params["payment_method"] = payment_method_id
                params["confirm"] = True
                params["return_url"] = return_url or f"{settings.FRONTEND_URL}/wallet/success"

            intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Failed to create payment intent user_id={user_id} amount={amount_usd}: {e}")
            raise PaymentProviderError("Payment processing error", str(e))

        def _store(tx: Session) -> None:
            tx.add(
                StripePayment(
                    user_id=user_id,
                    stripe_payment_id=intent.id,
                    stripe_customer_id=customer_id,
                    amount=amount_cents,
                    coins=coins,
                    status=map_stripe_status(intent.status),
                    currency=currency,
                    description=f"Wallet top-up: {coins} coins",
                )
            )

        run_in_transaction(self.db, _store)
        logger.info(f"Payment intent created user_id={user_id} intent={intent.id} amount={amount_cents} coins={coins}")
        return {
            "payment_intent_id": intent.id,
            "client_secret": intent.client_secret,
            "amount_cents": amount_cents,
            "coins": coins,
            "status": intent.status,
        }

    # Webhooks

    def construct_event(self, payload: bytes, signature: Optional[str]):
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not configured")
            raise InvalidWebhookSignatureError()
        if not signature:
            raise InvalidWebhookSignatureError()
        try:
            return stripe.Webhook.construct_event(payload, signature, settings.STRIPE_WEBHOOK_SECRET)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            WEBHOOK_EVENTS.labels("unknown", "rejected").inc()
            raise InvalidWebhookSignatureError()

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> str:
        """Verify and dispatch a Stripe event. Returns the event type."""
        event = self.construct_event(payload, signature)
        event_type = event["type"]
        obj = event["data"]["object"]
        logger.info(f"Processing Stripe webhook type={event_type} id={event.get('id')}")

        if event_type == "payment_intent.succeeded":
            metadata = obj.get("metadata") or {}
            user_id, coins = metadata.get("user_id"), metadata.get("coins")
            if not user_id or not coins:
                logger.error(f"Missing metadata in payment intent {obj.get('id')}")
                WEBHOOK_EVENTS.labels(event_type, "ignored").inc()
                return event_type
            self.handle_payment_succeeded(
                obj["id"],
                int(user_id),
                int(coins),
                amount_cents=obj.get("amount"),
                charge_id=obj.get("latest_charge"),
            )
        elif event_type == "payment_intent.payment_failed":
            error = obj.get("last_payment_error") or {}
            self._set_status(obj["id"], "failed")
            logger.warning(f"Payment failed intent={obj['id']} error={error.get('message')!r}")
        elif event_type == "payment_intent.canceled":
            self._set_status(obj["id"], "canceled")
            logger.info(f"Payment canceled intent={obj['id']}")
        elif event_type == "charge.dispute.created":
            logger.warning(
                f"Charge dispute created id={obj.get('id')} charge={obj.get('charge')} "
                f"intent={obj.get('payment_intent')} amount={obj.get('amount')} reason={obj.get('reason')}"
            )
        else:
            logger.info(f"Unhandled webhook event type {event_type}")
            WEBHOOK_EVENTS.labels(event_type, "ignored").inc()
            return event_type

        WEBHOOK_EVENTS.labels(event_type, "processed").inc()
        return event_type

    def handle_payment_succeeded(
        self,
        payment_intent_id: str,
        user_id: int,
        coins: int,
        amount_cents: Optional[int] = None,
        charge_id: Optional[str] = None,
    ) -> bool:
        """
        Credit a successful top-up exactly once.

        The payment row is locked and its status checked before crediting, so
        a redelivered event for an already settled payment is a no-op.
        Returns True when coins were credited.
        """

        def _settle(tx: Session) -> bool:
            payment = (
                tx.query(StripePayment)
                .filter(StripePayment.stripe_payment_id == payment_intent_id)
                .with_for_update()
                .first()
            )
            if payment is None:
                payment = StripePayment(
                    user_id=user_id,
                    stripe_payment_id=payment_intent_id,
                    amount=amount_cents if amount_cents is not None else coins * 100 // settings.COINS_PER_USD,
                    coins=coins,
                    status="pending",
                    currency="usd",
                    description=f"Wallet top-up: {coins} coins",
                )
                tx.add(payment)
                tx.flush()
            elif payment.status in ("succeeded", "refunded"):
                return False

            cents = amount_cents if amount_cents is not None else payment.amount
            self.ledger.apply_credit(
                tx, user_id, coins, TransactionType.DEPOSIT,
                f"Stripe payment: ${cents / 100:.2f}", PAYMENT_REFERENCE, payment_intent_id,
                {"stripe_payment_id": payment_intent_id, "stripe_charge_id": charge_id},
            )
            payment.status = "succeeded"
            payment.completed_at = self.clock()
            tx.flush()
            return True

        credited = run_in_transaction(self.db, _settle)
        if not credited:
            logger.info(f"Duplicate success event ignored intent={payment_intent_id}")
            return False

        record_movement(TransactionType.DEPOSIT, coins)
        logger.info(f"Payment processed intent={payment_intent_id} user_id={user_id} coins={coins}")
        return True

    def _set_status(self, payment_intent_id: str, status: str) -> None:
        def _update(tx: Session) -> None:
            payment = (
                tx.query(StripePayment)
                .filter(StripePayment.stripe_payment_id == payment_intent_id)
                .with_for_update()
                .first()
            )
            if payment is None:
                logger.warning(f"Status update for unknown payment intent={payment_intent_id}")
                return
            if payment.status in ("succeeded", "refunded"):
                logger.warning(f"Ignoring {status} for settled payment intent={payment_intent_id}")
                return
            payment.status = status

        run_in_transaction(self.db, _update)

    # Refunds and history

    def refund_payment(self, payment_intent_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Refund a settled top-up and take the coins back out of the wallet.

        The wallet is locked and every debit guard (missing, frozen, short on
        coins) is checked before Stripe is called. The debit commits together
        with the status change.
        """
        payment = self.db.query(StripePayment).filter(StripePayment.stripe_payment_id == payment_intent_id).first()
        if payment is None:
            raise PaymentNotFoundError()
        if payment.status != "succeeded":
            raise InvalidPaymentStatusError()

        user_id, coins = payment.user_id, payment.coins

        def _refund(tx: Session):
            locked = (
                tx.query(StripePayment)
                .filter(StripePayment.id == payment.id)
                .with_for_update()
                .one()
            )
            if locked.status != "succeeded":
                raise InvalidPaymentStatusError()

            self.ledger.check_debit(tx, user_id, coins)

            try:
                refund = stripe.Refund.create(
                    payment_intent=payment_intent_id,
                    reason=reason or "requested_by_customer",
                    metadata={"user_id": str(user_id)},
                )
            except stripe.StripeError as e:
                logger.error(f"Failed to refund payment intent={payment_intent_id}: {e}")
                raise PaymentProviderError("Refund processing error", str(e))

            locked.status = "refunded"
            self.ledger.apply_debit(
                tx, user_id, coins, TransactionType.REFUND,
                f"Refund for payment {payment_intent_id}", REFUND_REFERENCE, refund.id,
            )
            return refund

        refund = run_in_transaction(self.db, _refund)
        record_movement(TransactionType.REFUND, -coins)
        logger.info(f"Payment refunded intent={payment_intent_id} refund={refund.id} user_id={user_id} coins={coins}")
        return {
            "refund_id": refund.id,
            "amount": refund.amount or 0,
            "status": refund.status or "unknown",
        }

    def get_payment_history(self, user_id: int, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        query = self.db.query(StripePayment).filter(StripePayment.user_id == user_id)
        total = query.count()
        rows = (
            query.order_by(StripePayment.created_at.desc(), StripePayment.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "payments": [row.to_dict() for row in rows],
            "pagination": {
                "limit": limit,
                "offset": offset,
                "total": total,
                "has_more": offset + limit < total,
            },
        }

    @staticmethod
    def get_topup_options() -> List[Dict[str, int]]:
        return [dict(option) for option in TOPUP_OPTIONS]
