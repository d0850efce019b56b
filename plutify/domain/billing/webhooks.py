"""Stripe webhook event handlers - keep local subscriptions and transactions in sync"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models_billing import BillingInfo, Transaction, UserSubscription
from ..notifications.service import create_notification
from .service import apply_stripe_subscription, from_timestamp

logger = logging.getLogger(__name__)


def _find_subscription(db: Session, stripe_subscription_id: Optional[str], customer_id: Optional[str]) -> Optional[UserSubscription]:
    if stripe_subscription_id:
        local = (
            db.query(UserSubscription)
            .filter(UserSubscription.stripe_subscription_id == stripe_subscription_id)
            .first()
        )
        if local:
            return local
    if customer_id:
        return db.query(UserSubscription).filter(UserSubscription.stripe_customer_id == customer_id).first()
    return None


def _user_id_for_customer(db: Session, customer_id: Optional[str]) -> Optional[int]:
    local = _find_subscription(db, None, customer_id)
    if local:
        return local.user_id
    info = db.query(BillingInfo).filter(BillingInfo.stripe_customer_id == customer_id).first() if customer_id else None
    return info.user_id if info else None


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    """Older API versions put it on the invoice, newer ones under parent.subscription_details"""
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def handle_invoice(db: Session, invoice: dict, succeeded: bool) -> Optional[Transaction]:
    customer_id = invoice.get("customer")
    user_id = _user_id_for_customer(db, customer_id)
    if user_id is None:
        logger.warning(f"⚠️ Stripe invoice {invoice.get('id')} for unknown customer {customer_id}")
        return None

    local_sub = _find_subscription(db, _invoice_subscription_id(invoice), customer_id)
    transaction = db.query(Transaction).filter(Transaction.stripe_invoice_id == invoice.get("id")).first()
    if transaction is None:
        transaction = Transaction(user_id=user_id, stripe_invoice_id=invoice.get("id"))
        db.add(transaction)

    amount_cents = invoice.get("amount_paid") if succeeded else invoice.get("amount_due")
    lines = (invoice.get("lines") or {}).get("data") or []
    period = (lines[0].get("period") or {}) if lines else {}

    transaction.subscription_id = local_sub.id if local_sub else None
    transaction.amount = (amount_cents or 0) / 100
    transaction.currency = invoice.get("currency") or "usd"
    transaction.status = "succeeded" if succeeded else "failed"
    transaction.type = "subscription"
    transaction.stripe_payment_intent_id = invoice.get("payment_intent") if isinstance(invoice.get("payment_intent"), str) else None
    transaction.invoice_url = invoice.get("hosted_invoice_url")
    transaction.invoice_pdf = invoice.get("invoice_pdf")
    transaction.description = invoice.get("description") or (lines[0].get("description") if lines else None)
    transaction.period_start = from_timestamp(period.get("start"))
    transaction.period_end = from_timestamp(period.get("end"))

    if not succeeded and local_sub:
        local_sub.status = "past_due"
    db.commit()

    if succeeded:
        logger.info(f"💰 Payment succeeded for user {user_id}: {transaction.amount} {transaction.currency}")
    else:
        logger.warning(f"⚠️ Payment failed for user {user_id}: invoice {invoice.get('id')}")
        create_notification(
            db,
            user_id,
            "payment_failed",
            "Payment Failed",
            "We couldn't process your latest payment. Please update your payment method.",
            {"invoiceId": invoice.get("id")},
        )
    return transaction


def handle_subscription(db: Session, sub: dict, deleted: bool = False) -> Optional[UserSubscription]:
    local = _find_subscription(db, sub.get("id"), sub.get("customer"))
    if local is None:
        logger.warning(f"⚠️ Stripe subscription {sub.get('id')} has no local record")
        return None

    apply_stripe_subscription(local, sub)
    if deleted:
        local.status = "cancelled"
        local.cancelled_at = local.cancelled_at or from_timestamp(sub.get("ended_at"))
    db.commit()
    logger.info(f"🔄 Subscription {local.stripe_subscription_id} synced: {local.status}")
    return local


def dispatch_event(db: Session, event: dict) -> str:
    """Route an event to its handler; returns the event type"""
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}

    match event_type:
        case "invoice.payment_succeeded":
            handle_invoice(db, obj, succeeded=True)
        case "invoice.payment_failed":
            handle_invoice(db, obj, succeeded=False)
        case "customer.subscription.created" | "customer.subscription.updated":
            handle_subscription(db, obj)
        case "customer.subscription.deleted":
            handle_subscription(db, obj, deleted=True)
        case _:
            logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")
    return event_type
