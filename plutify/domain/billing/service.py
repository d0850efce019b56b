"""
Billing service - Stripe-backed plans, subscriptions, billing details and invoices

Stripe is the source of truth for money; local rows mirror it for listing and
are kept in sync by the webhook handlers.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional

import stripe
from sqlalchemy.orm import Session

from ...config import STRIPE_PORTAL_RETURN_URL, STRIPE_SECRET_KEY
from ...models import User
from ...models_billing import BillingInfo, SubscriptionPlan, Transaction, UserSubscription
from ...responses import api_error
from ..notifications.service import create_notification
from .schemas import (
    BillingInfoUpdate,
    CouponApply,
    PaymentMethodUpdate,
    PlanCreate,
    PlanUpdate,
    SubscriptionCancel,
    SubscriptionCreate,
    SubscriptionUpdate,
)

logger = logging.getLogger(__name__)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY

LIVE_SUBSCRIPTION_STATUSES = ("active", "trialing", "past_due")


def is_available() -> bool:
    return bool(stripe.api_key)


@contextmanager
def stripe_errors(action: str):
    """Map Stripe SDK errors onto API errors"""
    try:
        yield
    except stripe.CardError as e:
        logger.warning(f"⚠️ Card declined while trying to {action}: {e.user_message}")
        raise api_error(402, e.user_message or "Your card was declined", "CARD_DECLINED") from e
    except stripe.InvalidRequestError as e:
        logger.warning(f"⚠️ Stripe rejected request to {action}: {e.user_message or e}")
        raise api_error(400, e.user_message or f"Invalid request: failed to {action}", "STRIPE_INVALID_REQUEST") from e
    except stripe.StripeError as e:
        logger.error(f"❌ Stripe error while trying to {action}: {e}")
        raise api_error(502, f"Failed to {action}", "STRIPE_ERROR") from e


def as_dict(obj: Any) -> dict:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def from_timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.utcfromtimestamp(value) if value else None


def normalize_status(status: Optional[str]) -> str:
    return "cancelled" if status == "canceled" else (status or "incomplete")


def subscription_period(sub: dict) -> tuple[Optional[datetime], Optional[datetime]]:
    """Newer API versions carry the period on the subscription item"""
    start, end = sub.get("current_period_start"), sub.get("current_period_end")
    if not start or not end:
        items = (sub.get("items") or {}).get("data") or []
        if items:
            start = start or items[0].get("current_period_start")
            end = end or items[0].get("current_period_end")
    return from_timestamp(start), from_timestamp(end)


def plan_to_dict(plan: SubscriptionPlan) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "description": plan.description,
        "pricePerMonth": plan.price_per_month,
        "pricePerYear": plan.price_per_year,
        "billingPeriod": plan.billing_period,
        "features": plan.features or [],
        "trialDays": plan.trial_days,
        "isActive": plan.is_active,
        "isPopular": plan.is_popular,
        "stripeProductId": plan.stripe_product_id,
    }


def subscription_to_dict(subscription: UserSubscription) -> dict:
    return {
        "id": subscription.id,
        "status": subscription.status,
        "billingPeriod": subscription.billing_period,
        "plan": plan_to_dict(subscription.plan) if subscription.plan else None,
        "stripeSubscriptionId": subscription.stripe_subscription_id,
        "currentPeriodStart": subscription.current_period_start,
        "currentPeriodEnd": subscription.current_period_end,
        "cancelAtPeriodEnd": subscription.cancel_at_period_end,
        "cancelledAt": subscription.cancelled_at,
        "trialEnd": subscription.trial_end,
    }


def billing_info_to_dict(info: BillingInfo) -> dict:
    return {
        "name": info.name,
        "email": info.email,
        "phone": info.phone,
        "address": info.address,
        "companyName": info.company_name,
        "taxId": info.tax_id,
    }


def transaction_to_dict(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "status": transaction.status,
        "type": transaction.type,
        "description": transaction.description,
        "invoiceUrl": transaction.invoice_url,
        "invoicePdf": transaction.invoice_pdf,
        "periodStart": transaction.period_start,
        "periodEnd": transaction.period_end,
        "createdAt": transaction.created_at,
    }


def apply_stripe_subscription(local: UserSubscription, sub: dict) -> UserSubscription:
    """Copy Stripe subscription state onto the local mirror row"""
    local.stripe_subscription_id = sub.get("id") or local.stripe_subscription_id
    local.status = normalize_status(sub.get("status"))
    local.current_period_start, local.current_period_end = subscription_period(sub)
    local.cancel_at_period_end = bool(sub.get("cancel_at_period_end"))
    local.cancelled_at = from_timestamp(sub.get("canceled_at"))
    local.trial_end = from_timestamp(sub.get("trial_end"))
    items = (sub.get("items") or {}).get("data") or []
    if items:
        local.stripe_price_id = (items[0].get("price") or {}).get("id") or local.stripe_price_id
    return local


class BillingService:
    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # PLANS
    # ========================================================================

    def list_plans(self, include_inactive: bool = False) -> list[dict]:
        query = self.db.query(SubscriptionPlan)
        if not include_inactive:
            query = query.filter(SubscriptionPlan.is_active.is_(True))
        return [plan_to_dict(p) for p in query.order_by(SubscriptionPlan.price_per_month).all()]

    def _get_plan(self, plan_id: Optional[int]) -> SubscriptionPlan:
        plan = self.db.get(SubscriptionPlan, plan_id) if plan_id else None
        if not plan:
            raise api_error(404, "Subscription plan not found")
        return plan

    @staticmethod
    def _create_price(product_id: str, amount: float, interval: str) -> str:
        price = stripe.Price.create(
            product=product_id,
            unit_amount=int(round(amount * 100)),
            currency="usd",
            recurring={"interval": interval},
        )
        return price.id

    def create_plan(self, data: PlanCreate) -> dict:
        if not data.name or not data.features or data.pricePerMonth is None:
            raise api_error(400, "Name, features, and pricePerMonth are required")

        with stripe_errors("create plan"):
            product = stripe.Product.create(name=data.name, description=data.description or None)
            plan = SubscriptionPlan(
                name=data.name,
                description=data.description,
                price_per_month=data.pricePerMonth,
                price_per_year=data.pricePerYear,
                billing_period="both" if data.pricePerYear else "monthly",
                features=data.features,
                trial_days=data.trialDays,
                is_popular=data.isPopular,
                is_active=True,
                stripe_product_id=product.id,
                stripe_price_id_monthly=self._create_price(product.id, data.pricePerMonth, "month"),
            )
            if data.pricePerYear:
                plan.stripe_price_id_yearly = self._create_price(product.id, data.pricePerYear, "year")

        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"✅ Subscription plan '{plan.name}' created ({plan.stripe_product_id})")
        return plan_to_dict(plan)

    def update_plan(self, plan_id: int, data: PlanUpdate) -> dict:
        plan = self._get_plan(plan_id)

        with stripe_errors("update plan"):
            if data.name or data.description is not None:
                stripe.Product.modify(
                    plan.stripe_product_id,
                    name=data.name or plan.name,
                    description=data.description or None,
                )
            # Stripe prices are immutable; a new amount means a new price
            if data.pricePerMonth is not None and data.pricePerMonth != plan.price_per_month:
                plan.stripe_price_id_monthly = self._create_price(plan.stripe_product_id, data.pricePerMonth, "month")
                plan.price_per_month = data.pricePerMonth
            if data.pricePerYear is not None and data.pricePerYear != plan.price_per_year:
                plan.stripe_price_id_yearly = self._create_price(plan.stripe_product_id, data.pricePerYear, "year")
                plan.price_per_year = data.pricePerYear
                plan.billing_period = "both"

        if data.name:
            plan.name = data.name
        if data.description is not None:
            plan.description = data.description
        if data.features is not None:
            plan.features = data.features
        if data.trialDays is not None:
            plan.trial_days = data.trialDays
        if data.isPopular is not None:
            plan.is_popular = data.isPopular
        if data.isActive is not None:
            plan.is_active = data.isActive

        self.db.commit()
        self.db.refresh(plan)
        return plan_to_dict(plan)

    def deactivate_plan(self, plan_id: int) -> dict:
        plan = self._get_plan(plan_id)
        with stripe_errors("deactivate plan"):
            stripe.Product.modify(plan.stripe_product_id, active=False)
        plan.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Subscription plan '{plan.name}' deactivated")
        return {"id": plan.id, "isActive": False}

    # ========================================================================
    # SUBSCRIPTIONS
    # ========================================================================

    def _get_subscription(self, user: User) -> Optional[UserSubscription]:
        return self.db.query(UserSubscription).filter(UserSubscription.user_id == user.id).first()

    def _require_live_subscription(self, user: User, message: str = "Subscription not found") -> UserSubscription:
        subscription = self._get_subscription(user)
        if not subscription or not subscription.stripe_subscription_id or subscription.status not in LIVE_SUBSCRIPTION_STATUSES:
            raise api_error(404, message)
        return subscription

    def _customer_id(self, user: User) -> str:
        """Existing Stripe customer for the user, or a new one"""
        existing = self._get_subscription(user)
        if existing and existing.stripe_customer_id:
            return existing.stripe_customer_id
        info = self.db.query(BillingInfo).filter(BillingInfo.user_id == user.id).first()
        if info and info.stripe_customer_id:
            return info.stripe_customer_id

        customer = stripe.Customer.create(email=user.email, name=user.full_name, metadata={"userId": str(user.id)})
        logger.info(f"👤 Stripe customer {customer.id} created for {user.email}")
        return customer.id

    @staticmethod
    def _price_for(plan: SubscriptionPlan, billing_period: str) -> str:
        price_id = plan.stripe_price_id_yearly if billing_period == "yearly" else plan.stripe_price_id_monthly
        if not price_id:
            raise api_error(400, f"Plan '{plan.name}' has no {billing_period} price")
        return price_id

    def get_subscription(self, user: User) -> Optional[dict]:
        subscription = self._get_subscription(user)
        return subscription_to_dict(subscription) if subscription else None

    def create_subscription(self, user: User, data: SubscriptionCreate) -> dict:
        existing = self._get_subscription(user)
        if existing and existing.status in LIVE_SUBSCRIPTION_STATUSES:
            raise api_error(400, "User already has an active subscription")
        if not data.paymentMethodId:
            raise api_error(400, "paymentMethodId is required")

        plan = self._get_plan(data.planId)
        if not plan.is_active:
            raise api_error(400, "Subscription plan is not available")
        price_id = self._price_for(plan, data.billingPeriod)

        with stripe_errors("create subscription"):
            customer_id = self._customer_id(user)
            stripe.PaymentMethod.attach(data.paymentMethodId, customer=customer_id)
            stripe.Customer.modify(customer_id, invoice_settings={"default_payment_method": data.paymentMethodId})

            params: dict[str, Any] = {
                "customer": customer_id,
                "items": [{"price": price_id}],
                "default_payment_method": data.paymentMethodId,
                "metadata": {"userId": str(user.id), "planId": str(plan.id)},
                "expand": ["latest_invoice.payment_intent"],
            }
            if plan.trial_days:
                params["trial_period_days"] = plan.trial_days
            sub = as_dict(stripe.Subscription.create(**params))

        local = existing or UserSubscription(user_id=user.id)
        if existing is None:
            self.db.add(local)
        local.stripe_customer_id = customer_id
        local.subscription_plan_id = plan.id
        local.billing_period = data.billingPeriod
        local.stripe_price_id = price_id
        apply_stripe_subscription(local, sub)
        self.db.commit()
        self.db.refresh(local)

        create_notification(
            self.db,
            user.id,
            "subscription_created",
            "Subscription Activated",
            f"Your {plan.name} subscription is now active. Welcome to our platform!",
            {"subscriptionId": local.id, "planId": plan.id},
        )
        logger.info(f"💳 {user.email} subscribed to {plan.name} ({data.billingPeriod})")

        latest_invoice = sub.get("latest_invoice")
        payment_intent = latest_invoice.get("payment_intent") if isinstance(latest_invoice, dict) else None
        client_secret = payment_intent.get("client_secret") if isinstance(payment_intent, dict) else None
        return {**subscription_to_dict(local), "clientSecret": client_secret}

    def update_subscription(self, user: User, data: SubscriptionUpdate) -> dict:
        local = self._require_live_subscription(user)
        plan = self._get_plan(data.planId) if data.planId else local.plan
        if plan is None:
            raise api_error(400, "planId is required")
        billing_period = data.billingPeriod or local.billing_period
        price_id = self._price_for(plan, billing_period)

        with stripe_errors("update subscription"):
            current = as_dict(stripe.Subscription.retrieve(local.stripe_subscription_id))
            item_id = current["items"]["data"][0]["id"]
            sub = as_dict(
                stripe.Subscription.modify(
                    local.stripe_subscription_id,
                    items=[{"id": item_id, "price": price_id}],
                    proration_behavior="create_prorations",
                    metadata={"userId": str(user.id), "planId": str(plan.id)},
                )
            )

        local.subscription_plan_id = plan.id
        local.billing_period = billing_period
        local.stripe_price_id = price_id
        apply_stripe_subscription(local, sub)
        self.db.commit()
        self.db.refresh(local)
        logger.info(f"🔁 {user.email} moved to {plan.name} ({billing_period})")
        return subscription_to_dict(local)

    def cancel_subscription(self, user: User, data: SubscriptionCancel) -> dict:
        local = self._require_live_subscription(user)
        with stripe_errors("cancel subscription"):
            if data.cancelImmediately:
                sub = as_dict(stripe.Subscription.cancel(local.stripe_subscription_id))
            else:
                sub = as_dict(stripe.Subscription.modify(local.stripe_subscription_id, cancel_at_period_end=True))

        apply_stripe_subscription(local, sub)
        if data.cancelImmediately:
            local.status = "cancelled"
            local.cancelled_at = local.cancelled_at or datetime.utcnow()
        self.db.commit()
        self.db.refresh(local)
        logger.info(f"🛑 {user.email} cancelled subscription (immediately={data.cancelImmediately})")
        return subscription_to_dict(local)

    # ========================================================================
    # BILLING INFO / HISTORY
    # ========================================================================

    def get_billing_info(self, user: User) -> Optional[dict]:
        info = self.db.query(BillingInfo).filter(BillingInfo.user_id == user.id).first()
        return billing_info_to_dict(info) if info else None

    def update_billing_info(self, user: User, data: BillingInfoUpdate) -> dict:
        info = self.db.query(BillingInfo).filter(BillingInfo.user_id == user.id).first()
        with stripe_errors("update billing info"):
            if info is None:
                info = BillingInfo(user_id=user.id, stripe_customer_id=self._customer_id(user))
                self.db.add(info)

            provided = data.model_dump(exclude_unset=True)
            for field, column in (
                ("name", "name"),
                ("email", "email"),
                ("phone", "phone"),
                ("address", "address"),
                ("companyName", "company_name"),
                ("taxId", "tax_id"),
            ):
                if field in provided:
                    setattr(info, column, provided[field])

            customer_update = {key: provided[key] for key in ("name", "email", "phone", "address") if provided.get(key)}
            if customer_update:
                stripe.Customer.modify(info.stripe_customer_id, **customer_update)

        self.db.commit()
        self.db.refresh(info)
        return billing_info_to_dict(info)

    def payment_history(self, user: User, page: int, limit: int) -> dict:
        query = self.db.query(Transaction).filter(Transaction.user_id == user.id)
        total = query.count()
        rows = query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return {
            "transactions": [transaction_to_dict(t) for t in rows],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
        }

    def invoice_download(self, user: User, transaction_id: int) -> dict:
        transaction = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.user_id == user.id)
            .first()
        )
        if not transaction:
            raise api_error(404, "Transaction not found")

        if not (transaction.invoice_url or transaction.invoice_pdf) and transaction.stripe_invoice_id:
            with stripe_errors("get invoice"):
                invoice = as_dict(stripe.Invoice.retrieve(transaction.stripe_invoice_id))
            transaction.invoice_url = invoice.get("hosted_invoice_url")
            transaction.invoice_pdf = invoice.get("invoice_pdf")
            self.db.commit()

        return {"invoiceUrl": transaction.invoice_url, "invoicePdf": transaction.invoice_pdf}

    # ========================================================================
    # PAYMENT
    # ========================================================================

    def create_portal_session(self, user: User) -> dict:
        local = self._require_live_subscription(user, "No active subscription found")
        with stripe_errors("create portal session"):
            session = stripe.billing_portal.Session.create(
                customer=local.stripe_customer_id, return_url=STRIPE_PORTAL_RETURN_URL
            )
        return {"url": session.url}

    def apply_coupon(self, user: User, data: CouponApply) -> dict:
        if not data.couponCode:
            raise api_error(400, "couponCode is required")
        local = self._require_live_subscription(user)
        with stripe_errors("apply coupon"):
            sub = as_dict(
                stripe.Subscription.modify(local.stripe_subscription_id, discounts=[{"coupon": data.couponCode.strip()}])
            )
        apply_stripe_subscription(local, sub)
        self.db.commit()
        logger.info(f"🏷️ Coupon {data.couponCode} applied for {user.email}")
        return subscription_to_dict(local)

    def list_payment_methods(self, user: User) -> list[dict]:
        local = self._require_live_subscription(user, "No active subscription found")
        with stripe_errors("list payment methods"):
            customer = as_dict(stripe.Customer.retrieve(local.stripe_customer_id))
            methods = as_dict(stripe.PaymentMethod.list(customer=local.stripe_customer_id, type="card"))

        default_id = (customer.get("invoice_settings") or {}).get("default_payment_method")
        return [
            {
                "id": method.get("id"),
                "brand": (method.get("card") or {}).get("brand"),
                "last4": (method.get("card") or {}).get("last4"),
                "expMonth": (method.get("card") or {}).get("exp_month"),
                "expYear": (method.get("card") or {}).get("exp_year"),
                "isDefault": method.get("id") == default_id,
            }
            for method in methods.get("data", [])
        ]

    def update_payment_method(self, user: User, data: PaymentMethodUpdate) -> dict:
        if not data.paymentMethodId:
            raise api_error(400, "paymentMethodId is required")
        local = self._require_live_subscription(user)
        with stripe_errors("update payment method"):
            stripe.PaymentMethod.attach(data.paymentMethodId, customer=local.stripe_customer_id)
            stripe.Customer.modify(
                local.stripe_customer_id, invoice_settings={"default_payment_method": data.paymentMethodId}
            )
            stripe.Subscription.modify(local.stripe_subscription_id, default_payment_method=data.paymentMethodId)
        return {"paymentMethodId": data.paymentMethodId}
