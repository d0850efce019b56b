"""Billing router - Stripe plans, subscriptions, billing info and webhook"""

import json
import logging

import stripe
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, require_admin
from ...config import STRIPE_WEBHOOK_SECRET
from ...database import get_db
from ...models import User
from ...responses import api_error, envelope
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
from .service import BillingService, is_available
from .webhooks import dispatch_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["Billing"])


def require_stripe() -> None:
    if not is_available():
        raise api_error(503, "Payment processing is not configured", "STRIPE_NOT_CONFIGURED")


def get_billing_service(
    _: None = Depends(require_stripe),
    db: Session = Depends(get_db),
) -> BillingService:
    return BillingService(db)


# ============================================================================
# PLANS
# ============================================================================


@router.get("/subscription-plans")
async def list_plans(service: BillingService = Depends(get_billing_service)):
    return envelope(service.list_plans(), "Plans fetched successfully")


@router.post("/subscription-plans", status_code=201)
async def create_plan(
    data: PlanCreate,
    _: User = Depends(require_admin),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.create_plan(data), "Plan created successfully")


@router.put("/subscription-plans/{plan_id}")
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    _: User = Depends(require_admin),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.update_plan(plan_id, data), "Plan updated successfully")


@router.delete("/subscription-plans/{plan_id}")
async def deactivate_plan(
    plan_id: int,
    _: User = Depends(require_admin),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.deactivate_plan(plan_id), "Plan deactivated successfully")


# ============================================================================
# SUBSCRIPTION
# ============================================================================


@router.get("/subscription")
async def get_subscription(
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    subscription = service.get_subscription(current_user)
    return envelope(subscription, "Subscription found" if subscription else "No active subscription")


@router.post("/create-subscription")
async def create_subscription(
    data: SubscriptionCreate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.create_subscription(current_user, data), "Subscription created successfully")


@router.put("/update-subscription")
async def update_subscription(
    data: SubscriptionUpdate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.update_subscription(current_user, data), "Subscription updated successfully")


@router.post("/cancel-subscription")
async def cancel_subscription(
    data: SubscriptionCancel,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    message = (
        "Subscription cancelled immediately"
        if data.cancelImmediately
        else "Subscription will be cancelled at the end of the billing period"
    )
    return envelope(service.cancel_subscription(current_user, data), message)


# ============================================================================
# BILLING INFO / HISTORY
# ============================================================================


@router.get("/billing-info")
async def get_billing_info(
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    info = service.get_billing_info(current_user)
    return envelope(info, "Billing info found" if info else "No billing info")


@router.put("/billing-info")
async def update_billing_info(
    data: BillingInfoUpdate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.update_billing_info(current_user, data), "Billing info updated successfully")


@router.get("/payment-history")
async def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.payment_history(current_user, page, limit), "Transactions fetched successfully")


@router.get("/invoices/{transaction_id}/download")
async def download_invoice(
    transaction_id: int,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.invoice_download(current_user, transaction_id), "Invoice retrieved successfully")


# ============================================================================
# PAYMENT
# ============================================================================


@router.post("/create-portal-session")
async def create_portal_session(
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.create_portal_session(current_user), "Portal session created")


@router.post("/apply-coupon")
async def apply_coupon(
    data: CouponApply,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.apply_coupon(current_user, data), "Coupon applied successfully")


@router.get("/payment-methods")
async def payment_methods(
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.list_payment_methods(current_user), "Payment methods retrieved")


@router.post("/update-payment-method")
async def update_payment_method(
    data: PaymentMethodUpdate,
    current_user: User = Depends(get_current_user),
    service: BillingService = Depends(get_billing_service),
):
    return envelope(service.update_payment_method(current_user, data), "Payment method updated successfully")


# ============================================================================
# WEBHOOK
# ============================================================================


@router.post("/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    if not STRIPE_WEBHOOK_SECRET:
        raise api_error(503, "Stripe webhook secret is not configured", "STRIPE_NOT_CONFIGURED")

    signature = request.headers.get("stripe-signature")
    if not signature:
        raise api_error(400, "Missing Stripe signature header")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError as exc:
        logger.warning("🚫 Stripe webhook signature verification failed")
        raise api_error(400, "Invalid Stripe signature", "INVALID_WEBHOOK_SIGNATURE") from exc
    except ValueError as exc:
        raise api_error(400, "Invalid Stripe payload") from exc

    # Handlers work on the verified raw JSON
    event_type = dispatch_event(db, json.loads(payload))
    return {"received": True, "type": event_type}
