import json
from types import SimpleNamespace

import pytest
import stripe

from plutify.domain.billing import router as billing_router
from plutify.domain.billing.service import normalize_status, subscription_period
from plutify.domain.billing.webhooks import dispatch_event
from plutify.models import Notification
from plutify.models_billing import SubscriptionPlan, Transaction, UserSubscription

WEBHOOK_SECRET = "whsec_test"


@pytest.fixture
def stripe_enabled(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", "sk_test_123")


@pytest.fixture
def plan(db_session):
    plan = SubscriptionPlan(
        name="Growth",
        price_per_month=299,
        price_per_year=2990,
        features=["Monthly bookkeeping"],
        stripe_product_id="prod_1",
        stripe_price_id_monthly="price_m",
        stripe_price_id_yearly="price_y",
        is_active=True,
    )
    db_session.add(plan)
    db_session.commit()
    return plan


@pytest.fixture
def subscription(db_session, client_user, plan):
    sub = UserSubscription(
        user_id=client_user.id,
        subscription_plan_id=plan.id,
        stripe_customer_id="cus_1",
        stripe_subscription_id="sub_1",
        status="active",
    )
    db_session.add(sub)
    db_session.commit()
    return sub


def _invoice(**overrides):
    invoice = {
        "id": "in_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "amount_paid": 29900,
        "amount_due": 29900,
        "currency": "usd",
        "hosted_invoice_url": "https://invoice.stripe.com/i/in_1",
        "invoice_pdf": "https://invoice.stripe.com/i/in_1/pdf",
        "lines": {"data": [{"description": "Growth", "period": {"start": 1767225600, "end": 1769904000}}]},
    }
    invoice.update(overrides)
    return invoice


# ============================================================================
# HELPERS
# ============================================================================


def test_normalize_status():
    assert normalize_status("canceled") == "cancelled"
    assert normalize_status("active") == "active"
    assert normalize_status(None) == "incomplete"


def test_subscription_period_falls_back_to_items():
    start, end = subscription_period({"items": {"data": [{"current_period_start": 1767225600, "current_period_end": 1769904000}]}})
    assert start.year == 2026
    assert end > start


# ============================================================================
# API
# ============================================================================


def test_billing_requires_stripe(api_client, client_headers, monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)
    response = api_client.get("/api/stripe/subscription-plans", headers=client_headers)
    assert response.status_code == 503
    assert response.json()["error"] == "STRIPE_NOT_CONFIGURED"


def test_list_active_plans(api_client, client_headers, stripe_enabled, plan, db_session):
    db_session.add(SubscriptionPlan(name="Legacy", price_per_month=99, is_active=False))
    db_session.commit()

    data = api_client.get("/api/stripe/subscription-plans", headers=client_headers).json()["data"]
    assert [p["name"] for p in data] == ["Growth"]


def test_create_subscription(api_client, db_session, client_user, client_headers, stripe_enabled, plan, monkeypatch):
    calls = {}

    monkeypatch.setattr(stripe.Customer, "create", lambda **kw: SimpleNamespace(id="cus_new"))
    monkeypatch.setattr(stripe.Customer, "modify", lambda customer_id, **kw: calls.setdefault("modify", customer_id))
    monkeypatch.setattr(stripe.PaymentMethod, "attach", lambda pm, **kw: calls.setdefault("attach", (pm, kw["customer"])))

    def fake_create(**params):
        calls["price"] = params["items"][0]["price"]
        return {
            "id": "sub_new",
            "status": "active",
            "current_period_start": 1767225600,
            "current_period_end": 1769904000,
            "latest_invoice": {"payment_intent": {"client_secret": "pi_secret"}},
        }

    monkeypatch.setattr(stripe.Subscription, "create", fake_create)

    response = api_client.post(
        "/api/stripe/create-subscription",
        headers=client_headers,
        json={"planId": plan.id, "billingPeriod": "yearly", "paymentMethodId": "pm_card"},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "active"
    assert data["clientSecret"] == "pi_secret"
    assert calls == {"attach": ("pm_card", "cus_new"), "modify": "cus_new", "price": "price_y"}

    local = db_session.query(UserSubscription).filter(UserSubscription.user_id == client_user.id).one()
    assert local.stripe_customer_id == "cus_new"
    assert db_session.query(Notification).filter(Notification.type == "subscription_created").count() == 1


def test_second_subscription_rejected(api_client, client_headers, stripe_enabled, plan, subscription):
    response = api_client.post(
        "/api/stripe/create-subscription",
        headers=client_headers,
        json={"planId": plan.id, "paymentMethodId": "pm_card"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "User already has an active subscription"


def test_card_declined(api_client, client_headers, stripe_enabled, plan, monkeypatch):
    def declined(**params):
        raise stripe.CardError("Your card was declined.", None, "card_declined")

    monkeypatch.setattr(stripe.Customer, "create", lambda **kw: SimpleNamespace(id="cus_new"))
    monkeypatch.setattr(stripe.Customer, "modify", lambda *a, **kw: None)
    monkeypatch.setattr(stripe.PaymentMethod, "attach", lambda *a, **kw: None)
    monkeypatch.setattr(stripe.Subscription, "create", declined)

    response = api_client.post(
        "/api/stripe/create-subscription",
        headers=client_headers,
        json={"planId": plan.id, "paymentMethodId": "pm_card"},
    )
    assert response.status_code == 402
    assert response.json()["error"] == "CARD_DECLINED"


def test_cancel_at_period_end(api_client, client_headers, stripe_enabled, subscription, monkeypatch):
    monkeypatch.setattr(
        stripe.Subscription,
        "modify",
        lambda sub_id, **kw: {"id": sub_id, "status": "active", "cancel_at_period_end": kw["cancel_at_period_end"]},
    )

    response = api_client.post("/api/stripe/cancel-subscription", headers=client_headers, json={})
    assert response.status_code == 200
    assert response.json()["data"]["cancelAtPeriodEnd"] is True
    assert response.json()["message"] == "Subscription will be cancelled at the end of the billing period"


def test_cancel_without_subscription(api_client, client_headers, stripe_enabled):
    assert api_client.post("/api/stripe/cancel-subscription", headers=client_headers, json={}).status_code == 404


def test_plan_management_is_admin_only(api_client, client_headers, stripe_enabled):
    response = api_client.post(
        "/api/stripe/subscription-plans",
        headers=client_headers,
        json={"name": "x", "features": ["a"], "pricePerMonth": 1},
    )
    assert response.status_code == 403


def test_payment_history_and_invoice(api_client, db_session, client_headers, stripe_enabled, subscription):
    dispatch_event(db_session, {"type": "invoice.payment_succeeded", "data": {"object": _invoice()}})

    history = api_client.get("/api/stripe/payment-history", headers=client_headers).json()["data"]
    assert history["pagination"]["total"] == 1
    (transaction,) = history["transactions"]
    assert transaction["amount"] == 299.0

    invoice = api_client.get(f"/api/stripe/invoices/{transaction['id']}/download", headers=client_headers).json()["data"]
    assert invoice["invoiceUrl"] == "https://invoice.stripe.com/i/in_1"


# ============================================================================
# WEBHOOK
# ============================================================================


def test_webhook_requires_secret(api_client, monkeypatch):
    monkeypatch.setattr(billing_router, "STRIPE_WEBHOOK_SECRET", None)
    assert api_client.post("/api/stripe/webhook", content=b"{}").status_code == 503


def test_webhook_requires_signature(api_client, monkeypatch):
    monkeypatch.setattr(billing_router, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    assert api_client.post("/api/stripe/webhook", content=b"{}").status_code == 400


def test_webhook_rejects_bad_signature(api_client, monkeypatch):
    monkeypatch.setattr(billing_router, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)

    def reject(payload, signature, secret):
        raise stripe.SignatureVerificationError("No signatures found", signature)

    monkeypatch.setattr(stripe.Webhook, "construct_event", reject)

    response = api_client.post("/api/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_WEBHOOK_SIGNATURE"


def test_webhook_syncs_subscription(api_client, db_session, subscription, monkeypatch):
    monkeypatch.setattr(billing_router, "STRIPE_WEBHOOK_SECRET", WEBHOOK_SECRET)
    monkeypatch.setattr(stripe.Webhook, "construct_event", lambda payload, signature, secret: None)

    event = {
        "type": "customer.subscription.deleted",
        "data": {"object": {"id": "sub_1", "customer": "cus_1", "status": "canceled", "ended_at": 1769904000}},
    }
    response = api_client.post(
        "/api/stripe/webhook", content=json.dumps(event).encode(), headers={"stripe-signature": "t=1,v1=ok"}
    )

    assert response.status_code == 200
    assert response.json() == {"received": True, "type": "customer.subscription.deleted"}
    db_session.expire_all()
    local = db_session.get(UserSubscription, subscription.id)
    assert local.status == "cancelled"
    assert local.cancelled_at is not None


def test_failed_invoice_marks_past_due(db_session, client_user, subscription):
    event_type = dispatch_event(db_session, {"type": "invoice.payment_failed", "data": {"object": _invoice()}})
    assert event_type == "invoice.payment_failed"

    stored = db_session.query(Transaction).one()
    assert stored.status == "failed"
    assert db_session.get(UserSubscription, subscription.id).status == "past_due"
    assert db_session.query(Notification).filter(Notification.recipient_id == client_user.id).one().type == "payment_failed"


def test_invoice_is_upserted(db_session, subscription):
    for _ in range(2):
        dispatch_event(db_session, {"type": "invoice.payment_succeeded", "data": {"object": _invoice()}})
    assert db_session.query(Transaction).count() == 1


def test_invoice_for_unknown_customer_is_ignored(db_session):
    dispatch_event(db_session, {"type": "invoice.payment_succeeded", "data": {"object": _invoice(customer="cus_x")}})
    assert db_session.query(Transaction).count() == 0
