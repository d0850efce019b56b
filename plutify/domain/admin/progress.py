"""Per-client progress summary (onboarding, subscription, integrations) for admin views"""

from sqlalchemy.orm import Session

from ...models_billing import UserSubscription
from ...models_integrations import AmazonSeller, QuickBooksCompany, ShopifyStore
from ...models_onboarding import Onboarding

SUBSCRIPTION_PROGRESS = {
    "active": "active",
    "trialing": "trial",
    "canceled": "expired",
    "cancelled": "expired",
    "expired": "expired",
}


def _default_progress() -> dict:
    return {
        "onboarding": {"completed": False, "step": None},
        "subscription": {"status": "none", "planName": None, "billingPeriod": None, "expiresAt": None},
        "integrations": {"amazon": False, "shopify": False, "quickbooks": False},
    }


def clients_progress(db: Session, client_ids: list[int]) -> dict[int, dict]:
    """Bulk variant: one query per table rather than per client"""
    progress = {client_id: _default_progress() for client_id in client_ids}
    if not client_ids:
        return progress

    for onboarding in db.query(Onboarding).filter(Onboarding.user_id.in_(client_ids)):
        progress[onboarding.user_id]["onboarding"] = {
            "completed": onboarding.completed,
            "step": onboarding.current_step,
        }

    for subscription in db.query(UserSubscription).filter(UserSubscription.user_id.in_(client_ids)):
        progress[subscription.user_id]["subscription"] = {
            "status": SUBSCRIPTION_PROGRESS.get(subscription.status, "none"),
            "planName": subscription.plan.name if subscription.plan else None,
            "billingPeriod": subscription.billing_period,
            "expiresAt": subscription.current_period_end,
        }

    for model, key in ((AmazonSeller, "amazon"), (ShopifyStore, "shopify"), (QuickBooksCompany, "quickbooks")):
        rows = db.query(model.user_id).filter(model.user_id.in_(client_ids), model.is_active.is_(True))
        for (user_id,) in rows:
            progress[user_id]["integrations"][key] = True

    return progress


def client_progress(db: Session, client_id: int) -> dict:
    return clients_progress(db, [client_id])[client_id]
