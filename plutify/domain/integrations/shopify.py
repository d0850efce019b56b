"""
Shopify integration
OAuth install for a client's store and read access to its orders. Shopify
offline tokens do not expire, so there is no refresh step.
"""

import hashlib
import hmac
import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, resolve_target_user
from ...config import SHOPIFY_API_KEY, SHOPIFY_API_SECRET, SHOPIFY_API_VERSION, SHOPIFY_REDIRECT_URI, SHOPIFY_SCOPES
from ...crypto import decrypt_token, encrypt_token
from ...database import get_db
from ...models import User
from ...models_integrations import ShopifyStore
from ...responses import api_error, envelope
from ...webhook_security import constant_time_compare
from .common import create_oauth_state, provider_request, read_oauth_state, require_configured

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/shopify", tags=["Shopify"])

PROVIDER = "Shopify"
SHOP_DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*\.myshopify\.com$")


def sanitize_shop(shop: Optional[str]) -> Optional[str]:
    """'My-Store' or 'https://my-store.myshopify.com/' -> 'my-store.myshopify.com'; None if invalid"""
    if not shop:
        return None
    shop = shop.strip().lower()
    shop = re.sub(r"^https?://", "", shop).rstrip("/")
    if "." not in shop:
        shop = f"{shop}.myshopify.com"
    return shop if SHOP_DOMAIN_PATTERN.match(shop) else None


def verify_callback_hmac(query_params: dict, secret: str) -> bool:
    """Shopify signs the callback query string (minus hmac) with the app secret"""
    received = query_params.get("hmac")
    if not received:
        return False
    message = "&".join(f"{key}={value}" for key, value in sorted(query_params.items()) if key not in ("hmac", "signature"))
    expected = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
    return constant_time_compare(expected, received)


async def exchange_code(shop: str, code: str) -> dict:
    return await provider_request(
        PROVIDER,
        "POST",
        f"https://{shop}/admin/oauth/access_token",
        json={"client_id": SHOPIFY_API_KEY, "client_secret": SHOPIFY_API_SECRET, "code": code},
    )


def get_store(db: Session, user: User) -> ShopifyStore:
    store = db.query(ShopifyStore).filter(ShopifyStore.user_id == user.id, ShopifyStore.is_active.is_(True)).first()
    if not store or not store.access_token:
        raise api_error(404, "Shopify store not connected", "SHOPIFY_NOT_CONNECTED")
    return store


async def shopify_get(store: ShopifyStore, db: Session, resource: str, params: Optional[dict] = None) -> dict:
    data = await provider_request(
        PROVIDER,
        "GET",
        f"https://{store.shop_domain}/admin/api/{SHOPIFY_API_VERSION}/{resource}.json",
        headers={"X-Shopify-Access-Token": decrypt_token(store.access_token), "Accept": "application/json"},
        params=params,
    )
    store.last_synced_at = datetime.utcnow()
    db.commit()
    return data


# ============================================================================
# AUTH
# ============================================================================


@router.get("/auth/authorize")
async def authorize(shop: str = Query(...), current_user: User = Depends(get_current_user)):
    require_configured(PROVIDER, SHOPIFY_API_KEY, SHOPIFY_API_SECRET)

    sanitized = sanitize_shop(shop)
    if not sanitized:
        raise api_error(400, "Invalid shop domain. Please provide a valid .myshopify.com domain")

    state = create_oauth_state("shopify", current_user.id)
    auth_url = f"https://{sanitized}/admin/oauth/authorize?" + urlencode(
        {
            "client_id": SHOPIFY_API_KEY,
            "scope": SHOPIFY_SCOPES,
            "redirect_uri": SHOPIFY_REDIRECT_URI,
            "state": state,
        }
    )
    logger.info(f"🔗 Shopify OAuth initiated for {current_user.email} ({sanitized})")
    return envelope({"authUrl": auth_url, "state": state, "shop": sanitized}, "Authorization URL generated successfully")


@router.api_route("/auth/callback", methods=["GET", "POST"])
async def oauth_callback(request: Request, db: Session = Depends(get_db)):
    require_configured(PROVIDER, SHOPIFY_API_KEY, SHOPIFY_API_SECRET)

    params = dict(request.query_params)
    shop = sanitize_shop(params.get("shop"))
    code = params.get("code")
    if not shop or not code:
        raise api_error(400, "Missing required parameters: shop, code")

    if not verify_callback_hmac(params, SHOPIFY_API_SECRET):
        logger.warning(f"🚫 Shopify callback HMAC mismatch for {shop}")
        raise api_error(401, "Invalid Shopify signature", "INVALID_WEBHOOK_SIGNATURE")

    user = db.get(User, read_oauth_state("shopify", params.get("state")))
    if not user:
        raise api_error(404, "User not found")

    token_data = await exchange_code(shop, code)
    access_token = token_data.get("access_token")
    if not access_token:
        raise api_error(502, "Invalid token response from Shopify", "UPSTREAM_ERROR")

    store = db.query(ShopifyStore).filter(ShopifyStore.user_id == user.id).first()
    if store is None:
        store = ShopifyStore(user_id=user.id, shop_domain=shop)
        db.add(store)

    store.shop_domain = shop
    store.access_token = encrypt_token(access_token)
    store.scope = token_data.get("scope")
    store.is_active = True
    db.commit()

    try:
        shop_info = (await shopify_get(store, db, "shop")).get("shop", {})
        store.shop_name = shop_info.get("name")
        store.shop_email = shop_info.get("email")
        store.shop_currency = shop_info.get("currency")
        db.commit()
    except Exception as e:
        logger.warning(f"⚠️ Failed to fetch Shopify shop info for {shop}: {e}")

    logger.info(f"✅ Shopify store {shop} connected for {user.email}")
    return envelope({"connected": True, "shopDomain": store.shop_domain, "shopName": store.shop_name}, "Shopify connected successfully")


@router.get("/auth/status")
async def connection_status(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    store = db.query(ShopifyStore).filter(ShopifyStore.user_id == target.id, ShopifyStore.is_active.is_(True)).first()
    if not store:
        return envelope({"connected": False})
    return envelope(
        {
            "connected": True,
            "shopDomain": store.shop_domain,
            "shopName": store.shop_name,
            "shopEmail": store.shop_email,
            "currency": store.shop_currency,
            "scope": store.scope,
            "lastSync": store.last_synced_at,
        }
    )


@router.delete("/auth/disconnect")
async def disconnect(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    store = get_store(db, target)
    store.is_active = False
    store.access_token = None
    db.commit()
    logger.info(f"🔌 Shopify disconnected for {target.email}")
    return envelope(message="Shopify disconnected successfully")


# ============================================================================
# DATA
# ============================================================================


@router.get("/orders")
async def list_orders(
    status: str = Query("any"),
    limit: int = Query(50, ge=1, le=250),
    createdAtMin: Optional[datetime] = Query(None),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    store = get_store(db, target)
    params = {"status": status, "limit": limit}
    if createdAtMin:
        params["created_at_min"] = createdAtMin.isoformat()
    data = await shopify_get(store, db, "orders", params)
    return envelope(data.get("orders", []))
