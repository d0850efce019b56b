"""
Amazon Selling Partner API integration
Login with Amazon consent, LWA token refresh and read-only orders/inventory
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user, resolve_target_user
from ...config import (
    AMAZON_APPLICATION_ID,
    AMAZON_CLIENT_ID,
    AMAZON_CLIENT_SECRET,
    AMAZON_REDIRECT_URI,
    AMAZON_REGION_ENDPOINT,
    AMAZON_SANDBOX,
)
from ...crypto import decrypt_token, encrypt_token
from ...database import get_db
from ...models import User
from ...models_integrations import AmazonSeller
from ...responses import api_error, envelope
from .common import (
    create_oauth_state,
    needs_refresh,
    provider_request,
    read_oauth_state,
    refresh_lock,
    require_configured,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/amazon", tags=["Amazon"])

PROVIDER = "Amazon"
AMAZON_CONSENT_URL = "https://sellercentral.amazon.com/apps/authorize/consent"
AMAZON_TOKEN_URL = "https://api.amazon.com/auth/o2/token"
AMAZON_SANDBOX_ENDPOINT = "https://sandbox.sellingpartnerapi-na.amazon.com"
DEFAULT_MARKETPLACE_ID = "ATVPDKIKX0DER"  # amazon.com (US)


class AmazonCallback(BaseModel):
    spapi_oauth_code: Optional[str] = None
    state: Optional[str] = None
    selling_partner_id: Optional[str] = None


def api_endpoint() -> str:
    return AMAZON_SANDBOX_ENDPOINT if AMAZON_SANDBOX else AMAZON_REGION_ENDPOINT


async def request_lwa_token(form: dict) -> dict:
    return await provider_request(
        PROVIDER,
        "POST",
        AMAZON_TOKEN_URL,
        data={**form, "client_id": AMAZON_CLIENT_ID, "client_secret": AMAZON_CLIENT_SECRET},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def _store_tokens(seller: AmazonSeller, token_data: dict) -> str:
    access_token = token_data.get("access_token")
    if not access_token:
        raise api_error(502, "Invalid token response from Amazon", "UPSTREAM_ERROR")
    seller.access_token = encrypt_token(access_token)
    if token_data.get("refresh_token"):
        seller.refresh_token = encrypt_token(token_data["refresh_token"])
    seller.token_expires_at = datetime.utcnow() + timedelta(seconds=token_data.get("expires_in", 3600))
    return access_token


async def get_valid_access_token(seller: AmazonSeller, db: Session) -> str:
    """LWA access tokens last an hour; refresh under the per-seller lock"""
    if not needs_refresh(seller.token_expires_at):
        return decrypt_token(seller.access_token)

    async with refresh_lock("amazon", seller.id):
        db.refresh(seller)
        if not needs_refresh(seller.token_expires_at):
            return decrypt_token(seller.access_token)
        if not seller.refresh_token:
            raise api_error(401, "Amazon authorization expired. Please reconnect.", "AMAZON_REAUTH_REQUIRED")

        logger.info(f"🔄 Refreshing Amazon token for seller {seller.selling_partner_id}")
        try:
            token_data = await request_lwa_token(
                {"grant_type": "refresh_token", "refresh_token": decrypt_token(seller.refresh_token)}
            )
        except Exception as e:
            seller.last_error = f"Token refresh failed: {e}"
            db.commit()
            raise
        access_token = _store_tokens(seller, token_data)
        seller.last_error = None
        db.commit()
        return access_token


def get_seller(db: Session, user: User) -> AmazonSeller:
    seller = db.query(AmazonSeller).filter(AmazonSeller.user_id == user.id, AmazonSeller.is_active.is_(True)).first()
    if not seller or not seller.access_token:
        raise api_error(404, "Amazon seller account not connected", "AMAZON_NOT_CONNECTED")
    return seller


async def sp_api_get(seller: AmazonSeller, db: Session, path: str, params: dict) -> dict:
    access_token = await get_valid_access_token(seller, db)
    return await provider_request(
        PROVIDER,
        "GET",
        f"{api_endpoint()}{path}",
        headers={"x-amz-access-token": access_token, "Accept": "application/json"},
        params=params,
    )


def _marketplace_ids(seller: AmazonSeller, requested: Optional[str]) -> str:
    if requested:
        return requested
    return ",".join(seller.marketplace_ids or [DEFAULT_MARKETPLACE_ID])


# ============================================================================
# AUTH
# ============================================================================


@router.get("/auth/authorize")
async def authorize(current_user: User = Depends(get_current_user)):
    require_configured(PROVIDER, AMAZON_APPLICATION_ID, AMAZON_CLIENT_ID, AMAZON_CLIENT_SECRET)

    state = create_oauth_state("amazon", current_user.id)
    params = {"application_id": AMAZON_APPLICATION_ID, "state": state, "redirect_uri": AMAZON_REDIRECT_URI}
    if AMAZON_SANDBOX:
        # Draft apps only authorize with version=beta
        params["version"] = "beta"
    auth_url = f"{AMAZON_CONSENT_URL}?{urlencode(params)}"
    logger.info(f"🔗 Amazon OAuth initiated for {current_user.email}")
    return envelope({"authUrl": auth_url, "state": state}, "Authorization URL generated successfully")


@router.api_route("/auth/callback", methods=["GET", "POST"])
async def oauth_callback(
    body: Optional[AmazonCallback] = None,
    spapi_oauth_code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    selling_partner_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Accepts the consent redirect params either as query string or JSON body"""
    require_configured(PROVIDER, AMAZON_APPLICATION_ID, AMAZON_CLIENT_ID, AMAZON_CLIENT_SECRET)

    body = body or AmazonCallback()
    code = spapi_oauth_code or body.spapi_oauth_code
    state = state or body.state
    partner_id = selling_partner_id or body.selling_partner_id
    if not code:
        raise api_error(400, "Missing required parameters: spapi_oauth_code")

    user = db.get(User, read_oauth_state("amazon", state))
    if not user:
        raise api_error(404, "User not found")

    token_data = await request_lwa_token({"grant_type": "authorization_code", "code": code, "redirect_uri": AMAZON_REDIRECT_URI})

    seller = db.query(AmazonSeller).filter(AmazonSeller.user_id == user.id).first()
    if seller is None:
        seller = AmazonSeller(user_id=user.id, marketplace_ids=[DEFAULT_MARKETPLACE_ID])
        db.add(seller)

    _store_tokens(seller, token_data)
    seller.selling_partner_id = partner_id or seller.selling_partner_id
    seller.is_sandbox = AMAZON_SANDBOX
    seller.is_active = True
    seller.last_error = None
    db.commit()

    logger.info(f"✅ Amazon seller {seller.selling_partner_id} connected for {user.email}")
    return envelope(
        {"connected": True, "sellingPartnerId": seller.selling_partner_id, "marketplaceIds": seller.marketplace_ids},
        "Amazon connected successfully",
    )


@router.get("/auth/status")
async def connection_status(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    seller = db.query(AmazonSeller).filter(AmazonSeller.user_id == target.id, AmazonSeller.is_active.is_(True)).first()
    if not seller:
        return envelope({"connected": False})
    return envelope(
        {
            "connected": True,
            "sellingPartnerId": seller.selling_partner_id,
            "marketplaceIds": seller.marketplace_ids or [],
            "isSandbox": seller.is_sandbox,
            "tokenExpiresAt": seller.token_expires_at,
            "lastError": seller.last_error,
        }
    )


@router.delete("/auth/disconnect")
async def disconnect(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    seller = get_seller(db, target)
    seller.is_active = False
    seller.access_token = None
    seller.refresh_token = None
    seller.token_expires_at = None
    db.commit()
    logger.info(f"🔌 Amazon disconnected for {target.email}")
    return envelope(message="Amazon disconnected successfully")


# ============================================================================
# DATA
# ============================================================================


@router.get("/orders")
async def list_orders(
    createdAfter: Optional[datetime] = Query(None),
    marketplaceIds: Optional[str] = Query(None),
    maxResults: int = Query(50, ge=1, le=100),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    """Orders from the last 30 days unless createdAfter is given"""
    seller = get_seller(db, target)
    created_after = createdAfter or datetime.utcnow() - timedelta(days=30)
    data = await sp_api_get(
        seller,
        db,
        "/orders/v0/orders",
        {
            "MarketplaceIds": _marketplace_ids(seller, marketplaceIds),
            "CreatedAfter": created_after.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "MaxResultsPerPage": maxResults,
        },
    )
    return envelope(data.get("payload", data))


@router.get("/inventory")
async def inventory_summaries(
    marketplaceIds: Optional[str] = Query(None),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    seller = get_seller(db, target)
    marketplace_ids = _marketplace_ids(seller, marketplaceIds)
    data = await sp_api_get(
        seller,
        db,
        "/fba/inventory/v1/summaries",
        {
            "details": "true",
            "granularityType": "Marketplace",
            "granularityId": marketplace_ids.split(",")[0],
            "marketplaceIds": marketplace_ids,
        },
    )
    return envelope(data.get("payload", data))
