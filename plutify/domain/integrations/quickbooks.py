"""
QuickBooks Online integration
OAuth connection, token refresh and read-only accounting data for a client's company
"""

import base64
import logging
from datetime import date, datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, resolve_target_user
from ...config import (
    QUICKBOOKS_CLIENT_ID,
    QUICKBOOKS_CLIENT_SECRET,
    QUICKBOOKS_ENVIRONMENT,
    QUICKBOOKS_REDIRECT_URI,
)
from ...crypto import decrypt_token, encrypt_token
from ...database import get_db
from ...models import User
from ...models_integrations import QuickBooksCompany
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
router = APIRouter(prefix="/quickbooks", tags=["QuickBooks"])

PROVIDER = "QuickBooks"
QUICKBOOKS_AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
QUICKBOOKS_TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
QUICKBOOKS_SCOPE = "com.intuit.quickbooks.accounting"
QUICKBOOKS_MINOR_VERSION = "65"

if QUICKBOOKS_ENVIRONMENT == "production":
    QUICKBOOKS_API_BASE_URL = "https://quickbooks.api.intuit.com/v3"
else:
    QUICKBOOKS_API_BASE_URL = "https://sandbox-quickbooks.api.intuit.com/v3"


def get_basic_auth_header() -> str:
    credentials = f"{QUICKBOOKS_CLIENT_ID}:{QUICKBOOKS_CLIENT_SECRET}"
    return base64.b64encode(credentials.encode()).decode()


def _token_headers() -> dict:
    return {
        "Accept": "application/json",
        "Content-Type": "application/x-www-form-urlencoded",
        "Authorization": f"Basic {get_basic_auth_header()}",
    }


async def exchange_code(code: str) -> dict:
    return await provider_request(
        PROVIDER,
        "POST",
        QUICKBOOKS_TOKEN_URL,
        headers=_token_headers(),
        data={"grant_type": "authorization_code", "code": code, "redirect_uri": QUICKBOOKS_REDIRECT_URI},
    )


async def exchange_refresh_token(refresh_token: str) -> dict:
    return await provider_request(
        PROVIDER,
        "POST",
        QUICKBOOKS_TOKEN_URL,
        headers=_token_headers(),
        data={"grant_type": "refresh_token", "refresh_token": refresh_token},
    )


def _store_tokens(company: QuickBooksCompany, token_data: dict) -> str:
    access_token = token_data.get("access_token")
    refresh_token = token_data.get("refresh_token")
    if not access_token or not refresh_token:
        raise api_error(502, "Invalid token response from QuickBooks", "UPSTREAM_ERROR")

    now = datetime.utcnow()
    company.access_token = encrypt_token(access_token)
    company.refresh_token = encrypt_token(refresh_token)
    company.token_expires_at = now + timedelta(seconds=token_data.get("expires_in", 3600))
    refresh_expires_in = token_data.get("x_refresh_token_expires_in")
    if refresh_expires_in:
        company.refresh_token_expires_at = now + timedelta(seconds=refresh_expires_in)
    return access_token


async def get_valid_access_token(company: QuickBooksCompany, db: Session) -> str:
    """Decrypted access token, refreshed first if it expires within five minutes"""
    if not needs_refresh(company.token_expires_at):
        return decrypt_token(company.access_token)

    async with refresh_lock("quickbooks", company.id):
        # Another request may have refreshed while we waited
        db.refresh(company)
        if not needs_refresh(company.token_expires_at):
            return decrypt_token(company.access_token)

        logger.info(f"🔄 Refreshing QuickBooks token for realm {company.realm_id}")
        try:
            token_data = await exchange_refresh_token(decrypt_token(company.refresh_token))
        except Exception as e:
            company.last_error = f"Token refresh failed: {e}"
            db.commit()
            raise
        access_token = _store_tokens(company, token_data)
        company.last_error = None
        db.commit()
        logger.info(f"✅ QuickBooks token refreshed for realm {company.realm_id}")
        return access_token


def get_company(db: Session, user: User) -> QuickBooksCompany:
    company = (
        db.query(QuickBooksCompany)
        .filter(QuickBooksCompany.user_id == user.id, QuickBooksCompany.is_active.is_(True))
        .first()
    )
    if not company:
        raise api_error(404, "QuickBooks not connected", "QUICKBOOKS_NOT_CONNECTED")
    return company


async def quickbooks_get(company: QuickBooksCompany, db: Session, path: str, params: Optional[dict] = None) -> dict:
    access_token = await get_valid_access_token(company, db)
    data = await provider_request(
        PROVIDER,
        "GET",
        f"{QUICKBOOKS_API_BASE_URL}/company/{company.realm_id}/{path}",
        headers={"Accept": "application/json", "Authorization": f"Bearer {access_token}"},
        params={"minorversion": QUICKBOOKS_MINOR_VERSION, **(params or {})},
    )
    company.last_synced_at = datetime.utcnow()
    db.commit()
    return data


async def quickbooks_query(company: QuickBooksCompany, db: Session, entity: str, limit: int, offset: int) -> list:
    statement = f"SELECT * FROM {entity} STARTPOSITION {offset + 1} MAXRESULTS {limit}"
    data = await quickbooks_get(company, db, "query", {"query": statement})
    return data.get("QueryResponse", {}).get(entity, [])


# ============================================================================
# AUTH
# ============================================================================


@router.get("/auth/authorize")
async def authorize(current_user: User = Depends(get_current_user)):
    """Consent URL for connecting a QuickBooks company"""
    require_configured(PROVIDER, QUICKBOOKS_CLIENT_ID, QUICKBOOKS_CLIENT_SECRET)

    state = create_oauth_state("quickbooks", current_user.id)
    auth_url = f"{QUICKBOOKS_AUTH_URL}?" + urlencode(
        {
            "client_id": QUICKBOOKS_CLIENT_ID,
            "response_type": "code",
            "scope": QUICKBOOKS_SCOPE,
            "redirect_uri": QUICKBOOKS_REDIRECT_URI,
            "state": state,
        }
    )
    logger.info(f"🔗 QuickBooks OAuth initiated for {current_user.email} ({QUICKBOOKS_ENVIRONMENT})")
    return envelope({"authUrl": auth_url, "state": state}, "Authorization URL generated successfully")


@router.api_route("/auth/callback", methods=["GET", "POST"])
async def oauth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    realmId: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """Exchange the authorization code and store the encrypted tokens"""
    require_configured(PROVIDER, QUICKBOOKS_CLIENT_ID, QUICKBOOKS_CLIENT_SECRET)
    if error:
        raise api_error(400, f"QuickBooks authorization failed: {error}", "OAUTH_DENIED")

    missing = [name for name, value in (("code", code), ("state", state), ("realmId", realmId)) if not value]
    if missing:
        raise api_error(400, f"Missing required parameters: {', '.join(missing)}")

    user_id = read_oauth_state("quickbooks", state)
    user = db.get(User, user_id)
    if not user:
        raise api_error(404, "User not found")

    token_data = await exchange_code(code)

    company = db.query(QuickBooksCompany).filter(QuickBooksCompany.user_id == user.id).first()
    if company is None:
        company = QuickBooksCompany(user_id=user.id)
        db.add(company)

    company.realm_id = realmId
    company.is_sandbox = QUICKBOOKS_ENVIRONMENT != "production"
    access_token = _store_tokens(company, token_data)
    company.is_active = True
    company.last_error = None
    db.commit()

    try:
        info = await provider_request(
            PROVIDER,
            "GET",
            f"{QUICKBOOKS_API_BASE_URL}/company/{realmId}/companyinfo/{realmId}",
            headers={"Accept": "application/json", "Authorization": f"Bearer {access_token}"},
        )
        company.company_name = info.get("CompanyInfo", {}).get("CompanyName")
        db.commit()
    except Exception as e:
        logger.warning(f"⚠️ Failed to fetch QuickBooks company info: {e}")

    logger.info(f"✅ QuickBooks connected for {user.email} (realm {realmId})")
    return envelope(
        {"connected": True, "realmId": company.realm_id, "companyName": company.company_name},
        "QuickBooks connected successfully",
    )


@router.get("/auth/status")
async def connection_status(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    company = (
        db.query(QuickBooksCompany)
        .filter(QuickBooksCompany.user_id == target.id, QuickBooksCompany.is_active.is_(True))
        .first()
    )
    if not company:
        return envelope({"connected": False})
    return envelope(
        {
            "connected": True,
            "realmId": company.realm_id,
            "companyName": company.company_name,
            "isSandbox": company.is_sandbox,
            "tokenExpiresAt": company.token_expires_at,
            "lastSync": company.last_synced_at,
            "lastError": company.last_error,
        }
    )


@router.delete("/auth/disconnect")
async def disconnect(target: User = Depends(resolve_target_user), db: Session = Depends(get_db)):
    company = get_company(db, target)
    company.is_active = False
    db.commit()
    logger.info(f"🔌 QuickBooks disconnected for {target.email}")
    return envelope(message="QuickBooks disconnected successfully")


# ============================================================================
# DATA
# ============================================================================


@router.get("/invoices")
async def list_invoices(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    company = get_company(db, target)
    return envelope(await quickbooks_query(company, db, "Invoice", limit, offset))


@router.get("/customers")
async def list_customers(
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    company = get_company(db, target)
    return envelope(await quickbooks_query(company, db, "Customer", limit, offset))


@router.get("/reports/profit-loss")
async def profit_and_loss(
    startDate: Optional[date] = Query(None),
    endDate: Optional[date] = Query(None),
    target: User = Depends(resolve_target_user),
    db: Session = Depends(get_db),
):
    """Profit and loss report; defaults to the current year to date"""
    today = date.today()
    start = startDate or date(today.year, 1, 1)
    end = endDate or today
    if start > end:
        raise api_error(400, "startDate must be before endDate")

    company = get_company(db, target)
    report = await quickbooks_get(
        company,
        db,
        "reports/ProfitAndLoss",
        {"start_date": start.isoformat(), "end_date": end.isoformat()},
    )
    return envelope(report)
