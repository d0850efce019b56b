import asyncio
import hashlib
import hmac
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException

from plutify.crypto import decrypt_token, encrypt_token
from plutify.domain.integrations import amazon, common, quickbooks, shopify
from plutify.models_integrations import AmazonSeller, QuickBooksCompany


@pytest.fixture
def quickbooks_configured(monkeypatch):
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_ID", "qb-client")
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_SECRET", "qb-secret")


@pytest.fixture
def fresh_locks(monkeypatch):
    monkeypatch.setattr(common, "_refresh_locks", {})


def _company(db_session, user, expires_in=timedelta(hours=1)):
    company = QuickBooksCompany(
        user_id=user.id,
        realm_id="9130",
        company_name="Carla Co Books",
        access_token=encrypt_token("access-1"),
        refresh_token=encrypt_token("refresh-1"),
        token_expires_at=datetime.utcnow() + expires_in,
        is_active=True,
    )
    db_session.add(company)
    db_session.commit()
    return company


# ============================================================================
# OAUTH STATE + HELPERS
# ============================================================================


def test_oauth_state_roundtrip():
    state = common.create_oauth_state("quickbooks", 42)
    assert common.read_oauth_state("quickbooks", state) == 42


def test_oauth_state_is_bound_to_provider():
    state = common.create_oauth_state("shopify", 42)
    with pytest.raises(HTTPException) as exc:
        common.read_oauth_state("quickbooks", state)
    assert exc.value.status_code == 400
    assert exc.value.detail["code"] == "INVALID_OAUTH_STATE"


def test_oauth_state_rejects_garbage():
    for state in (None, "", "not-a-jwt"):
        with pytest.raises(HTTPException):
            common.read_oauth_state("amazon", state)


def test_needs_refresh_margin():
    now = datetime(2026, 1, 1, 12, 0)
    assert common.needs_refresh(None, now)
    assert common.needs_refresh(now + timedelta(minutes=4), now)
    assert not common.needs_refresh(now + timedelta(minutes=10), now)


def test_refresh_lock_is_per_account(fresh_locks):
    assert common.refresh_lock("quickbooks", 1) is common.refresh_lock("quickbooks", 1)
    assert common.refresh_lock("quickbooks", 1) is not common.refresh_lock("amazon", 1)


# ============================================================================
# QUICKBOOKS
# ============================================================================


def test_unconfigured_provider(api_client, client_headers, monkeypatch):
    monkeypatch.setattr(quickbooks, "QUICKBOOKS_CLIENT_ID", None)
    response = api_client.get("/api/quickbooks/auth/authorize", headers=client_headers)
    assert response.status_code == 503
    assert response.json()["error"] == "PROVIDER_NOT_CONFIGURED"


def test_quickbooks_connect_flow(api_client, db_session, client_user, client_headers, quickbooks_configured, monkeypatch):
    async def fake_exchange(code):
        assert code == "auth-code"
        return {"access_token": "qb-access", "refresh_token": "qb-refresh", "expires_in": 3600}

    async def fake_request(provider, method, url, **kwargs):
        return {"CompanyInfo": {"CompanyName": "Carla Co Books"}}

    monkeypatch.setattr(quickbooks, "exchange_code", fake_exchange)
    monkeypatch.setattr(quickbooks, "provider_request", fake_request)

    authorize = api_client.get("/api/quickbooks/auth/authorize", headers=client_headers).json()["data"]
    assert "state=" in authorize["authUrl"]

    callback = api_client.get(
        "/api/quickbooks/auth/callback",
        params={"code": "auth-code", "state": authorize["state"], "realmId": "9130"},
    )
    assert callback.status_code == 200
    assert callback.json()["data"] == {"connected": True, "realmId": "9130", "companyName": "Carla Co Books"}

    company = db_session.query(QuickBooksCompany).filter(QuickBooksCompany.user_id == client_user.id).one()
    assert company.access_token != "qb-access"
    assert decrypt_token(company.access_token) == "qb-access"

    status = api_client.get("/api/quickbooks/auth/status", headers=client_headers).json()["data"]
    assert status["connected"] is True


def test_callback_rejects_bad_state(api_client, quickbooks_configured):
    response = api_client.get(
        "/api/quickbooks/auth/callback", params={"code": "c", "state": "forged", "realmId": "1"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_OAUTH_STATE"


def test_callback_requires_parameters(api_client, quickbooks_configured):
    response = api_client.get("/api/quickbooks/auth/callback", params={"code": "c"})
    assert response.status_code == 400
    assert response.json()["message"] == "Missing required parameters: state, realmId"


def test_admin_reads_client_integration(api_client, db_session, client_user, admin_headers, staff_headers):
    _company(db_session, client_user)

    as_admin = api_client.get(f"/api/quickbooks/auth/status?clientId={client_user.id}", headers=admin_headers)
    assert as_admin.json()["data"]["companyName"] == "Carla Co Books"

    as_staff = api_client.get(f"/api/quickbooks/auth/status?clientId={client_user.id}", headers=staff_headers)
    assert as_staff.status_code == 403


def test_admin_override_requires_client(api_client, admin_headers, staff_user):
    response = api_client.get(f"/api/quickbooks/auth/status?clientId={staff_user.id}", headers=admin_headers)
    assert response.status_code == 400
    assert api_client.get("/api/quickbooks/auth/status?clientId=9999", headers=admin_headers).status_code == 404


def test_client_cannot_override_target(api_client, db_session, client_user, other_client, client_headers):
    _company(db_session, other_client)
    data = api_client.get(f"/api/quickbooks/auth/status?clientId={other_client.id}", headers=client_headers).json()["data"]
    assert data == {"connected": False}


def test_disconnect_quickbooks(api_client, db_session, client_user, client_headers):
    assert api_client.delete("/api/quickbooks/auth/disconnect", headers=client_headers).status_code == 404

    _company(db_session, client_user)
    assert api_client.delete("/api/quickbooks/auth/disconnect", headers=client_headers).status_code == 200
    assert api_client.get("/api/quickbooks/auth/status", headers=client_headers).json()["data"] == {"connected": False}


def test_concurrent_refresh_hits_provider_once(db_session, client_user, fresh_locks, monkeypatch):
    company = _company(db_session, client_user, expires_in=timedelta(minutes=1))
    calls = []

    async def fake_refresh(refresh_token):
        calls.append(refresh_token)
        await asyncio.sleep(0)
        return {"access_token": "access-2", "refresh_token": "refresh-2", "expires_in": 3600}

    monkeypatch.setattr(quickbooks, "exchange_refresh_token", fake_refresh)

    async def both():
        return await asyncio.gather(
            quickbooks.get_valid_access_token(company, db_session),
            quickbooks.get_valid_access_token(company, db_session),
        )

    assert asyncio.run(both()) == ["access-2", "access-2"]
    assert calls == ["refresh-1"]
    assert decrypt_token(company.refresh_token) == "refresh-2"


def test_fresh_token_is_not_refreshed(db_session, client_user, monkeypatch):
    company = _company(db_session, client_user)

    async def fail(refresh_token):
        raise AssertionError("refresh should not be called")

    monkeypatch.setattr(quickbooks, "exchange_refresh_token", fail)
    assert asyncio.run(quickbooks.get_valid_access_token(company, db_session)) == "access-1"


# ============================================================================
# SHOPIFY
# ============================================================================


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("My-Store", "my-store.myshopify.com"),
        ("https://my-store.myshopify.com/", "my-store.myshopify.com"),
        ("evil.com", None),
        ("", None),
    ],
)
def test_sanitize_shop(raw, expected):
    assert shopify.sanitize_shop(raw) == expected


def test_verify_callback_hmac():
    params = {"code": "abc", "shop": "my-store.myshopify.com", "state": "s", "timestamp": "1700000000"}
    message = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
    digest = hmac.new(b"app-secret", message.encode(), hashlib.sha256).hexdigest()

    assert shopify.verify_callback_hmac({**params, "hmac": digest}, "app-secret")
    assert not shopify.verify_callback_hmac({**params, "hmac": digest}, "other-secret")
    assert not shopify.verify_callback_hmac(params, "app-secret")


def test_shopify_callback_rejects_bad_signature(api_client, monkeypatch):
    monkeypatch.setattr(shopify, "SHOPIFY_API_KEY", "key")
    monkeypatch.setattr(shopify, "SHOPIFY_API_SECRET", "secret")

    response = api_client.get(
        "/api/shopify/auth/callback",
        params={"shop": "my-store", "code": "abc", "state": "s", "hmac": "deadbeef"},
    )
    assert response.status_code == 401


def test_shopify_authorize_rejects_invalid_shop(api_client, client_headers, monkeypatch):
    monkeypatch.setattr(shopify, "SHOPIFY_API_KEY", "key")
    monkeypatch.setattr(shopify, "SHOPIFY_API_SECRET", "secret")

    response = api_client.get("/api/shopify/auth/authorize", params={"shop": "evil.com"}, headers=client_headers)
    assert response.status_code == 400


# ============================================================================
# AMAZON
# ============================================================================


def test_amazon_connect_flow(api_client, db_session, client_user, client_headers, monkeypatch):
    monkeypatch.setattr(amazon, "AMAZON_APPLICATION_ID", "amzn1.sp.solution.app")
    monkeypatch.setattr(amazon, "AMAZON_CLIENT_ID", "lwa-client")
    monkeypatch.setattr(amazon, "AMAZON_CLIENT_SECRET", "lwa-secret")

    async def fake_lwa(form):
        assert form["grant_type"] == "authorization_code"
        return {"access_token": "Atza|one", "refresh_token": "Atzr|one", "expires_in": 3600}

    monkeypatch.setattr(amazon, "request_lwa_token", fake_lwa)

    state = api_client.get("/api/amazon/auth/authorize", headers=client_headers).json()["data"]["state"]
    response = api_client.get(
        "/api/amazon/auth/callback",
        params={"spapi_oauth_code": "code", "state": state, "selling_partner_id": "A1SELLER"},
    )
    assert response.status_code == 200
    assert response.json()["data"]["sellingPartnerId"] == "A1SELLER"

    seller = db_session.query(AmazonSeller).filter(AmazonSeller.user_id == client_user.id).one()
    assert decrypt_token(seller.refresh_token) == "Atzr|one"


def test_amazon_expired_without_refresh_token(db_session, client_user, fresh_locks):
    seller = AmazonSeller(
        user_id=client_user.id,
        access_token=encrypt_token("Atza|old"),
        token_expires_at=datetime.utcnow() - timedelta(minutes=1),
        is_active=True,
    )
    db_session.add(seller)
    db_session.commit()

    with pytest.raises(HTTPException) as exc:
        asyncio.run(amazon.get_valid_access_token(seller, db_session))
    assert exc.value.status_code == 401
    assert exc.value.detail["code"] == "AMAZON_REAUTH_REQUIRED"
