"""
Shared plumbing for the OAuth integrations (QuickBooks, Shopify, Amazon)

- Provider HTTP calls through httpx with one timeout and one error mapping
- Per-account refresh locks so concurrent requests refresh a token once
"""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
from jose import JWTError, jwt

from ...config import JWT_ALGORITHM, SECRET_KEY
from ...responses import api_error

logger = logging.getLogger(__name__)

PROVIDER_TIMEOUT_SECONDS = 30.0
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)

_refresh_locks: dict[tuple[str, int], asyncio.Lock] = {}


def refresh_lock(provider: str, account_id: int) -> asyncio.Lock:
    """One lock per connected account; holders must re-check expiry after acquiring"""
    key = (provider, account_id)
    lock = _refresh_locks.get(key)
    if lock is None:
        lock = _refresh_locks[key] = asyncio.Lock()
    return lock


def needs_refresh(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if expires_at is None:
        return True
    return expires_at <= (now or datetime.utcnow()) + TOKEN_REFRESH_MARGIN


def require_configured(provider: str, *values: Optional[str]) -> None:
    if not all(values):
        logger.error(f"❌ {provider} integration is not configured")
        raise api_error(503, f"{provider} integration is not configured", "PROVIDER_NOT_CONFIGURED")


async def provider_request(provider: str, method: str, url: str, **kwargs) -> Any:
    """Call a provider API and return the decoded JSON body; failures become 502"""
    try:
        async with httpx.AsyncClient(timeout=PROVIDER_TIMEOUT_SECONDS) as client:
            response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(f"❌ {provider} request to {url} failed: {e}")
        raise api_error(502, f"{provider} API request failed", "UPSTREAM_ERROR") from e

    if response.status_code >= 400:
        logger.error(f"❌ {provider} returned {response.status_code}: {response.text[:300]}")
        raise api_error(
            502,
            f"{provider} API request failed",
            "UPSTREAM_ERROR",
            upstreamStatus=response.status_code,
        )

    if not response.content:
        return {}
    return response.json()


# ============================================================================
# OAUTH STATE
# ============================================================================

OAUTH_STATE_TTL = timedelta(minutes=15)


def create_oauth_state(provider: str, user_id: int) -> str:
    """Signed, short-lived state carrying the connecting user; the callback needs no session"""
    payload = {
        "sub": str(user_id),
        "provider": provider,
        "nonce": secrets.token_urlsafe(16),
        "exp": datetime.utcnow() + OAUTH_STATE_TTL,
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def read_oauth_state(provider: str, state: Optional[str]) -> int:
    """Return the user id in a state token or raise 400"""
    if not state:
        raise api_error(400, "Missing OAuth state", "INVALID_OAUTH_STATE")
    try:
        payload = jwt.decode(state, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Rejected {provider} OAuth state: {e}")
        raise api_error(400, "Invalid or expired OAuth state", "INVALID_OAUTH_STATE") from e

    if payload.get("provider") != provider or not str(payload.get("sub", "")).isdigit():
        raise api_error(400, "Invalid or expired OAuth state", "INVALID_OAUTH_STATE")
    return int(payload["sub"])
