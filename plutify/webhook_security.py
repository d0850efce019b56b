"""
Webhook Security Module

Shared-secret verification for inbound Zapier/Ignition callbacks:
- Constant-time comparison (prevents timing attacks)
- Either a plain shared secret header or an HMAC-SHA256 signature of the raw body
- Verification is skipped entirely when no secret is configured
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import Request

from .config import ZAPIER_CALLBACK_SECRET
from .responses import api_error

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Webhook-Secret"
SIGNATURE_HEADER = "X-Webhook-Signature"


def constant_time_compare(a: Optional[str], b: Optional[str]) -> bool:
    """
    Compare two strings in constant time to prevent timing attacks.
    Uses hmac.compare_digest which is designed for this purpose.
    """
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def is_valid_callback(secret: str, raw_body: bytes, shared_secret: Optional[str], signature: Optional[str]) -> bool:
    if constant_time_compare(shared_secret, secret):
        return True
    if signature:
        # Accept both "sha256=<hex>" and bare hex
        received = signature.split("=", 1)[1] if signature.startswith("sha256=") else signature
        return constant_time_compare(compute_hmac_sha256(secret, raw_body), received.lower())
    return False


async def verify_callback_secret(request: Request) -> None:
    """FastAPI dependency guarding the Zapier/Ignition callback endpoints"""
    if not ZAPIER_CALLBACK_SECRET:
        return None

    raw_body = await request.body()
    if is_valid_callback(
        ZAPIER_CALLBACK_SECRET,
        raw_body,
        request.headers.get(SECRET_HEADER),
        request.headers.get(SIGNATURE_HEADER),
    ):
        return None

    client_ip = request.client.host if request.client else "unknown"
    logger.warning(f"🚫 Rejected unsigned callback to {request.url.path} from {client_ip}")
    raise api_error(401, "Invalid webhook signature", "INVALID_WEBHOOK_SIGNATURE")
