import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, JWT_EXPIRES_HOURS, SECRET_KEY
from .database import get_db
from .models import User
from .responses import api_error
from .roles import STAFF_ROLES, Role

logger = logging.getLogger(__name__)

# auto_error=False so missing/malformed headers get our own error codes
security = HTTPBearer(auto_error=False)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORDS & TOKENS
# ============================================================================


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a JWT for the user. The role is informational; it is re-read from the DB per request."""
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=JWT_EXPIRES_HOURS))
    payload = {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "role_id": user.role_id,
        "exp": expire,
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode a JWT, translating library errors into 401s with stable codes"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise api_error(401, "Token expired", "TOKEN_EXPIRED") from e
    except JWTClaimsError as e:
        raise api_error(401, "Invalid token", "INVALID_TOKEN") from e
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        raise api_error(401, "Invalid token format", "INVALID_TOKEN_FORMAT") from e


# ============================================================================
# DEPENDENCIES
# ============================================================================


async def get_current_user(
    request: Request,
    _credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to an active user; role comes from the database"""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise api_error(401, "Token is Required", "TOKEN_REQUIRED")

    parts = auth_header.split(" ")
    if len(parts) != 2:
        raise api_error(401, "Invalid authorization header", "INVALID_AUTH_HEADER")
    if parts[0] != "Bearer":
        raise api_error(401, "Invalid authorization format", "INVALID_AUTH_FORMAT")

    payload = decode_access_token(parts[1])

    user_id = payload.get("id")
    user = db.get(User, int(user_id)) if str(user_id).isdigit() else None
    if not user:
        logger.error(f"❌ User not found for token id: {user_id}")
        raise api_error(401, "User not found", "USER_NOT_FOUND")

    if not user.active:
        logger.warning(f"⚠️ Deactivated account attempted access: {user.email}")
        raise api_error(403, "Account deactivated", "ACCOUNT_DEACTIVATED")

    return user


def require_roles(*allowed: Role):
    """Dependency factory allowing only the given roles"""
    allowed_set = frozenset(allowed)

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed_set:
            logger.warning(f"🚫 {user.email} (role {user.role.label}) denied")
            raise api_error(403, "Insufficient permissions to access this resource")
        return user

    return checker


require_admin = require_roles(Role.ADMIN)
require_staff = require_roles(*STAFF_ROLES)


async def resolve_target_user(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """
    Admin override: an admin may pass ?clientId= to act on a client's integration data.
    Staff may not; everyone else acts on their own account.
    """
    client_id = request.query_params.get("clientId")
    if not client_id:
        return user

    match user.role:
        case Role.ADMIN:
            client = db.get(User, int(client_id)) if client_id.isdigit() else None
            if not client:
                raise api_error(404, "Client not found")
            if client.role is not Role.CLIENT:
                raise api_error(400, "User is not a client")
            logger.info(
                f"🔍 [ADMIN AUDIT] Admin {user.email} accessing client {client.email} data at {datetime.utcnow().isoformat()}"
            )
            return client
        case Role.STAFF:
            raise api_error(
                403,
                "Staff members cannot directly access client integration data. Please contact admin.",
            )
        case Role.CLIENT:
            return user
