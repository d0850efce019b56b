"""Small JSON shapes shared by several routers"""

from datetime import datetime, timezone
from typing import Optional

from ..models import User


def user_summary(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
    }


def user_profile(user: User) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "role_id": user.role_id,
        "role": user.role.label,
        "active": user.active,
        "phoneNumber": user.phone_number,
        "onboardingCompleted": user.onboarding_completed,
        "createdAt": user.created_at,
    }


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
