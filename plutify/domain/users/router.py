"""User router - registration, login and the current user's profile"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...background import enqueue_email
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...responses import envelope
from ...shared.serializers import user_profile
from .schemas import ProfileUpdate, SigninRequest, SignupRequest
from .service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

signup_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="signup")
signin_rate_limit = create_rate_limiter(limit=10, window_seconds=300, key_prefix="signin")


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db)


@router.post("/signup")
async def signup(
    data: SignupRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(signup_rate_limit),
    service: UserService = Depends(get_user_service),
):
    """Self-registration; new accounts are clients"""
    user = service.signup(data)
    await enqueue_email(background_tasks, "welcome", user.email, user_name=user.first_name)
    return envelope(user_profile(user), "User Registration Successful")


@router.post("/signin")
async def signin(
    data: SigninRequest,
    _: None = Depends(signin_rate_limit),
    service: UserService = Depends(get_user_service),
):
    return envelope(service.signin(data), "User Login Successfully")


@router.get("/me")
async def get_me(current_user: User = Depends(get_current_user)):
    return envelope(user_profile(current_user))


@router.patch("/me")
async def update_me(
    data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return envelope(service.update_profile(current_user, data), "Profile updated successfully")
