"""User service - signup, signin and profile"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import create_access_token, hash_password, verify_password
from ...models import User
from ...responses import api_error
from ...roles import Role
from ...shared.serializers import user_profile
from .repository import UserRepository
from .schemas import ProfileUpdate, SigninRequest, SignupRequest

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    def signup(self, data: SignupRequest) -> User:
        if data.password != data.confirm_password:
            raise api_error(400, "Please enter password and confirm should be same")

        if self.repo.get_by_email(self.db, data.email):
            raise api_error(400, "User Already Exists")

        try:
            user = self.repo.create_user(
                self.db,
                first_name=data.first_name.strip(),
                last_name=(data.last_name or "").strip() or None,
                email=data.email,
                password=hash_password(data.password),
                role_id=Role.CLIENT.value,
                phone_number=data.phoneNumber,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(400, "User Already Exists") from e

        logger.info(f"✅ New client registered: {user.email}")
        return user

    def signin(self, data: SigninRequest) -> dict:
        user = self.repo.get_by_email(self.db, data.email)
        if not user:
            raise api_error(400, "Please create an account first")

        if not user.active:
            raise api_error(403, "Your account has been deactivated. Please contact administrator")

        if not verify_password(data.password, user.password):
            logger.warning(f"⚠️ Failed signin for {user.email}")
            raise api_error(400, "Invalid Credentials")

        logger.info(f"✅ {user.email} signed in")
        return {"token": create_access_token(user), "user": user_profile(user)}

    def update_profile(self, user: User, data: ProfileUpdate) -> dict:
        if data.first_name:
            user.first_name = data.first_name.strip()
        if data.last_name is not None:
            user.last_name = data.last_name.strip() or None
        if data.phoneNumber is not None:
            user.phone_number = data.phoneNumber or None
        return user_profile(self.repo.save(self.db, user))
