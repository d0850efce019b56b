"""Onboarding wizard service - four steps of business details after signup"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...models_onboarding import Onboarding
from ...responses import api_error
from .schemas import CompleteRequest, OnboardingData, SaveProgressRequest

logger = logging.getLogger(__name__)

FINAL_STEP = 4

EMPTY_BUSINESS_DETAILS = {
    "businessName": "",
    "businessType": "",
    "yearStarted": "",
    "employeeCount": "",
    "monthlyRevenue": "",
}

# Field -> error message when completing the wizard
COMPLETION_REQUIREMENTS = (
    ("businessNeeds", "Business needs selection is required"),
    ("previousBookkeeper", "Previous bookkeeper information is required"),
    ("businessName", "Business name is required"),
    ("businessType", "Business type is required"),
    ("industry", "Industry selection is required"),
)

PERCENTAGE_FIELDS = (
    "businessNeeds",
    "previousBookkeeper",
    "businessName",
    "businessType",
    "yearStarted",
    "employeeCount",
    "industry",
)


def onboarding_values(onboarding: Onboarding) -> dict:
    """Flat view of the wizard answers"""
    details = onboarding.business_details or {}
    return {
        "businessNeeds": onboarding.business_needs,
        "previousBookkeeper": onboarding.previous_bookkeeper,
        "industry": onboarding.industry,
        **{key: details.get(key) for key in EMPTY_BUSINESS_DETAILS},
    }


def completion_percentage(onboarding: Onboarding) -> int:
    values = onboarding_values(onboarding)
    filled = sum(1 for field in PERCENTAGE_FIELDS if values.get(field))
    return round(filled / len(PERCENTAGE_FIELDS) * 100)


def onboarding_data(onboarding: Onboarding) -> dict:
    return {
        "businessNeeds": onboarding.business_needs,
        "previousBookkeeper": onboarding.previous_bookkeeper,
        "businessDetails": {**EMPTY_BUSINESS_DETAILS, **(onboarding.business_details or {})},
        "industry": onboarding.industry,
    }


def validate_step(step: int, data: Optional[OnboardingData]) -> list[str]:
    errors = []
    match step:
        case 1:
            if not data or not data.businessNeeds:
                errors.append("Please select your business needs")
        case 2:
            if not data or not data.previousBookkeeper:
                errors.append("Please indicate if you had a previous bookkeeper")
        case 3:
            details = data.businessDetails if data else None
            if not details:
                errors.append("Business details are required")
            else:
                if not details.get("businessName"):
                    errors.append("Business name is required")
                if not details.get("businessType"):
                    errors.append("Business type is required")
                if not details.get("yearStarted"):
                    errors.append("Year started is required")
                if not details.get("employeeCount"):
                    errors.append("Employee count is required")
                if not details.get("monthlyRevenue"):
                    errors.append("Monthly revenue range is required")
        case 4:
            if not data or not data.industry:
                errors.append("Please select your industry")
        case _:
            errors.append("Invalid step number")
    return errors


class OnboardingService:
    def __init__(self, db: Session):
        self.db = db

    def _get(self, user: User) -> Optional[Onboarding]:
        return self.db.query(Onboarding).filter(Onboarding.user_id == user.id).first()

    def _merge(self, onboarding: Onboarding, data: OnboardingData) -> None:
        """businessDetails is merged key by key; other provided fields overwrite"""
        provided = data.model_dump(exclude_unset=True)
        if "businessNeeds" in provided:
            onboarding.business_needs = data.businessNeeds
        if "previousBookkeeper" in provided:
            onboarding.previous_bookkeeper = data.previousBookkeeper
        if data.businessDetails:
            onboarding.business_details = {**(onboarding.business_details or {}), **data.businessDetails}
        if "industry" in provided:
            onboarding.industry = data.industry

    def status(self, user: User) -> dict:
        onboarding = self._get(user)
        if not onboarding:
            return {"exists": False, "completed": False, "currentStep": 1, "completedAt": None, "completionPercentage": 0}
        return {
            "exists": True,
            "completed": onboarding.completed,
            "currentStep": onboarding.current_step,
            "completedAt": onboarding.completed_at,
            "completionPercentage": completion_percentage(onboarding),
        }

    def get_data(self, user: User, meta: dict) -> dict:
        onboarding = self._get(user)
        if not onboarding:
            onboarding = Onboarding(user_id=user.id, current_step=1, completed=False, meta={**meta, "source": "web"})
            self.db.add(onboarding)
            self.db.commit()
            self.db.refresh(onboarding)
            logger.info(f"🆕 Onboarding record created for {user.email}")

        return {
            "currentStep": onboarding.current_step,
            "completed": onboarding.completed,
            "data": onboarding_data(onboarding),
            "lastSavedAt": (onboarding.meta or {}).get("lastSavedAt"),
            "completionPercentage": completion_percentage(onboarding),
        }

    def save_progress(self, user: User, request: SaveProgressRequest, meta: dict) -> dict:
        if not request.currentStep or request.data is None:
            raise api_error(400, "currentStep and data are required", "MISSING_REQUIRED_FIELDS")

        onboarding = self._get(user)
        if not onboarding:
            onboarding = Onboarding(user_id=user.id, completed=False)
            self.db.add(onboarding)

        onboarding.current_step = request.currentStep
        self._merge(onboarding, request.data)
        onboarding.meta = {
            **(onboarding.meta or {}),
            **meta,
            "source": "web",
            "lastSavedAt": datetime.utcnow().isoformat(),
        }
        self.db.commit()
        self.db.refresh(onboarding)

        return {
            "currentStep": onboarding.current_step,
            "completed": onboarding.completed,
            "completionPercentage": completion_percentage(onboarding),
        }

    def complete(self, user: User, request: CompleteRequest) -> dict:
        onboarding = self._get(user)
        if not onboarding:
            raise api_error(404, "Please start the onboarding process first", "ONBOARDING_NOT_FOUND")

        if request.data is not None:
            self._merge(onboarding, request.data)

        values = onboarding_values(onboarding)
        errors = [message for field, message in COMPLETION_REQUIREMENTS if not values.get(field)]
        if errors:
            self.db.rollback()
            raise api_error(400, "Please complete all required fields", "INCOMPLETE_ONBOARDING", errors=errors)

        now = datetime.utcnow()
        onboarding.completed = True
        onboarding.completed_at = now
        onboarding.current_step = FINAL_STEP
        user.onboarding_completed = True
        user.onboarding_completed_at = now
        self.db.commit()
        self.db.refresh(onboarding)

        logger.info(f"✅ Onboarding completed for {user.email}")
        return {"completed": True, "completedAt": onboarding.completed_at, "data": onboarding_data(onboarding)}

    def reset(self, user: User) -> None:
        onboarding = self._get(user)
        if onboarding:
            self.db.delete(onboarding)
        user.onboarding_completed = False
        user.onboarding_completed_at = None
        self.db.commit()
        logger.info(f"🗑️ Onboarding data reset for {user.email}")
