"""Questionnaire service - public pricing questionnaire submissions"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import QUESTIONNAIRE_TTL_MINUTES
from ...models_onboarding import QuestionnaireResponse
from ...responses import api_error
from ...shared.validators import normalize_email
from .plans import recommend_plan, validate_answers
from .repository import QuestionnaireRepository
from .schemas import QuestionnaireSubmit

logger = logging.getLogger(__name__)


def questionnaire_to_dict(questionnaire: QuestionnaireResponse) -> dict:
    return {
        "id": questionnaire.id,
        "email": questionnaire.email,
        "name": questionnaire.name,
        "recommendedPlan": questionnaire.recommended_plan,
        "status": questionnaire.status,
        "submittedAt": questionnaire.created_at,
    }


class QuestionnaireService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = QuestionnaireRepository()

    def submit(self, data: QuestionnaireSubmit, ip_address: Optional[str], user_agent: Optional[str]) -> dict:
        if not data.email or not data.name or not data.answers:
            raise api_error(400, "email, name, and answers are required")

        email = normalize_email(data.email)

        if self.repo.blocking_letter(self.db, email):
            raise api_error(409, "Engagement letter already sent. Questionnaire cannot be resubmitted.")

        errors = validate_answers(data.answers)
        if errors:
            raise api_error(400, "Invalid answers", errors=errors)

        recommended = recommend_plan(data.answers)

        questionnaire = self.repo.get_by_email(self.db, email)
        if questionnaire and questionnaire.status == "onboarded":
            raise api_error(409, "Questionnaire already submitted")

        if questionnaire is None:
            questionnaire = QuestionnaireResponse(email=email)

        questionnaire.name = data.name.strip()
        questionnaire.answers = data.answers
        questionnaire.recommended_plan = recommended
        questionnaire.status = "pending"
        questionnaire.meta = {"ipAddress": ip_address, "userAgent": user_agent, "source": "web"}
        # Informational only; rows are never purged on expiry
        questionnaire.expires_at = datetime.utcnow() + timedelta(minutes=QUESTIONNAIRE_TTL_MINUTES)

        try:
            questionnaire = self.repo.save(self.db, questionnaire)
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(409, "Questionnaire already submitted") from e

        logger.info(f"📝 Questionnaire submitted for {email}: {recommended}")
        return {"email": questionnaire.email, "recommendedPlan": recommended, "status": questionnaire.status}

    def get_by_email(self, email: str) -> dict:
        questionnaire = self.repo.get_by_email(self.db, normalize_email(email))
        if not questionnaire:
            raise api_error(404, "No questionnaire response found for this email", "NOT_FOUND")
        return questionnaire_to_dict(questionnaire)
