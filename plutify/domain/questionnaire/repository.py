"""Questionnaire repository - questionnaire responses and the engagement letter gate"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_onboarding import EngagementLetter, QuestionnaireResponse

BLOCKING_LETTER_STATUSES = ("SENT", "SIGNED")


class QuestionnaireRepository:
    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[QuestionnaireResponse]:
        return db.query(QuestionnaireResponse).filter(QuestionnaireResponse.email == email).first()

    @staticmethod
    def get_by_id(db: Session, questionnaire_id: int) -> Optional[QuestionnaireResponse]:
        return db.get(QuestionnaireResponse, questionnaire_id)

    @staticmethod
    def blocking_letter(db: Session, email: str) -> Optional[EngagementLetter]:
        return (
            db.query(EngagementLetter)
            .filter(EngagementLetter.email == email, EngagementLetter.status.in_(BLOCKING_LETTER_STATUSES))
            .first()
        )

    @staticmethod
    def save(db: Session, questionnaire: QuestionnaireResponse) -> QuestionnaireResponse:
        db.add(questionnaire)
        db.commit()
        db.refresh(questionnaire)
        return questionnaire
