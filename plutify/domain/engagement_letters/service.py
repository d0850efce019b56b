"""Engagement letter service - one active letter per email"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models_onboarding import EngagementLetter
from ...responses import api_error
from ...shared.validators import normalize_email
from .schemas import EngagementLetterCreate, EngagementLetterStatusUpdate

logger = logging.getLogger(__name__)


def letter_to_dict(letter: EngagementLetter) -> dict:
    return {
        "id": letter.id,
        "email": letter.email,
        "status": letter.status,
        "documentId": letter.document_id,
        "documentName": letter.document_name,
        "clientName": letter.client_name,
        "documentUrl": letter.document_url,
        "error": letter.error,
        "sentAt": letter.sent_at,
        "failedAt": letter.failed_at,
        "createdAt": letter.created_at,
    }


class EngagementLetterService:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, letter: EngagementLetter) -> EngagementLetter:
        """The partial unique index is the source of truth for "one active letter per email" """
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(409, "An active engagement letter already exists for this email") from e
        self.db.refresh(letter)
        return letter

    def list_letters(self, email: Optional[str] = None, status: Optional[str] = None) -> list[dict]:
        query = self.db.query(EngagementLetter)
        if email:
            query = query.filter(EngagementLetter.email == normalize_email(email))
        if status:
            query = query.filter(EngagementLetter.status == status.upper())
        letters = query.order_by(EngagementLetter.created_at.desc(), EngagementLetter.id.desc()).all()
        return [letter_to_dict(letter) for letter in letters]

    def create_letter(self, data: EngagementLetterCreate) -> dict:
        letter = EngagementLetter(
            email=data.email,
            status="PROCESSING",
            client_name=data.clientName,
            document_name=data.documentName,
            document_id=data.documentId,
            document_url=data.documentUrl,
        )
        self.db.add(letter)
        letter = self._commit(letter)
        logger.info(f"📄 Engagement letter {letter.id} created for {letter.email}")
        return letter_to_dict(letter)

    def update_status(self, letter_id: int, data: EngagementLetterStatusUpdate) -> dict:
        letter = self.db.get(EngagementLetter, letter_id)
        if not letter:
            raise api_error(404, "Engagement letter not found")

        letter.status = data.status
        if data.documentId:
            letter.document_id = data.documentId
        if data.documentUrl:
            letter.document_url = data.documentUrl

        match data.status:
            case "SENT":
                letter.sent_at = datetime.utcnow()
            case "FAILED":
                letter.failed_at = datetime.utcnow()
                letter.error = data.error
            case _:
                pass

        letter = self._commit(letter)
        logger.info(f"📄 Engagement letter {letter.id} for {letter.email} -> {letter.status}")
        return letter_to_dict(letter)
