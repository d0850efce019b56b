from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_onboarding import ENGAGEMENT_LETTER_STATUSES
from ...shared.validators import validate_email


class EngagementLetterCreate(BaseModel):
    email: str
    clientName: Optional[str] = None
    documentName: Optional[str] = None
    documentId: Optional[str] = None
    documentUrl: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email_format(cls, v):
        return validate_email(v)


class EngagementLetterStatusUpdate(BaseModel):
    status: str
    documentId: Optional[str] = None
    documentUrl: Optional[str] = None
    error: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        v = v.strip().upper()
        if v not in ENGAGEMENT_LETTER_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(ENGAGEMENT_LETTER_STATUSES)}")
        return v
