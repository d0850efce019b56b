"""Questionnaire domain schemas"""

from typing import Any, Optional

from pydantic import BaseModel


class QuestionnaireSubmit(BaseModel):
    # Optional so that missing fields produce the domain's 400 rather than a 422
    email: Optional[str] = None
    name: Optional[str] = None
    answers: Optional[dict[str, Any]] = None
