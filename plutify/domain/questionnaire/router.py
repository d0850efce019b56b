"""Questionnaire router - public endpoints for the pricing questionnaire"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...responses import envelope
from .schemas import QuestionnaireSubmit
from .service import QuestionnaireService

router = APIRouter(prefix="/questionnaire", tags=["Questionnaire"])

submit_rate_limit = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="questionnaire")


def get_questionnaire_service(db: Session = Depends(get_db)) -> QuestionnaireService:
    return QuestionnaireService(db)


@router.post("/submit")
async def submit_questionnaire(
    data: QuestionnaireSubmit,
    request: Request,
    _: None = Depends(submit_rate_limit),
    service: QuestionnaireService = Depends(get_questionnaire_service),
):
    """Score the answers, store the response and return the recommended plan"""
    result = service.submit(
        data,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return envelope(result, "Questionnaire submitted successfully")


@router.get("/{email}")
async def get_questionnaire(email: str, service: QuestionnaireService = Depends(get_questionnaire_service)):
    return envelope(service.get_by_email(email))
