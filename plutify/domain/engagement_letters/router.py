"""Engagement letter router (admin)"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...database import get_db
from ...responses import envelope
from .schemas import EngagementLetterCreate, EngagementLetterStatusUpdate
from .service import EngagementLetterService

router = APIRouter(prefix="/engagement-letters", tags=["Engagement Letters"], dependencies=[Depends(require_admin)])


def get_letter_service(db: Session = Depends(get_db)) -> EngagementLetterService:
    return EngagementLetterService(db)


@router.get("")
async def list_letters(
    email: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    service: EngagementLetterService = Depends(get_letter_service),
):
    return envelope(service.list_letters(email, status))


@router.post("", status_code=201)
async def create_letter(data: EngagementLetterCreate, service: EngagementLetterService = Depends(get_letter_service)):
    return envelope(service.create_letter(data), "Engagement letter created")


@router.patch("/{letter_id}/status")
async def update_letter_status(
    letter_id: int,
    data: EngagementLetterStatusUpdate,
    service: EngagementLetterService = Depends(get_letter_service),
):
    return envelope(service.update_status(letter_id, data), "Engagement letter status updated")
