"""Onboarding wizard router"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...responses import api_error, envelope
from .schemas import CompleteRequest, SaveProgressRequest, ValidateStepRequest
from .service import OnboardingService, validate_step

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])


def get_onboarding_service(db: Session = Depends(get_db)) -> OnboardingService:
    return OnboardingService(db)


def request_meta(request: Request) -> dict:
    return {
        "ipAddress": request.client.host if request.client else None,
        "userAgent": request.headers.get("user-agent"),
    }


@router.get("/status")
async def onboarding_status(
    current_user: User = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.status(current_user))


@router.get("/data")
async def onboarding_data(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Saved answers; the record is created on first access"""
    return envelope(service.get_data(current_user, request_meta(request)))


@router.post("/save-progress")
async def save_progress(
    data: SaveProgressRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.save_progress(current_user, data, request_meta(request)), "Progress saved successfully")


@router.post("/complete")
async def complete_onboarding(
    data: CompleteRequest,
    current_user: User = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return envelope(service.complete(current_user, data), "Onboarding completed successfully")


@router.post("/validate-step/{step}")
async def validate_onboarding_step(
    step: int,
    data: ValidateStepRequest,
    _: User = Depends(get_current_user),
):
    errors = validate_step(step, data.data)
    if errors:
        raise api_error(400, errors[0], valid=False, errors=errors)
    return envelope({"valid": True}, "Step validated successfully")


@router.delete("/reset")
async def reset_onboarding(
    current_user: User = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    service.reset(current_user)
    return envelope(message="Onboarding data deleted successfully")
