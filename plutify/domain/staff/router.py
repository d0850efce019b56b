"""Staff router - endpoints for a staff member's own workload"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from ...responses import envelope
from .service import StaffService

router = APIRouter(prefix="/staff", tags=["Staff"])


def get_staff_service(db: Session = Depends(get_db)) -> StaffService:
    return StaffService(db)


@router.get("/my-clients")
async def my_clients(
    current_user: User = Depends(require_staff),
    service: StaffService = Depends(get_staff_service),
):
    """Clients assigned to the current staff member"""
    return envelope(service.my_clients(current_user))


@router.get("/dashboard")
async def staff_dashboard(
    current_user: User = Depends(require_staff),
    service: StaffService = Depends(get_staff_service),
):
    return envelope(service.dashboard(current_user))
