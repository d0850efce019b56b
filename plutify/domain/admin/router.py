"""Admin router - staff management, client assignments and client overview"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...background import enqueue_email
from ...database import get_db
from ...models import User
from ...responses import envelope
from ...shared.serializers import user_profile
from .schemas import AssignClientRequest, StaffCreate, StaffUpdate
from .service import AdminService, assignment_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


# ============================================================================
# STAFF
# ============================================================================


@router.post("/staff", status_code=201)
async def create_staff(
    data: StaffCreate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Create a staff account and email the credentials"""
    staff, password = service.create_staff(data, admin)
    await enqueue_email(
        background_tasks,
        "account_created",
        staff.email,
        user_name=staff.first_name,
        temporary_password=password,
        role_label="staff",
    )
    return envelope(user_profile(staff), "Staff member created successfully")


@router.get("/staff")
async def list_staff(
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.list_staff())


@router.patch("/staff/{staff_id}")
async def update_staff(
    staff_id: int,
    data: StaffUpdate,
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.update_staff(staff_id, data), "Staff member updated successfully")


@router.patch("/staff/{staff_id}/deactivate")
async def deactivate_staff(
    staff_id: int,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.set_staff_active(staff_id, False, admin), "Staff member deactivated successfully")


@router.patch("/staff/{staff_id}/reactivate")
async def reactivate_staff(
    staff_id: int,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.set_staff_active(staff_id, True, admin), "Staff member reactivated successfully")


@router.get("/staff/{staff_id}/clients")
async def staff_clients(
    staff_id: int,
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.staff_clients(staff_id))


@router.get("/dashboard")
async def admin_dashboard(
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.dashboard())


# ============================================================================
# ASSIGNMENTS
# ============================================================================


@router.post("/assign-client", status_code=201)
async def assign_client(
    data: AssignClientRequest,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Assign a client to a staff member and notify both by email and in-app"""
    assignment, staff, client = service.assign_client(data, admin)

    await enqueue_email(
        background_tasks,
        "client_assigned",
        staff.email,
        staff_name=staff.first_name,
        client_name=client.full_name,
        client_email=client.email,
    )
    await enqueue_email(
        background_tasks,
        "staff_assigned",
        client.email,
        client_name=client.first_name,
        staff_name=staff.full_name,
        staff_email=staff.email,
    )
    return envelope(assignment_to_dict(assignment), "Client assigned to staff successfully")


@router.delete("/assign-client/{staff_id}/{client_id}")
async def unassign_client(
    staff_id: int,
    client_id: int,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.unassign_client(staff_id, client_id, admin), "Client unassigned from staff successfully")


@router.get("/assignments")
async def list_assignments(
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.list_assignments())


# ============================================================================
# CLIENTS
# ============================================================================


@router.get("/clients")
async def list_clients(
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """All clients with assigned staff and onboarding/subscription/integration progress"""
    return envelope(service.list_clients())


@router.get("/clients/{client_id}")
async def client_profile(
    client_id: int,
    _: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return envelope(service.client_profile(client_id))
