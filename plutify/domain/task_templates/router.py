"""Task template router - admin/staff only"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_staff
from ...database import get_db
from ...models import User
from ...responses import envelope
from .schemas import TaskTemplateCreate, TaskTemplateUpdate
from .service import TaskTemplateService

router = APIRouter(prefix="/task-templates", tags=["Task Templates"])


def get_template_service(db: Session = Depends(get_db)) -> TaskTemplateService:
    """Dependency injection for TaskTemplateService"""
    return TaskTemplateService(db)


@router.get("")
async def get_templates(
    category: Optional[str] = Query(None),
    active: bool = Query(True),
    current_user: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    """Templates visible to the caller, grouped by category"""
    return envelope(service.list_templates(current_user, category, active))


@router.get("/{template_id}")
async def get_template(
    template_id: int,
    current_user: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    return envelope(service.get_template(template_id, current_user))


@router.post("", status_code=201)
async def create_template(
    data: TaskTemplateCreate,
    current_user: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    return envelope(service.create_template(data, current_user), "Template created successfully")


@router.patch("/{template_id}")
async def update_template(
    template_id: int,
    data: TaskTemplateUpdate,
    current_user: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    return envelope(service.update_template(template_id, data, current_user), "Template updated successfully")


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    current_user: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    message, data = service.delete_template(template_id, current_user)
    return envelope(data, message)


@router.get("/{template_id}/stats")
async def get_template_stats(
    template_id: int,
    _: User = Depends(require_staff),
    service: TaskTemplateService = Depends(get_template_service),
):
    """Usage count, last use and per-status breakdown of tasks created from the template"""
    return envelope(service.get_template_stats(template_id))
