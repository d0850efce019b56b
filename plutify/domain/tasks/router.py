"""Task router - FastAPI endpoints for the task lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_tasks import Task
from ...permissions import Resource, authorize
from ...responses import envelope
from ...shared.serializers import to_naive_utc
from .schemas import (
    TaskApprove,
    TaskCreate,
    TaskDocumentUpload,
    TaskHelpRequestCreate,
    TaskReject,
    TaskStatusUpdate,
    TaskUpdate,
)
from .service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    """Dependency injection for TaskService"""
    return TaskService(db)


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.post("", status_code=201)
async def create_task(
    data: TaskCreate,
    _: None = Depends(authorize(Resource.TASK, "create")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Create a task (admin/staff)"""
    return envelope(service.create_task(data, current_user), "Task created successfully")


@router.get("")
async def get_tasks(
    clientId: Optional[int] = Query(None),
    staffId: Optional[int] = Query(None),
    status: Optional[str] = Query(None, description="Comma separated statuses"),
    taskType: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    dueDateFrom: Optional[datetime] = Query(None),
    dueDateTo: Optional[datetime] = Query(None),
    overdue: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sortBy: str = Query("dueDate"),
    sortOrder: str = Query("asc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """List tasks visible to the current user, with filters, pagination and stats"""
    data = service.list_tasks(
        current_user,
        client_id=clientId,
        staff_id=staffId,
        status=status,
        task_type=taskType,
        priority=priority,
        due_date_from=to_naive_utc(dueDateFrom),
        due_date_to=to_naive_utc(dueDateTo),
        overdue=overdue,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )
    return envelope(data)


@router.get("/{task_id}")
async def get_task(
    task_id: int,
    task: Task = Depends(authorize(Resource.TASK, "view")),
    service: TaskService = Depends(get_task_service),
):
    """Get a task with documents, help requests and history"""
    return envelope(service.get_task_detail(task))


@router.patch("/{task_id}")
async def update_task(
    task_id: int,
    data: TaskUpdate,
    task: Task = Depends(authorize(Resource.TASK, "update")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Edit task details or reassign it"""
    return envelope(service.update_task(task, data, current_user), "Task updated successfully")


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    task: Task = Depends(authorize(Resource.TASK, "delete")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Delete a task and its history"""
    service.delete_task(task, current_user)
    return envelope(message="Task deleted successfully")


# ============================================================================
# WORKFLOW
# ============================================================================


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: int,
    data: TaskStatusUpdate,
    task: Task = Depends(authorize(Resource.TASK, "updateStatus")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Move a task along the status state machine"""
    return envelope(service.update_status(task, data, current_user), "Task status updated successfully")


@router.post("/{task_id}/upload")
async def upload_document(
    task_id: int,
    data: TaskDocumentUpload,
    task: Task = Depends(authorize(Resource.TASK, "upload")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Attach an uploaded document's metadata to the task"""
    return envelope(service.upload_document(task, data, current_user), "Document uploaded successfully")


@router.post("/{task_id}/approve")
async def approve_task(
    task_id: int,
    data: TaskApprove,
    task: Task = Depends(authorize(Resource.TASK, "approve")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return envelope(service.approve_task(task, data, current_user), "Task approved successfully")


@router.post("/{task_id}/reject")
async def reject_task(
    task_id: int,
    data: TaskReject,
    task: Task = Depends(authorize(Resource.TASK, "reject")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return envelope(service.reject_task(task, data, current_user), "Task rejected successfully")


@router.post("/{task_id}/help")
async def request_help(
    task_id: int,
    data: TaskHelpRequestCreate,
    task: Task = Depends(authorize(Resource.TASK, "help")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return envelope(service.request_help(task, data, current_user), "Help request sent successfully")


@router.patch("/{task_id}/help/{help_id}/resolve")
async def resolve_help_request(
    task_id: int,
    help_id: int,
    task: Task = Depends(authorize(Resource.TASK, "update")),
    current_user: User = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return envelope(service.resolve_help_request(task, help_id, current_user), "Help request resolved")
