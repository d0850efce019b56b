"""
Resource/action authorization

authorize(resource, action) returns a FastAPI dependency that dispatches to the
checker for that resource. The task and document checkers load their row from the
`task_id` or `document_id` path parameter and return it, so handlers receive an authorized row.
"""

import logging
from enum import Enum
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .auth import get_current_user
from .database import get_db
from .models import AssignClient, User
from .models_documents import Document
from .models_tasks import Task
from .responses import api_error
from .roles import STAFF_ROLES, Role

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    TASK = "task"
    MESSAGE = "message"
    DOCUMENT = "document"
    SETTINGS = "settings"


TASK_ACTIONS = frozenset(
    {"create", "view", "update", "delete", "updateStatus", "upload", "approve", "reject", "help"}
)
# Actions only the servicing side (admin/staff) may perform
STAFF_ONLY_TASK_ACTIONS = frozenset({"create", "update", "delete", "approve", "reject"})


def is_staff_assigned_to_client(db: Session, staff_id: int, client_id: Optional[int]) -> bool:
    if client_id is None:
        return False
    return (
        db.query(AssignClient.id)
        .filter(AssignClient.staff_id == staff_id, AssignClient.client_id == client_id)
        .first()
        is not None
    )


def can_access_task(db: Session, user: User, task: Task) -> bool:
    match user.role:
        case Role.ADMIN:
            return True
        case Role.STAFF:
            return (
                task.assigned_to == user.id
                or is_staff_assigned_to_client(db, user.id, task.client_id)
            )
        case Role.CLIENT:
            return task.assigned_to == user.id
    return False


def check_task_permission(db: Session, user: User, action: str, task_id: Optional[str]) -> Optional[Task]:
    if action not in TASK_ACTIONS:
        raise ValueError(f"Unknown task action: {action}")

    if action in STAFF_ONLY_TASK_ACTIONS and user.role not in STAFF_ROLES:
        raise api_error(403, f"You do not have permission to {action} tasks")

    if action == "create":
        return None

    task = db.get(Task, int(task_id)) if task_id and str(task_id).isdigit() else None
    if not task:
        raise api_error(404, "Task not found")

    if not can_access_task(db, user, task):
        logger.warning(f"🚫 {user.email} denied '{action}' on task {task.id}")
        raise api_error(403, "You do not have access to this task")

    return task


DOCUMENT_ACTIONS = frozenset({"upload", "list", "view", "download", "update", "delete"})
# Only the owner (or an admin) may change or remove a document
OWNER_ONLY_DOCUMENT_ACTIONS = frozenset({"update", "delete"})


def can_access_owner(db: Session, user: User, owner_id: int) -> bool:
    """Whether `user` may see documents filed under `owner_id`"""
    match user.role:
        case Role.ADMIN:
            return True
        case Role.STAFF:
            return owner_id == user.id or is_staff_assigned_to_client(db, user.id, owner_id)
        case Role.CLIENT:
            return owner_id == user.id
    return False


def check_document_permission(
    db: Session, user: User, action: str, document_id: Optional[str]
) -> Optional[Document]:
    if action not in DOCUMENT_ACTIONS:
        raise ValueError(f"Unknown document action: {action}")

    # Collection actions resolve their target owner in the service
    if action in ("upload", "list"):
        return None

    document = db.get(Document, int(document_id)) if document_id and str(document_id).isdigit() else None
    if not document or document.status == "deleted":
        raise api_error(404, "Document not found")

    if action in OWNER_ONLY_DOCUMENT_ACTIONS:
        allowed = user.role is Role.ADMIN or document.user_id == user.id
    else:
        allowed = can_access_owner(db, user, document.user_id)
    if not allowed:
        logger.warning(f"🚫 {user.email} denied '{action}' on document {document.id}")
        raise api_error(403, "You do not have access to this document")

    return document


def check_settings_permission(user: User, action: str) -> None:
    match user.role:
        case Role.ADMIN:
            return None
        case Role.STAFF | Role.CLIENT:
            raise api_error(403, f"Only administrators can {action} settings")


def authorize(resource: Resource, action: str):
    """Build a dependency enforcing `action` on `resource` for the current user"""
    resource = Resource(resource)

    async def dependency(
        request: Request,
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ):
        match resource:
            case Resource.TASK:
                return check_task_permission(db, user, action, request.path_params.get("task_id"))
            case Resource.DOCUMENT:
                return check_document_permission(db, user, action, request.path_params.get("document_id"))
            case Resource.SETTINGS:
                return check_settings_permission(user, action)
            case Resource.MESSAGE:
                # No per-object rules yet for messages
                return None

    return dependency
