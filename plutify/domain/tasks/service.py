"""Task service - Business logic for the task lifecycle"""

import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...models_tasks import (
    ActionCategory,
    IntegrationType,
    Task,
    TaskAssignmentHistory,
    TaskDocument,
    TaskHelpRequest,
    TaskPriority,
    TaskStatus,
    TaskStatusHistory,
    TaskType,
)
from ...responses import api_error
from ...roles import Role
from ...shared.serializers import user_summary
from ..notifications.service import create_notification
from .repository import TaskRepository
from .schemas import (
    TaskApprove,
    TaskCreate,
    TaskDocumentUpload,
    TaskHelpRequestCreate,
    TaskReject,
    TaskStatusUpdate,
    TaskUpdate,
)
from .state_machine import check_status_change

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)


def _check_choice(value: Optional[str], enum_cls, field: str) -> Optional[str]:
    if value is None:
        return None
    try:
        return enum_cls(value).value
    except ValueError as e:
        raise api_error(400, f"Invalid {field}: {value}") from e


def validate_type_specific_fields(
    task_type: str,
    document_type: Optional[str],
    integration_type: Optional[str],
    action_category: Optional[str],
    kind: str = "tasks",
) -> None:
    """DOCUMENT_UPLOAD, INTEGRATION and ACTION each need their own extra field"""
    match TaskType(task_type):
        case TaskType.DOCUMENT_UPLOAD:
            if not document_type:
                raise api_error(400, f"documentType is required for DOCUMENT_UPLOAD {kind}")
        case TaskType.INTEGRATION:
            if not integration_type:
                raise api_error(400, f"integrationType is required for INTEGRATION {kind}")
        case TaskType.ACTION:
            if not action_category:
                raise api_error(400, f"actionCategory is required for ACTION {kind}")
        case TaskType.REVIEW:
            pass
    _check_choice(integration_type, IntegrationType, "integrationType")
    _check_choice(action_category, ActionCategory, "actionCategory")


def days_until(due_date: datetime, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    return math.ceil((due_date - now).total_seconds() / 86400)


def task_to_dict(task: Task, detail: bool = False) -> dict:
    data = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "taskType": task.task_type,
        "status": task.status,
        "priority": task.priority,
        "dueDate": task.due_date,
        "completedAt": task.completed_at,
        "assignedTo": task.assigned_to,
        "assignee": user_summary(task.assignee),
        "assignedBy": task.assigned_by,
        "assignedToRole": task.assigned_to_role,
        "clientId": task.client_id,
        "client": user_summary(task.client),
        "staffId": task.staff_id,
        "staff": user_summary(task.staff),
        "templateId": task.template_id,
        "templateName": task.template_name,
        "documentType": task.document_type,
        "actionCategory": task.action_category,
        "integrationType": task.integration_type,
        "integrationStatus": task.integration_status,
        "integrationConnectedAt": task.integration_connected_at,
        "reviewNotes": task.review_notes,
        "rejectionReason": task.rejection_reason,
        "reviewedBy": task.reviewed_by,
        "reviewedAt": task.reviewed_at,
        "createdAt": task.created_at,
        "updatedAt": task.updated_at,
    }
    if detail:
        data["documents"] = [document_to_dict(d) for d in task.documents]
        data["helpRequests"] = [help_request_to_dict(h) for h in task.help_requests]
        data["statusHistory"] = [history_to_dict(h) for h in task.status_history]
        data["assignmentHistory"] = [
            {
                "assignedTo": a.assigned_to,
                "assignedBy": a.assigned_by,
                "assignedAt": a.assigned_at,
                "notes": a.notes,
            }
            for a in task.assignment_history
        ]
    return data


def document_to_dict(document: TaskDocument) -> dict:
    return {
        "id": document.id,
        "fileName": document.file_name,
        "fileUrl": document.file_url,
        "fileSize": document.file_size,
        "mimeType": document.mime_type,
        "uploadedBy": document.uploaded_by,
        "uploadedAt": document.uploaded_at,
    }


def help_request_to_dict(help_request: TaskHelpRequest) -> dict:
    return {
        "id": help_request.id,
        "message": help_request.message,
        "requestedBy": help_request.requested_by,
        "requestedAt": help_request.requested_at,
        "resolvedBy": help_request.resolved_by,
        "resolvedAt": help_request.resolved_at,
    }


def history_to_dict(entry: TaskStatusHistory) -> dict:
    return {
        "status": entry.status,
        "changedBy": entry.changed_by,
        "changedAt": entry.changed_at,
        "notes": entry.notes,
    }


class TaskService:
    """Service layer for task business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TaskRepository()

    # ------------------------------------------------------------------
    # History helpers (rows are append-only)
    # ------------------------------------------------------------------

    @staticmethod
    def _record_status(task: Task, status: str, user: User, notes: str, now: datetime) -> None:
        task.status = status
        task.status_history.append(
            TaskStatusHistory(status=status, changed_by=user.id, changed_at=now, notes=notes)
        )

    def _notify(self, recipient_id: Optional[int], sender: User, kind: str, title: str, message: str, task: Task):
        if recipient_id and recipient_id != sender.id:
            create_notification(
                self.db, recipient_id, kind, title, message, {"taskId": task.id}, sender_id=sender.id
            )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create_task(self, data: TaskCreate, user: User) -> dict:
        if not (data.title and data.description and data.taskType and data.dueDate and data.assignedTo):
            raise api_error(400, "Missing required fields")

        task_type = _check_choice(data.taskType, TaskType, "taskType")
        priority = _check_choice(data.priority or TaskPriority.MEDIUM.value, TaskPriority, "priority")
        validate_type_specific_fields(
            task_type, data.documentType, data.integrationType, data.actionCategory
        )

        assignee = self.repo.get_user(self.db, data.assignedTo)
        if not assignee:
            raise api_error(404, "Assignee not found")

        client_id = data.clientId
        staff_id = None
        match assignee.role:
            case Role.CLIENT:
                client_id = assignee.id
                assignment = self.repo.get_staff_assignment(self.db, assignee.id)
                staff_id = assignment.staff_id if assignment else user.id
            case Role.STAFF:
                staff_id = assignee.id
                if not data.clientId:
                    raise api_error(400, "clientId is required for staff tasks")
            case Role.ADMIN:
                pass

        now = datetime.utcnow()
        task = Task(
            title=data.title,
            description=data.description,
            task_type=task_type,
            status=TaskStatus.NOT_STARTED.value,
            priority=priority,
            due_date=data.dueDate,
            assigned_to=assignee.id,
            assigned_by=user.id,
            assigned_to_role=assignee.role.label,
            client_id=client_id,
            staff_id=staff_id,
            integration_type=data.integrationType if task_type == TaskType.INTEGRATION.value else None,
            template_id=data.templateId,
            template_name=data.templateName,
            document_type=data.documentType,
            action_category=data.actionCategory,
        )
        task.status_history.append(
            TaskStatusHistory(
                status=TaskStatus.NOT_STARTED.value, changed_by=user.id, changed_at=now, notes="Task created"
            )
        )
        task.assignment_history.append(
            TaskAssignmentHistory(assigned_to=assignee.id, assigned_by=user.id, assigned_at=now)
        )

        if data.templateId:
            template = self.repo.record_template_use(self.db, data.templateId)
            if template and not task.template_name:
                task.template_name = template.name

        task = self.repo.create_task(self.db, task)
        logger.info(f"✅ Task {task.id} created by {user.email} for {assignee.email}")

        self._notify(assignee.id, user, "task_assigned", "New task assigned", task.title, task)
        return task_to_dict(task, detail=True)

    def list_tasks(
        self,
        user: User,
        client_id: Optional[int] = None,
        staff_id: Optional[int] = None,
        status: Optional[str] = None,
        task_type: Optional[str] = None,
        priority: Optional[str] = None,
        due_date_from: Optional[datetime] = None,
        due_date_to: Optional[datetime] = None,
        overdue: bool = False,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "dueDate",
        sort_order: str = "asc",
    ) -> dict:
        query = self.repo.scoped_query(self.db, user)

        match user.role:
            case Role.ADMIN:
                if client_id:
                    query = query.filter(Task.client_id == client_id)
                if staff_id:
                    query = query.filter(Task.staff_id == staff_id)
            case Role.STAFF:
                if client_id:
                    query = query.filter(Task.client_id == client_id)
            case Role.CLIENT:
                pass

        now = datetime.utcnow()
        if overdue:
            query = self.repo.open_overdue(query, now)
        elif status:
            query = query.filter(Task.status.in_([s.strip() for s in status.split(",") if s.strip()]))
        if task_type:
            query = query.filter(Task.task_type == task_type)
        if priority:
            query = query.filter(Task.priority == priority)
        if due_date_from:
            query = query.filter(Task.due_date >= due_date_from)
        if due_date_to:
            query = query.filter(Task.due_date <= due_date_to)

        total = query.count()
        tasks = self.repo.page(query, sort_by, sort_order, (page - 1) * limit, limit)

        stats = {
            "total": total,
            "overdue": self.repo.open_overdue(query, now).count(),
            "dueThisWeek": self.repo.open_due_between(query, now, now + timedelta(days=7)).count(),
            "pendingReview": query.filter(Task.status == TaskStatus.PENDING_REVIEW.value).count(),
        }

        return {
            "tasks": [task_to_dict(t) for t in tasks],
            "pagination": {
                "currentPage": page,
                "totalPages": math.ceil(total / limit) if limit else 0,
                "totalItems": total,
                "itemsPerPage": limit,
            },
            "stats": stats,
        }

    def get_task_detail(self, task: Task) -> dict:
        data = task_to_dict(task, detail=True)
        days = days_until(task.due_date)
        data["daysUntilDue"] = days
        data["isOverdue"] = days < 0 and task.status not in TERMINAL_STATUSES
        return data

    def update_task(self, task: Task, data: TaskUpdate, user: User) -> dict:
        if data.title:
            task.title = data.title
        if data.description:
            task.description = data.description
        if data.priority:
            task.priority = _check_choice(data.priority, TaskPriority, "priority")
        if data.dueDate:
            task.due_date = data.dueDate
            task.due_soon_sent = False

        if data.assignedTo and data.assignedTo != task.assigned_to:
            assignee = self.repo.get_user(self.db, data.assignedTo)
            if not assignee:
                raise api_error(404, "Assignee not found")
            task.assigned_to = assignee.id
            task.assigned_to_role = assignee.role.label
            task.assignment_history.append(
                TaskAssignmentHistory(
                    assigned_to=assignee.id,
                    assigned_by=user.id,
                    assigned_at=datetime.utcnow(),
                    notes=data.notes or "Task reassigned",
                )
            )
            logger.info(f"🔁 Task {task.id} reassigned to {assignee.email} by {user.email}")
            self._notify(assignee.id, user, "task_assigned", "Task assigned to you", task.title, task)

        task = self.repo.save(self.db, task)
        return task_to_dict(task, detail=True)

    def delete_task(self, task: Task, user: User) -> None:
        match user.role:
            case Role.ADMIN:
                pass
            case Role.STAFF:
                if task.assigned_by != user.id:
                    raise api_error(403, "Only the task creator or an admin can delete this task")
            case Role.CLIENT:
                raise api_error(403, "You do not have permission to delete tasks")

        self.repo.delete_task(self.db, task)
        logger.info(f"🗑️ Task {task.id} deleted by {user.email}")

    # ------------------------------------------------------------------
    # Workflow
    # ------------------------------------------------------------------

    def update_status(self, task: Task, data: TaskStatusUpdate, user: User) -> dict:
        if not data.status:
            raise api_error(400, "Status is required")

        old_status = task.status
        target = check_status_change(user.role, old_status, data.status)

        now = datetime.utcnow()
        self._record_status(
            task, target.value, user, data.notes or f"Status changed from {old_status} to {target.value}", now
        )
        if target is TaskStatus.COMPLETED and not task.completed_at:
            task.completed_at = now

        task = self.repo.save(self.db, task)
        logger.info(f"✅ Task {task.id} status {old_status} -> {task.status} by {user.email}")
        return {
            "id": task.id,
            "status": task.status,
            "statusHistory": [history_to_dict(h) for h in task.status_history],
        }

    def upload_document(self, task: Task, data: TaskDocumentUpload, user: User) -> dict:
        if not data.fileName or not data.fileUrl:
            raise api_error(400, "No file uploaded")

        now = datetime.utcnow()
        document = TaskDocument(
            file_name=data.fileName,
            file_url=data.fileUrl,
            file_size=data.fileSize,
            mime_type=data.mimeType,
            uploaded_by=user.id,
            uploaded_at=now,
        )
        task.documents.append(document)

        # Document tasks move to review as soon as something is uploaded
        if task.task_type == TaskType.DOCUMENT_UPLOAD.value and task.status == TaskStatus.IN_PROGRESS.value:
            self._record_status(
                task, TaskStatus.PENDING_REVIEW.value, user, "Document uploaded, awaiting review", now
            )

        task = self.repo.save(self.db, task)
        logger.info(f"📎 Document '{document.file_name}' uploaded to task {task.id} by {user.email}")
        self._notify(task.staff_id, user, "task_document", "Document uploaded", task.title, task)

        return {"taskId": task.id, "document": document_to_dict(document), "task": {"status": task.status}}

    def approve_task(self, task: Task, data: TaskApprove, user: User) -> dict:
        now = datetime.utcnow()
        self._record_status(task, TaskStatus.COMPLETED.value, user, "Task approved", now)
        task.completed_at = now
        task.reviewed_by = user.id
        task.reviewed_at = now
        task.review_notes = data.reviewNotes or ""

        task = self.repo.save(self.db, task)
        logger.info(f"✅ Task {task.id} approved by {user.email}")
        self._notify(task.assigned_to, user, "task_approved", "Task approved", task.title, task)

        return {"status": task.status, "completedAt": task.completed_at, "reviewedBy": task.reviewed_by}

    def reject_task(self, task: Task, data: TaskReject, user: User) -> dict:
        reason = (data.rejectionReason or "").strip()
        if not reason:
            raise api_error(400, "Rejection reason is required")

        now = datetime.utcnow()
        self._record_status(task, TaskStatus.NEEDS_REVISION.value, user, f"Task rejected: {reason}", now)
        task.rejection_reason = reason
        task.reviewed_by = user.id
        task.reviewed_at = now

        task = self.repo.save(self.db, task)
        logger.info(f"↩️ Task {task.id} sent back for revision by {user.email}")
        self._notify(task.assigned_to, user, "task_rejected", "Task needs revision", reason, task)

        return {"status": task.status, "rejectionReason": task.rejection_reason, "reviewedBy": task.reviewed_by}

    def request_help(self, task: Task, data: TaskHelpRequestCreate, user: User) -> dict:
        help_request = TaskHelpRequest(
            message=data.message or "Client requested help",
            requested_by=user.id,
            requested_at=datetime.utcnow(),
        )
        task.help_requests.append(help_request)
        task = self.repo.save(self.db, task)
        logger.info(f"🆘 Help requested on task {task.id} by {user.email}")

        self._notify(
            task.staff_id or task.assigned_by, user, "task_help", "Help requested", help_request.message, task
        )
        return {"helpRequest": help_request_to_dict(help_request)}

    def resolve_help_request(self, task: Task, help_id: int, user: User) -> dict:
        help_request = next((h for h in task.help_requests if h.id == help_id), None)
        if not help_request:
            raise api_error(404, "Help request not found")
        if help_request.resolved_at:
            raise api_error(400, "Help request already resolved")

        help_request.resolved_by = user.id
        help_request.resolved_at = datetime.utcnow()
        self.repo.save(self.db, task)
        return {"helpRequest": help_request_to_dict(help_request)}
