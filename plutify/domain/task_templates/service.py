"""Task template service - reusable task blueprints for admins and staff"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import User
from ...models_tasks import TaskPriority, TaskStatus, TaskTemplate, TaskType
from ...responses import api_error
from ...roles import Role
from ...shared.serializers import user_summary
from ..tasks.service import validate_type_specific_fields
from .repository import TaskTemplateRepository
from .schemas import TEMPLATE_AUDIENCES, TEMPLATE_VISIBILITIES, TaskTemplateCreate, TaskTemplateUpdate

logger = logging.getLogger(__name__)

CATEGORIES = tuple(t.value for t in TaskType)


def template_to_dict(template: TaskTemplate) -> dict:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "category": template.category,
        "taskType": template.task_type,
        "documentType": template.document_type,
        "integrationType": template.integration_type,
        "actionCategory": template.action_category,
        "defaultPriority": template.default_priority,
        "defaultDueInDays": template.default_due_in_days,
        "visibility": template.visibility,
        "availableFor": template.available_for or [],
        "isSystemTemplate": template.is_system_template,
        "createdBy": user_summary(template.creator),
        "usageCount": template.usage_count,
        "lastUsedAt": template.last_used_at,
        "active": template.active,
        "createdAt": template.created_at,
        "updatedAt": template.updated_at,
    }


def _validate_choices(visibility: Optional[str], available_for: Optional[list[str]], priority: Optional[str]):
    if visibility is not None and visibility not in TEMPLATE_VISIBILITIES:
        raise api_error(400, f"Invalid visibility: {visibility}")
    if available_for is not None:
        invalid = [r for r in available_for if r not in TEMPLATE_AUDIENCES]
        if invalid or not available_for:
            raise api_error(400, f"availableFor must contain only {', '.join(TEMPLATE_AUDIENCES)}")
    if priority is not None and priority not in TaskPriority.__members__:
        raise api_error(400, f"Invalid defaultPriority: {priority}")


class TaskTemplateService:
    """Service layer for task templates"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = TaskTemplateRepository()

    def _get(self, template_id: int) -> TaskTemplate:
        template = self.repo.get(self.db, template_id)
        if not template:
            raise api_error(404, "Template not found")
        return template

    def _check_owner(self, template: TaskTemplate, user: User, action: str) -> None:
        if template.is_system_template:
            raise api_error(403, f"Cannot {action} system templates")
        if template.created_by and template.created_by != user.id and user.role is not Role.ADMIN:
            raise api_error(403, f"Only the creator or admin can {action} this template")

    def list_templates(self, user: User, category: Optional[str], active: bool) -> dict:
        templates = [
            t
            for t in self.repo.list_visible(self.db, user.id, category, active)
            if user.role.label in (t.available_for or [])
        ]
        items = [template_to_dict(t) for t in templates]
        grouped = {c: [t for t in items if t["category"] == c] for c in CATEGORIES}
        return {"templates": items, "grouped": grouped, "total": len(items)}

    def get_template(self, template_id: int, user: User) -> dict:
        template = self._get(template_id)
        if template.visibility == "PRIVATE" and template.created_by and template.created_by != user.id:
            raise api_error(403, "Access denied to this template")
        return template_to_dict(template)

    def create_template(self, data: TaskTemplateCreate, user: User) -> dict:
        if not data.name or not data.category or not data.taskType:
            raise api_error(400, "Missing required fields: name, category, taskType")
        if data.category not in CATEGORIES:
            raise api_error(400, f"Invalid category: {data.category}")
        if data.taskType not in CATEGORIES:
            raise api_error(400, f"Invalid taskType: {data.taskType}")

        validate_type_specific_fields(
            data.taskType, data.documentType, data.integrationType, data.actionCategory, kind="templates"
        )
        _validate_choices(data.visibility, data.availableFor, data.defaultPriority)

        template = self.repo.create(
            self.db,
            name=data.name,
            description=data.description,
            category=data.category,
            task_type=data.taskType,
            document_type=data.documentType or None,
            integration_type=data.integrationType or None,
            action_category=data.actionCategory or None,
            default_priority=data.defaultPriority or TaskPriority.MEDIUM.value,
            default_due_in_days=data.defaultDueInDays or 7,
            visibility=data.visibility or "ORGANIZATION",
            available_for=data.availableFor or list(TEMPLATE_AUDIENCES),
            is_system_template=False,
            created_by=user.id,
            active=True,
        )
        logger.info(f"✅ Task template '{template.name}' created by {user.email}")
        return template_to_dict(template)

    def update_template(self, template_id: int, data: TaskTemplateUpdate, user: User) -> dict:
        template = self._get(template_id)
        self._check_owner(template, user, "edit")
        _validate_choices(data.visibility, data.availableFor, data.defaultPriority)

        provided = data.model_dump(exclude_unset=True)
        if data.name:
            template.name = data.name
        if "description" in provided:
            template.description = data.description
        if "documentType" in provided:
            template.document_type = data.documentType
        if "integrationType" in provided:
            template.integration_type = data.integrationType
        if "actionCategory" in provided:
            template.action_category = data.actionCategory
        if data.defaultPriority:
            template.default_priority = data.defaultPriority
        if data.defaultDueInDays:
            template.default_due_in_days = data.defaultDueInDays
        if data.visibility:
            template.visibility = data.visibility
        if data.availableFor:
            template.available_for = data.availableFor
        if data.active is not None:
            template.active = data.active

        template = self.repo.save(self.db, template)
        return template_to_dict(template)

    def delete_template(self, template_id: int, user: User) -> tuple[str, Optional[dict]]:
        """Soft delete while tasks still reference the template, hard delete otherwise"""
        template = self._get(template_id)
        self._check_owner(template, user, "delete")

        in_use = len(self.repo.tasks_using(self.db, template.id))
        if in_use > 0:
            template.active = False
            self.repo.save(self.db, template)
            return (
                f"Template marked as inactive. {in_use} tasks are using this template.",
                {"templateId": template.id, "active": False, "tasksUsingTemplate": in_use},
            )

        self.repo.delete(self.db, template)
        logger.info(f"🗑️ Task template {template_id} deleted by {user.email}")
        return "Template deleted successfully", None

    def get_template_stats(self, template_id: int) -> dict:
        template = self._get(template_id)
        tasks = self.repo.tasks_using(self.db, template.id)

        return {
            "template": {"id": template.id, "name": template.name, "category": template.category},
            "stats": {
                "totalUsage": template.usage_count,
                "lastUsed": template.last_used_at,
                "tasksByStatus": {s.value: sum(1 for t in tasks if t.status == s.value) for s in TaskStatus},
                "recentTasks": [
                    {"id": t.id, "status": t.status, "createdAt": t.created_at, "completedAt": t.completed_at}
                    for t in tasks[:10]
                ],
            },
        }
