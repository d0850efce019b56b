"""Task template repository"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_tasks import Task, TaskTemplate


class TaskTemplateRepository:
    """Repository for task template database operations"""

    @staticmethod
    def get(db: Session, template_id: int) -> Optional[TaskTemplate]:
        return db.get(TaskTemplate, template_id)

    @staticmethod
    def list_visible(db: Session, user_id: int, category: Optional[str], active: bool) -> list[TaskTemplate]:
        """SYSTEM and ORGANIZATION templates, plus PRIVATE ones created by the user"""
        query = db.query(TaskTemplate).filter(
            TaskTemplate.active.is_(active),
            or_(
                TaskTemplate.visibility.in_(("SYSTEM", "ORGANIZATION")),
                (TaskTemplate.visibility == "PRIVATE") & (TaskTemplate.created_by == user_id),
            ),
        )
        if category:
            query = query.filter(TaskTemplate.category == category)
        return query.order_by(
            TaskTemplate.is_system_template.desc(),
            TaskTemplate.usage_count.desc(),
            TaskTemplate.name.asc(),
        ).all()

    @staticmethod
    def create(db: Session, **fields) -> TaskTemplate:
        template = TaskTemplate(**fields)
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def save(db: Session, template: TaskTemplate) -> TaskTemplate:
        db.commit()
        db.refresh(template)
        return template

    @staticmethod
    def delete(db: Session, template: TaskTemplate) -> None:
        db.delete(template)
        db.commit()

    @staticmethod
    def tasks_using(db: Session, template_id: int) -> list[Task]:
        return (
            db.query(Task)
            .filter(Task.template_id == template_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .all()
        )
