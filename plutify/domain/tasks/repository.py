"""Task repository - Database operations for tasks"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from ...models import AssignClient, User
from ...models_tasks import Task, TaskStatus, TaskTemplate
from ...roles import Role

OPEN_STATUSES_EXCLUDED = (TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value)

SORT_COLUMNS = {
    "dueDate": Task.due_date,
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "priority": Task.priority,
    "status": Task.status,
    "title": Task.title,
}


class TaskRepository:
    """Repository for task database operations"""

    @staticmethod
    def get_task(db: Session, task_id: int) -> Optional[Task]:
        return db.get(Task, task_id)

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.get(User, user_id)

    @staticmethod
    def get_staff_assignment(db: Session, client_id: int) -> Optional[AssignClient]:
        """Earliest staff assignment for a client"""
        return (
            db.query(AssignClient)
            .filter(AssignClient.client_id == client_id)
            .order_by(AssignClient.id)
            .first()
        )

    @staticmethod
    def assigned_client_ids(db: Session, staff_id: int) -> list[int]:
        rows = db.query(AssignClient.client_id).filter(AssignClient.staff_id == staff_id).all()
        return [row[0] for row in rows]

    @staticmethod
    def create_task(db: Session, task: Task) -> Task:
        db.add(task)
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def save(db: Session, task: Task) -> Task:
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def delete_task(db: Session, task: Task) -> None:
        db.delete(task)
        db.commit()

    @staticmethod
    def record_template_use(db: Session, template_id: int) -> Optional[TaskTemplate]:
        template = db.get(TaskTemplate, template_id)
        if template:
            template.usage_count = (template.usage_count or 0) + 1
            template.last_used_at = datetime.utcnow()
        return template

    @staticmethod
    def scoped_query(db: Session, user: User) -> Query:
        """Tasks the user may see: admin all, staff assigned clients or own, client own"""
        query = db.query(Task)
        match user.role:
            case Role.ADMIN:
                return query
            case Role.STAFF:
                client_ids = TaskRepository.assigned_client_ids(db, user.id)
                return query.filter(or_(Task.client_id.in_(client_ids), Task.assigned_to == user.id))
            case Role.CLIENT:
                return query.filter(Task.assigned_to == user.id)

    @staticmethod
    def open_overdue(query: Query, now: datetime) -> Query:
        return query.filter(Task.due_date < now, Task.status.notin_(OPEN_STATUSES_EXCLUDED))

    @staticmethod
    def open_due_between(query: Query, start: datetime, end: datetime) -> Query:
        return query.filter(
            Task.due_date >= start,
            Task.due_date <= end,
            Task.status.notin_(OPEN_STATUSES_EXCLUDED),
        )

    @staticmethod
    def page(query: Query, sort_by: str, sort_order: str, offset: int, limit: int) -> list[Task]:
        column = SORT_COLUMNS.get(sort_by, Task.due_date)
        ordering = column.desc() if sort_order == "desc" else column.asc()
        return query.order_by(ordering, Task.id).offset(offset).limit(limit).all()
