"""Staff service - a staff member's own clients and dashboard"""

from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import User
from ...models_tasks import Task, TaskStatus
from ...shared.serializers import user_profile
from ..admin.progress import clients_progress
from ..admin.repository import AssignmentRepository
from ..tasks.repository import TaskRepository

RECENT_CLIENTS_LIMIT = 5


class StaffService:
    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentRepository()

    def my_clients(self, staff: User) -> list[dict]:
        assignments = self.assignments.for_staff(self.db, staff.id)
        progress = clients_progress(self.db, [a.client_id for a in assignments])
        return [
            {**user_profile(a.client), "assignedAt": a.created_at, "progress": progress[a.client_id]}
            for a in assignments
        ]

    def dashboard(self, staff: User) -> dict:
        now = datetime.utcnow()
        tasks = TaskRepository.scoped_query(self.db, staff)
        by_status = dict(
            tasks.with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all()
        )
        recent = self.assignments.for_staff(self.db, staff.id, limit=RECENT_CLIENTS_LIMIT)

        return {
            "stats": {
                "assignedClients": self.assignments.count_for_staff(self.db, staff.id),
                "totalTasks": sum(by_status.values()),
                "pendingReview": by_status.get(TaskStatus.PENDING_REVIEW.value, 0),
                "overdueTasks": TaskRepository.open_overdue(tasks, now).count(),
                "dueThisWeek": TaskRepository.open_due_between(tasks, now, now + timedelta(days=7)).count(),
            },
            "recentClients": [{**user_profile(a.client), "assignedAt": a.created_at} for a in recent],
        }
