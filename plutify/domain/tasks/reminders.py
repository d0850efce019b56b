"""Due-soon and overdue reminders for open tasks (run hourly by the worker)"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...email_service import send_task_reminder_email
from ...models_tasks import Task
from ..notifications.service import create_notification
from .repository import TaskRepository

logger = logging.getLogger(__name__)

DUE_SOON_WINDOW = timedelta(hours=24)
OVERDUE_REMINDER_INTERVAL = timedelta(hours=24)


async def _remind(db: Session, task: Task, overdue: bool) -> bool:
    assignee = task.assignee
    if not assignee or not assignee.active:
        return False

    title = "Task overdue" if overdue else "Task due soon"
    create_notification(
        db,
        assignee.id,
        "task_overdue" if overdue else "task_due_soon",
        title,
        task.title,
        {"taskId": task.id, "dueDate": task.due_date.isoformat()},
    )
    try:
        await send_task_reminder_email(
            to=assignee.email,
            user_name=assignee.first_name,
            task_title=task.title,
            due_date=task.due_date.strftime("%B %d, %Y"),
            overdue=overdue,
        )
    except Exception as e:
        logger.error(f"❌ Reminder email for task {task.id} to {assignee.email} failed: {e}")
    return True


async def send_task_reminders(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Send one due-soon reminder per task and at most one overdue reminder per
    task per day. Returns counts of reminders sent.
    """
    now = now or datetime.utcnow()
    base = db.query(Task)

    due_soon = (
        TaskRepository.open_due_between(base, now, now + DUE_SOON_WINDOW)
        .filter(Task.due_soon_sent.is_(False))
        .all()
    )
    sent_due_soon = 0
    for task in due_soon:
        if await _remind(db, task, overdue=False):
            sent_due_soon += 1
        task.due_soon_sent = True
    db.commit()

    overdue = (
        TaskRepository.open_overdue(base, now)
        .filter(
            or_(
                Task.last_overdue_reminder_sent.is_(None),
                Task.last_overdue_reminder_sent <= now - OVERDUE_REMINDER_INTERVAL,
            )
        )
        .all()
    )
    sent_overdue = 0
    for task in overdue:
        if await _remind(db, task, overdue=True):
            sent_overdue += 1
        task.last_overdue_reminder_sent = now
    db.commit()

    return {"dueSoon": sent_due_soon, "overdue": sent_overdue}
