import asyncio
from datetime import datetime, timedelta

import pytest

from plutify.domain.tasks import reminders
from plutify.models import Notification
from plutify.models_tasks import Task

NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_send(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(reminders, "send_task_reminder_email", fake_send)
    return sent


def _task(db_session, assignee, creator, due_in, status="NOT_STARTED"):
    task = Task(
        title=f"Task due {due_in}",
        description="desc",
        task_type="REVIEW",
        status=status,
        assigned_to=assignee.id,
        assigned_by=creator.id,
        assigned_to_role="CLIENT",
        client_id=assignee.id,
        due_date=NOW + due_in,
    )
    db_session.add(task)
    db_session.commit()
    return task


def test_due_soon_reminder_sent_once(db_session, client_user, staff_user, sent_emails):
    _task(db_session, client_user, staff_user, timedelta(hours=6))
    _task(db_session, client_user, staff_user, timedelta(days=3))

    assert asyncio.run(reminders.send_task_reminders(db_session, NOW)) == {"dueSoon": 1, "overdue": 0}
    assert asyncio.run(reminders.send_task_reminders(db_session, NOW)) == {"dueSoon": 0, "overdue": 0}

    assert [e["overdue"] for e in sent_emails] == [False]
    assert db_session.query(Notification).filter(Notification.type == "task_due_soon").count() == 1


def test_overdue_reminder_once_per_day(db_session, client_user, staff_user, sent_emails):
    _task(db_session, client_user, staff_user, -timedelta(days=2))

    assert asyncio.run(reminders.send_task_reminders(db_session, NOW))["overdue"] == 1
    assert asyncio.run(reminders.send_task_reminders(db_session, NOW + timedelta(hours=2)))["overdue"] == 0
    assert asyncio.run(reminders.send_task_reminders(db_session, NOW + timedelta(days=1)))["overdue"] == 1
    assert len(sent_emails) == 2


def test_closed_tasks_are_skipped(db_session, client_user, staff_user, sent_emails):
    _task(db_session, client_user, staff_user, -timedelta(days=2), status="COMPLETED")
    _task(db_session, client_user, staff_user, timedelta(hours=2), status="CANCELLED")

    assert asyncio.run(reminders.send_task_reminders(db_session, NOW)) == {"dueSoon": 0, "overdue": 0}
    assert sent_emails == []


def test_email_failure_still_marks_task(db_session, client_user, staff_user, monkeypatch):
    async def broken(**kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(reminders, "send_task_reminder_email", broken)
    task = _task(db_session, client_user, staff_user, timedelta(hours=1))

    assert asyncio.run(reminders.send_task_reminders(db_session, NOW))["dueSoon"] == 1
    assert task.due_soon_sent is True
