import pytest
from fastapi import HTTPException

from plutify.domain.tasks.state_machine import (
    ALLOWED_TRANSITIONS,
    check_status_change,
    validate_status_transition,
)
from plutify.models_tasks import TaskStatus
from plutify.roles import Role


@pytest.mark.parametrize(
    "current, target",
    [
        ("NOT_STARTED", "IN_PROGRESS"),
        ("IN_PROGRESS", "PENDING_REVIEW"),
        ("IN_PROGRESS", "COMPLETED"),
        ("PENDING_REVIEW", "NEEDS_REVISION"),
        ("PENDING_REVIEW", "COMPLETED"),
        ("NEEDS_REVISION", "IN_PROGRESS"),
    ],
)
def test_legal_edges(current, target):
    assert validate_status_transition(current, target) is True


@pytest.mark.parametrize(
    "current, target",
    [
        ("NOT_STARTED", "COMPLETED"),
        ("NOT_STARTED", "PENDING_REVIEW"),
        ("NEEDS_REVISION", "COMPLETED"),
        ("PENDING_REVIEW", "IN_PROGRESS"),
    ],
)
def test_illegal_edges(current, target):
    assert validate_status_transition(current, target) is False


@pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.CANCELLED])
def test_terminal_statuses_have_no_outgoing_edges(terminal):
    assert ALLOWED_TRANSITIONS[terminal] == frozenset()
    for target in TaskStatus:
        with pytest.raises(HTTPException) as exc:
            check_status_change(Role.STAFF, terminal.value, target.value)
        assert exc.value.status_code == 400
        assert exc.value.detail["code"] == "INVALID_TRANSITION"


def test_client_cannot_complete():
    with pytest.raises(HTTPException) as exc:
        check_status_change(Role.CLIENT, "IN_PROGRESS", "COMPLETED")
    assert exc.value.status_code == 403


def test_client_role_check_happens_before_transition_check():
    # NOT_STARTED -> COMPLETED is also an illegal edge; the role denial wins
    with pytest.raises(HTTPException) as exc:
        check_status_change(Role.CLIENT, "NOT_STARTED", "COMPLETED")
    assert exc.value.status_code == 403


def test_client_moves_through_allowed_subset():
    assert check_status_change(Role.CLIENT, "NOT_STARTED", "IN_PROGRESS") is TaskStatus.IN_PROGRESS
    assert check_status_change(Role.CLIENT, "IN_PROGRESS", "PENDING_REVIEW") is TaskStatus.PENDING_REVIEW


def test_admin_bypasses_transition_table():
    assert check_status_change(Role.ADMIN, "COMPLETED", "IN_PROGRESS") is TaskStatus.IN_PROGRESS


def test_staff_follows_transition_table():
    with pytest.raises(HTTPException) as exc:
        check_status_change(Role.STAFF, "NOT_STARTED", "COMPLETED")
    assert exc.value.detail["from"] == "NOT_STARTED"
    assert exc.value.detail["to"] == "COMPLETED"


def test_unknown_status_is_rejected():
    with pytest.raises(HTTPException) as exc:
        check_status_change(Role.ADMIN, "NOT_STARTED", "DONE")
    assert exc.value.status_code == 400
