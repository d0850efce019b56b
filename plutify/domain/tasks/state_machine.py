"""
Task status state machine

    NOT_STARTED -> IN_PROGRESS -> PENDING_REVIEW -> COMPLETED
                        |               |
                        +-> COMPLETED   +-> NEEDS_REVISION -> IN_PROGRESS

COMPLETED and CANCELLED are terminal. Admins bypass the table; clients may
only move their own tasks into NOT_STARTED, IN_PROGRESS or PENDING_REVIEW.
Approve/reject and the upload auto-advance are forced transitions and do not
go through here.
"""

from ...models_tasks import TaskStatus
from ...responses import api_error
from ...roles import Role

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.NOT_STARTED: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.PENDING_REVIEW, TaskStatus.COMPLETED}),
    TaskStatus.PENDING_REVIEW: frozenset({TaskStatus.NEEDS_REVISION, TaskStatus.COMPLETED}),
    TaskStatus.NEEDS_REVISION: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}

CLIENT_SETTABLE_STATUSES = frozenset(
    {TaskStatus.NOT_STARTED, TaskStatus.IN_PROGRESS, TaskStatus.PENDING_REVIEW}
)


def parse_status(value: str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as e:
        raise api_error(400, f"Invalid status: {value}") from e


def validate_status_transition(current_status: str, new_status: str) -> bool:
    """True if the edge current -> new exists in the transition table"""
    return TaskStatus(new_status) in ALLOWED_TRANSITIONS[TaskStatus(current_status)]


def check_status_change(role: Role, current_status: str, new_status: str) -> TaskStatus:
    """
    Enforce the role policy and transition table for an explicit status change.
    Task ownership is checked beforehand by the task authorizer.

    Raises 403 for a client asking for a status outside its subset, 400 for an
    edge that is not in the table.
    """
    target = parse_status(new_status)
    current = TaskStatus(current_status)

    match role:
        case Role.ADMIN:
            return target
        case Role.STAFF:
            pass
        case Role.CLIENT:
            if target not in CLIENT_SETTABLE_STATUSES:
                raise api_error(
                    403, f"Clients cannot change task status to {target.value}", "STATUS_NOT_ALLOWED"
                )

    if target not in ALLOWED_TRANSITIONS[current]:
        raise api_error(
            400,
            f"Invalid status transition from {current.value} to {target.value}",
            "INVALID_TRANSITION",
            **{"from": current.value, "to": target.value},
        )
    return target
