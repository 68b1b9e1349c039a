"""
Appointment status lifecycle.

Every status change on an appointment goes through this table:

    waiting      -> in_progress | cancelled
    scheduled    -> in_progress | completed | cancelled
    in_progress  -> completed | cancelled
    completed    -> (terminal)
    cancelled    -> (terminal)
"""

from fastapi import HTTPException

from ...models import Appointment

WAITING = "waiting"
SCHEDULED = "scheduled"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

ALLOWED_TRANSITIONS: dict[str, frozenset] = {
    WAITING: frozenset({IN_PROGRESS, CANCELLED}),
    SCHEDULED: frozenset({IN_PROGRESS, COMPLETED, CANCELLED}),
    IN_PROGRESS: frozenset({COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})
ACTIVE_EMERGENCY_STATUSES = (WAITING, IN_PROGRESS)


def can_transition(current: str, target: str) -> bool:
    """Return True if an appointment in `current` may move to `target`"""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def ensure_transition(appointment: Appointment, target: str) -> None:
    """Raise 409 if the appointment cannot move to `target`"""
    if not can_transition(appointment.status, target):
        raise HTTPException(
            status_code=409,
            detail=f"Appointment {appointment.id} cannot go from '{appointment.status}' to '{target}'",
        )
