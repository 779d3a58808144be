"""Appointment status values and the transitions allowed between them"""

from enum import Enum

from ...errors import InvalidInput


class AppointmentStatus(str, Enum):
    QUEUED = "queued"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that consume a slot of the staff member's daily capacity
CAPACITY_STATUSES = (AppointmentStatus.SCHEDULED.value, AppointmentStatus.COMPLETED.value)

# Statuses that never block another appointment's time window
NON_BLOCKING_STATUSES = (AppointmentStatus.CANCELLED.value,)

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    # queued → scheduled only happens through staff assignment
    AppointmentStatus.QUEUED: frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


def can_transition(current: AppointmentStatus, new: AppointmentStatus) -> bool:
    return current == new or new in ALLOWED_TRANSITIONS[current]


def validate_transition(current: str, new: str) -> AppointmentStatus:
    """
    Check a status change and return the new status.

    Raises:
        InvalidInput: For unknown statuses or transitions outside the workflow
    """
    try:
        current_status = AppointmentStatus(current)
        new_status = AppointmentStatus(new)
    except ValueError as e:
        raise InvalidInput(f"Unknown appointment status: {e}") from e

    if not can_transition(current_status, new_status):
        raise InvalidInput(
            f"Cannot change appointment status from {current_status.value} to {new_status.value}"
        )
    return new_status
