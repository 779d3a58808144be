"""
Scheduling error taxonomy

Every business-rule failure raised by the scheduling core is a SchedulingError.
They subclass HTTPException so routers can let them propagate untouched;
main.py renders them as {"detail": ..., "error": <kind>}.
"""

from fastapi import HTTPException


class SchedulingError(HTTPException):
    """Base class for business-rule failures"""

    kind = "internal_error"
    status_code = 500
    default_detail = "Server error"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class Unauthorized(SchedulingError):
    kind = "unauthorized"
    status_code = 401
    default_detail = "Unauthorized"


class NotFound(SchedulingError):
    kind = "not_found"
    status_code = 404
    default_detail = "Not found"


class CapacityExceeded(SchedulingError):
    kind = "capacity_exceeded"
    status_code = 409
    default_detail = "Staff has reached daily capacity"


class TimeConflict(SchedulingError):
    kind = "time_conflict"
    status_code = 409
    default_detail = "Time conflict with existing appointment"

    def __init__(self, detail: str | None = None, existing_appointment_id: int | None = None):
        super().__init__(detail)
        self.existing_appointment_id = existing_appointment_id


class StaffIneligible(SchedulingError):
    kind = "staff_ineligible"
    status_code = 400
    default_detail = "Staff is not eligible for this service"


class AlreadyAssigned(SchedulingError):
    kind = "already_assigned"
    status_code = 409
    default_detail = "Appointment is already assigned to a staff member"


class InvalidInput(SchedulingError):
    kind = "invalid_input"
    status_code = 400
    default_detail = "Invalid input"


class NoEligibleAppointment(SchedulingError):
    kind = "no_eligible_appointment"
    status_code = 404
    default_detail = "No eligible appointments in queue for this staff type"


class LockUnavailable(SchedulingError):
    kind = "lock_unavailable"
    status_code = 503
    default_detail = "Scheduling is busy for this staff member, try again"
