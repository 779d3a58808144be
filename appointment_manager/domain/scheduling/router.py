"""Scheduling routers - appointments, waiting queue and activity log endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import config
from ...activity import get_recent_activity
from ...auth import Operator, get_current_operator
from ...database import get_db
from ...errors import InvalidInput
from ...models import Appointment
from ...shared.validators import parse_appointment_date, parse_appointment_time
from .schemas import (
    ActivityResponse,
    AppointmentCreate,
    AppointmentCreateResponse,
    AppointmentResponse,
    AppointmentUpdate,
    AutoAssignRequest,
    AutoAssignResponse,
    ConflictCheckResponse,
    ManualAssignRequest,
    MessageResponse,
    QueueAssignRequest,
    QueueEntryResponse,
)
from .service import SchedulingService
from .status import AppointmentStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])
queue_router = APIRouter(prefix="/queue", tags=["Queue"])
activity_router = APIRouter(prefix="/activity", tags=["Activity"])


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    """Dependency injection for SchedulingService"""
    return SchedulingService(db)


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    service = appointment.service
    staff = appointment.staff
    return AppointmentResponse(
        id=appointment.id,
        customer_name=appointment.customer_name,
        service_id=appointment.service_id,
        service_name=service.name if service else None,
        duration=service.duration if service else None,
        required_staff_type=service.required_staff_type if service else None,
        staff_id=appointment.staff_id,
        staff_name=staff.name if staff else None,
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        status=appointment.status,
        created_at=appointment.created_at,
    )


def _parse_query_date(value: Optional[str]):
    try:
        return parse_appointment_date(value)
    except ValueError as e:
        raise InvalidInput(str(e)) from e


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.get("", response_model=list[AppointmentResponse])
def list_appointments(
    date: Optional[str] = Query(None, description="YYYY-MM-DD"),
    staff_id: Optional[int] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    _operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """List appointments with optional date, staff and status filters"""
    on_date = _parse_query_date(date)
    appointments = service.list_appointments(on_date, staff_id, status.value if status else None)
    return [to_appointment_response(a) for a in appointments]


@router.post("", response_model=AppointmentCreateResponse, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Book with a staff member, or leave staff_id empty to join the queue"""
    return service.create_appointment(data, operator)


# Declared before /{appointment_id} so "check-conflict" is not parsed as an id
@router.get("/check-conflict", response_model=ConflictCheckResponse)
def check_conflict(
    staff_id: int = Query(...),
    date: str = Query(..., description="YYYY-MM-DD"),
    time: str = Query(..., description="HH:MM"),
    service_id: int = Query(...),
    exclude_id: Optional[int] = Query(None),
    _operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Report whether a candidate booking would overlap one of the staff member's appointments"""
    on_date = _parse_query_date(date)
    try:
        start = parse_appointment_time(time)
    except ValueError as e:
        raise InvalidInput(str(e)) from e
    if on_date is None or start is None:
        raise InvalidInput("date and time are required")

    existing = service.check_conflict(staff_id, on_date, start, service_id, exclude_id)
    if existing is None:
        return ConflictCheckResponse(conflict=False)
    return ConflictCheckResponse(conflict=True, existing_appointment=to_appointment_response(existing))


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    _operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return to_appointment_response(service.get_appointment(appointment_id))


@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Edit an appointment; giving staff to a queued appointment assigns it from the queue"""
    appointment = service.update_appointment(appointment_id, data, operator)
    return to_appointment_response(appointment)


@router.delete("/{appointment_id}", response_model=MessageResponse)
def delete_appointment(
    appointment_id: int,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return service.delete_appointment(appointment_id, operator)


# ============================================================================
# QUEUE
# ============================================================================


@queue_router.get("", response_model=list[QueueEntryResponse])
def list_queue(
    _operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Waiting appointments in queue order"""
    return service.list_queue()


@queue_router.post("", response_model=AutoAssignResponse)
def assign_queue(
    data: QueueAssignRequest,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Assign a specific queued appointment, or the earliest eligible one when none is named"""
    if data.appointment_id is None:
        appointment = service.auto_assign(data.staff_id, operator)
        message = "Appointment auto-assigned from queue"
    else:
        appointment = service.assign_from_queue(data.appointment_id, data.staff_id, operator)
        message = "Appointment assigned from queue"
    return AutoAssignResponse(message=message, appointment_id=appointment.id)


@queue_router.post("/assign", response_model=AppointmentResponse)
def assign_from_queue(
    data: ManualAssignRequest,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.assign_from_queue(data.appointment_id, data.staff_id, operator)
    return to_appointment_response(appointment)


@queue_router.post("/auto-assign", response_model=AutoAssignResponse)
def auto_assign(
    data: AutoAssignRequest,
    operator: Operator = Depends(get_current_operator),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.auto_assign(data.staff_id, operator)
    return AutoAssignResponse(
        message="Appointment auto-assigned from queue", appointment_id=appointment.id
    )


# ============================================================================
# ACTIVITY LOG
# ============================================================================


@activity_router.get("", response_model=list[ActivityResponse])
def list_activity(
    limit: int = Query(config.ACTIVITY_LOG_LIMIT, ge=1, le=100),
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    """Most recent scheduling actions, newest first"""
    return get_recent_activity(db, limit)
