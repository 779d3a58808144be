"""
Scheduling service - booking, queue admission and staff assignment

Every operation that commits a staff assignment runs its capacity and conflict
checks and its write inside scheduling_lock("staff:<id>"), so two requests for
the same staff member can never both pass validation and both commit.
Queue admission runs under scheduling_lock("queue") so positions stay unique.
"""

import logging
from contextlib import contextmanager, nullcontext
from datetime import date, time
from typing import Optional

from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...activity import record_activity
from ...auth import Operator
from ...errors import (
    AlreadyAssigned,
    CapacityExceeded,
    InvalidInput,
    LockUnavailable,
    NoEligibleAppointment,
    NotFound,
    StaffIneligible,
    TimeConflict,
)
from ...locks import QUEUE_LOCK_KEY, scheduling_lock, staff_lock_key
from ...models import Appointment, Service, Staff
from ..catalog.repository import ServiceRepository
from ..staff.repository import StaffRepository
from .capacity import CapacityChecker
from .conflicts import ConflictDetector
from .queue import AppointmentQueue, QueuedAppointment
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentUpdate
from .status import CAPACITY_STATUSES, AppointmentStatus, validate_transition
from .timeslots import Interval

logger = logging.getLogger(__name__)

STAFF_AVAILABLE = "available"

# Times update_appointment re-picks its staff lock when the appointment is reassigned meanwhile
STAFF_LOCK_ATTEMPTS = 3


class SchedulingService:
    """Service layer for appointment booking and assignment"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AppointmentRepository()
        self.queue = AppointmentQueue()
        self.capacity = CapacityChecker()
        self.conflicts = ConflictDetector()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self, description: str):
        """Commit on success; roll back on any failure and re-raise it"""
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Database error while {description}: {e}")
            raise
        except Exception:
            self.db.rollback()
            raise

    @staticmethod
    def _actor(operator: Optional[Operator]) -> Optional[str]:
        return operator.email if operator else None

    def _get_service(self, service_id: int) -> Service:
        service = ServiceRepository.get_service_by_id(self.db, service_id)
        if not service:
            raise NotFound("Service not found")
        return service

    def _get_staff(self, staff_id: int, for_update: bool = False) -> Staff:
        if for_update:
            staff = StaffRepository.get_staff_for_update(self.db, staff_id)
        else:
            staff = StaffRepository.get_staff_by_id(self.db, staff_id)
        if not staff:
            raise NotFound("Staff not found")
        return staff

    @staticmethod
    def _window(start: time, duration: int) -> Interval:
        try:
            return Interval.from_start(start, duration)
        except ValueError as e:
            raise InvalidInput(str(e)) from e

    @staticmethod
    def _check_eligibility(staff: Staff, service: Service) -> None:
        if staff.service_type != service.required_staff_type:
            raise StaffIneligible(
                f"Staff is not eligible for this service: {service.name} requires "
                f"{service.required_staff_type}, {staff.name} is {staff.service_type}"
            )
        if staff.status != STAFF_AVAILABLE:
            raise StaffIneligible(f"{staff.name} is not available ({staff.status})")

    def _validate_assignment(
        self,
        staff: Staff,
        service: Service,
        on_date: date,
        start: time,
        exclude_appointment_id: Optional[int] = None,
        check_eligibility: bool = True,
        check_capacity: bool = True,
    ) -> None:
        """
        Raise if `staff` cannot take an appointment for `service` at (on_date, start).
        Must be called while holding the staff member's scheduling lock.
        """
        if check_eligibility:
            self._check_eligibility(staff, service)

        self._window(start, service.duration)

        if check_capacity and not self.capacity.has_capacity(
            self.db, staff, on_date, exclude_appointment_id
        ):
            logger.warning(f"⚠️ Staff {staff.id} is at capacity on {on_date}")
            raise CapacityExceeded(
                f"Staff has reached daily capacity: {staff.name} already has "
                f"{staff.daily_capacity} appointment(s) on {on_date.isoformat()}"
            )

        existing = self.conflicts.find_conflict(
            self.db, staff.id, on_date, start, service.duration, exclude_appointment_id
        )
        if existing:
            logger.warning(
                f"⚠️ Time conflict for staff {staff.id} on {on_date} at {start}: "
                f"appointment {existing.id}"
            )
            raise TimeConflict(
                f"Time conflict with existing appointment #{existing.id} for "
                f"{existing.customer_name} at {existing.appointment_time.strftime('%H:%M')}",
                existing_appointment_id=existing.id,
            )

    def _reload(self, appointment: Appointment) -> None:
        """Re-read an appointment once its lock is held"""
        try:
            self.db.refresh(appointment)
        except InvalidRequestError as e:
            raise NotFound("Appointment not found") from e

    def _claim_from_queue(self, appointment: Appointment, staff: Staff) -> None:
        """Give a queued appointment to `staff` and remove it from the queue"""
        appointment_id = appointment.id
        if not self.repo.claim_unassigned(self.db, appointment_id, staff.id):
            if not self.repo.appointment_exists(self.db, appointment_id):
                raise NotFound("Appointment not found")
            raise AlreadyAssigned()
        self.db.expire(appointment)
        self.queue.dequeue(self.db, appointment_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment_by_id(self.db, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found")
        return appointment

    def list_appointments(
        self,
        on_date: Optional[date] = None,
        staff_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        return self.repo.get_appointments(self.db, on_date, staff_id, status)

    def list_queue(self) -> list[QueuedAppointment]:
        return self.queue.list_ordered(self.db)

    def check_conflict(
        self,
        staff_id: int,
        on_date: date,
        start: time,
        service_id: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """Read-only check: the appointment the candidate would collide with, if any"""
        self._get_staff(staff_id)
        service = self._get_service(service_id)
        self._window(start, service.duration)
        return self.conflicts.find_conflict(
            self.db, staff_id, on_date, start, service.duration, exclude_appointment_id
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_appointment(self, data: AppointmentCreate, operator: Optional[Operator] = None) -> dict:
        """Book with the given staff member, or admit to the queue when no staff is given"""
        service = self._get_service(data.service_id)
        self._window(data.appointment_time, service.duration)
        actor = self._actor(operator)

        if data.staff_id is None:
            with scheduling_lock(QUEUE_LOCK_KEY), self._transaction("queueing appointment"):
                appointment = self.repo.add_appointment(
                    self.db,
                    customer_name=data.customer_name,
                    service_id=service.id,
                    staff_id=None,
                    appointment_date=data.appointment_date,
                    appointment_time=data.appointment_time,
                    status=AppointmentStatus.QUEUED.value,
                )
                position = self.queue.enqueue(self.db, appointment.id)
                record_activity(
                    self.db,
                    f'Appointment for "{data.customer_name}" added to queue at position {position}',
                    actor,
                )

            logger.info(f"✅ Appointment {appointment.id} queued at position {position}")
            return {
                "id": appointment.id,
                "status": AppointmentStatus.QUEUED.value,
                "message": "Appointment added to queue",
                "queue_position": position,
            }

        with scheduling_lock(staff_lock_key(data.staff_id)), self._transaction("booking appointment"):
            staff = self._get_staff(data.staff_id, for_update=True)
            self._validate_assignment(staff, service, data.appointment_date, data.appointment_time)

            appointment = self.repo.add_appointment(
                self.db,
                customer_name=data.customer_name,
                service_id=service.id,
                staff_id=staff.id,
                appointment_date=data.appointment_date,
                appointment_time=data.appointment_time,
                status=AppointmentStatus.SCHEDULED.value,
            )
            record_activity(
                self.db, f'Appointment for "{data.customer_name}" scheduled with {staff.name}', actor
            )

        logger.info(f"✅ Appointment {appointment.id} scheduled with staff {data.staff_id}")
        return {
            "id": appointment.id,
            "status": AppointmentStatus.SCHEDULED.value,
            "message": "Appointment created successfully",
            "queue_position": None,
        }

    def update_appointment(
        self, appointment_id: int, data: AppointmentUpdate, operator: Optional[Operator] = None
    ) -> Appointment:
        """
        Edit an appointment.

        Giving staff to a queued appointment is a queue assignment: it is
        validated like a new booking, becomes scheduled and leaves the queue.
        Other edits that move a staffed appointment (staff, service, date or
        time) are re-validated against the staff member's other appointments.

        When no staff_id is supplied the lock is chosen from the current row;
        if the row's staff changes before the lock is held, the lock is
        released and chosen again.
        """
        appointment = self.get_appointment(appointment_id)
        staff_supplied = "staff_id" in data.model_fields_set
        actor = self._actor(operator)

        for attempt in range(STAFF_LOCK_ATTEMPTS):
            if attempt:
                self._reload(appointment)
            target_staff_id = data.staff_id if staff_supplied else appointment.staff_id
            lock = scheduling_lock(staff_lock_key(target_staff_id)) if target_staff_id else nullcontext()

            with lock, self._transaction("updating appointment"):
                self._reload(appointment)
                if staff_supplied or appointment.staff_id == target_staff_id:
                    self._apply_update(appointment, data, target_staff_id, staff_supplied, actor)
                    break

            logger.warning(
                f"⚠️ Staff of appointment {appointment_id} changed while waiting for its lock, retrying"
            )
        else:
            raise LockUnavailable("Appointment is being reassigned, try again")

        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} updated (status={appointment.status})")
        return appointment

    def _apply_update(
        self,
        appointment: Appointment,
        data: AppointmentUpdate,
        target_staff_id: Optional[int],
        staff_supplied: bool,
        actor: Optional[str],
    ) -> None:
        """Validate and stage an update; the caller holds the lock for target_staff_id"""
        was_queued = appointment.staff_id is None

        if staff_supplied and data.staff_id is None and not was_queued:
            raise InvalidInput("Staff cannot be removed from an assigned appointment")

        service = (
            self._get_service(data.service_id) if data.service_id is not None else appointment.service
        )
        customer_name = data.customer_name or appointment.customer_name
        on_date = data.appointment_date or appointment.appointment_date
        start = data.appointment_time or appointment.appointment_time
        requested_status = data.status.value if data.status else appointment.status
        is_queue_assignment = was_queued and target_staff_id is not None

        if is_queue_assignment:
            if appointment.status != AppointmentStatus.QUEUED.value:
                raise InvalidInput("Only queued appointments can be assigned to staff")
            if requested_status not in (AppointmentStatus.QUEUED.value, AppointmentStatus.SCHEDULED.value):
                raise InvalidInput("An appointment assigned from the queue becomes scheduled")
            new_status = AppointmentStatus.SCHEDULED
        else:
            new_status = validate_transition(appointment.status, requested_status)
            if new_status == AppointmentStatus.SCHEDULED and target_staff_id is None:
                raise InvalidInput("Assign a staff member to schedule a queued appointment")

        self._window(start, service.duration)

        staff_changed = target_staff_id != appointment.staff_id
        service_changed = service.id != appointment.service_id
        schedule_changed = (
            staff_changed
            or service_changed
            or on_date != appointment.appointment_date
            or start != appointment.appointment_time
        )

        staff = None
        if (
            target_staff_id is not None
            and schedule_changed
            and new_status != AppointmentStatus.CANCELLED
        ):
            staff = self._get_staff(target_staff_id, for_update=True)
            self._validate_assignment(
                staff,
                service,
                on_date,
                start,
                exclude_appointment_id=appointment.id,
                check_eligibility=staff_changed or service_changed,
                check_capacity=new_status.value in CAPACITY_STATUSES,
            )

        if is_queue_assignment:
            self._claim_from_queue(appointment, staff)

        self.repo.apply_updates(
            appointment,
            customer_name=customer_name,
            service_id=service.id,
            staff_id=target_staff_id,
            appointment_date=on_date,
            appointment_time=start,
            status=new_status.value,
        )

        if was_queued and new_status == AppointmentStatus.CANCELLED:
            self.queue.dequeue(self.db, appointment.id)

        if is_queue_assignment:
            record_activity(
                self.db, f'Appointment for "{customer_name}" assigned from queue to {staff.name}', actor
            )
        else:
            record_activity(
                self.db, f'Appointment for "{customer_name}" updated by {actor or "system"}', actor
            )

    def delete_appointment(self, appointment_id: int, operator: Optional[Operator] = None) -> dict:
        appointment = self.get_appointment(appointment_id)
        customer_name = appointment.customer_name
        actor = self._actor(operator)

        with self._transaction("deleting appointment"):
            # No-op for appointments that were never queued or already assigned
            self.queue.dequeue(self.db, appointment.id)
            self.repo.delete_appointment(self.db, appointment)
            record_activity(
                self.db, f'Appointment for "{customer_name}" deleted by {actor or "system"}', actor
            )

        logger.info(f"🗑️ Appointment {appointment_id} deleted")
        return {"message": "Appointment deleted successfully"}

    def assign_from_queue(
        self, appointment_id: int, staff_id: int, operator: Optional[Operator] = None
    ) -> Appointment:
        """Assign one specific queued appointment to a staff member"""
        appointment = self.get_appointment(appointment_id)

        with scheduling_lock(staff_lock_key(staff_id)), self._transaction("assigning from queue"):
            self._reload(appointment)
            if appointment.staff_id is not None:
                raise AlreadyAssigned("Appointment not found in queue or already assigned")
            if appointment.status != AppointmentStatus.QUEUED.value:
                raise InvalidInput(f"Appointment is {appointment.status}, not queued")

            staff = self._get_staff(staff_id, for_update=True)
            self._validate_assignment(
                staff,
                appointment.service,
                appointment.appointment_date,
                appointment.appointment_time,
                exclude_appointment_id=appointment.id,
            )
            customer_name = appointment.customer_name
            self._claim_from_queue(appointment, staff)
            record_activity(
                self.db,
                f'Appointment for "{customer_name}" assigned from queue to {staff.name}',
                self._actor(operator),
            )

        self.db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} assigned from queue to staff {staff_id}")
        return appointment

    def auto_assign(self, staff_id: int, operator: Optional[Operator] = None) -> Appointment:
        """Assign the earliest queued appointment matching the staff member's service type"""
        with scheduling_lock(staff_lock_key(staff_id)), self._transaction("auto-assigning from queue"):
            staff = self._get_staff(staff_id, for_update=True)
            if staff.status != STAFF_AVAILABLE:
                raise StaffIneligible(f"{staff.name} is not available ({staff.status})")

            entry = self.queue.earliest_eligible_for(self.db, staff.service_type)
            if entry is None:
                raise NoEligibleAppointment(
                    f"No eligible appointments in queue for staff type {staff.service_type}"
                )

            appointment = self.get_appointment(entry.appointment_id)
            self._validate_assignment(
                staff,
                appointment.service,
                appointment.appointment_date,
                appointment.appointment_time,
                exclude_appointment_id=appointment.id,
                check_eligibility=False,
            )
            self._claim_from_queue(appointment, staff)
            record_activity(
                self.db,
                f'Appointment for "{entry.customer_name}" auto-assigned to {staff.name}',
                self._actor(operator),
            )

        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} (queue position {entry.position}) auto-assigned to staff {staff_id}"
        )
        return appointment
