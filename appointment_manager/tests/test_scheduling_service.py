from __future__ import annotations

from datetime import date, time
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session, sessionmaker

from appointment_manager.activity import get_recent_activity
from appointment_manager.domain.scheduling.queue import AppointmentQueue
from appointment_manager.domain.scheduling.schemas import AppointmentCreate, AppointmentUpdate
from appointment_manager.domain.scheduling.service import SchedulingService
from appointment_manager.errors import (
    AlreadyAssigned,
    CapacityExceeded,
    InvalidInput,
    NoEligibleAppointment,
    NotFound,
    StaffIneligible,
    TimeConflict,
)
from appointment_manager.models import Appointment, QueueEntry

from conftest import OPERATOR

DAY = date(2026, 3, 2)


def _create(
    service: SchedulingService,
    service_id: int,
    staff_id: int | None,
    start: str,
    name: str = "Customer",
    on_date: date = DAY,
) -> dict:
    data = AppointmentCreate(
        customer_name=name,
        service_id=service_id,
        staff_id=staff_id,
        appointment_date=on_date,
        appointment_time=start,
    )
    return service.create_appointment(data, OPERATOR)


# ----------------------------------------------------------------------------
# Booking with a staff member
# ----------------------------------------------------------------------------


def test_booking_with_free_staff_is_scheduled(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    result = _create(service, catalog.haircut, catalog.alice, "09:00")

    assert result["status"] == "scheduled"
    assert result["queue_position"] is None
    assert AppointmentQueue.count(db) == 0
    appointment = service.get_appointment(result["id"])
    assert appointment.staff_id == catalog.alice
    assert appointment.appointment_time == time(9, 0)


def test_overlapping_booking_is_a_time_conflict(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    first = _create(service, catalog.haircut, catalog.alice, "09:00")

    with pytest.raises(TimeConflict) as exc_info:
        _create(service, catalog.haircut, catalog.alice, "09:15")

    assert exc_info.value.existing_appointment_id == first["id"]
    assert exc_info.value.kind == "time_conflict"
    assert db.query(Appointment).count() == 1


def test_back_to_back_bookings_are_accepted(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    _create(service, catalog.haircut, catalog.alice, "09:00")
    second = _create(service, catalog.haircut, catalog.alice, "09:30")

    assert second["status"] == "scheduled"


def test_booking_beyond_daily_capacity_is_rejected(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.bob, "09:00")

    with pytest.raises(CapacityExceeded, match=r"daily capacity"):
        _create(service, catalog.haircut, catalog.bob, "14:00")

    # Another day is a fresh budget
    other_day = _create(service, catalog.haircut, catalog.bob, "14:00", on_date=date(2026, 3, 3))
    assert other_day["status"] == "scheduled"


def test_capacity_is_checked_before_conflicts(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.bob, "09:00")

    with pytest.raises(CapacityExceeded):
        _create(service, catalog.haircut, catalog.bob, "09:00")


def test_staff_of_the_wrong_type_is_ineligible(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    with pytest.raises(StaffIneligible):
        _create(service, catalog.massage, catalog.alice, "09:00")


def test_staff_on_leave_is_ineligible(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    with pytest.raises(StaffIneligible, match=r"on_leave"):
        _create(service, catalog.haircut, catalog.dave, "09:00")


def test_unknown_service_or_staff_is_not_found(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    with pytest.raises(NotFound, match=r"Service"):
        _create(service, 999, catalog.alice, "09:00")
    with pytest.raises(NotFound, match=r"Staff"):
        _create(service, catalog.haircut, 999, "09:00")


def test_booking_past_midnight_is_invalid(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    with pytest.raises(InvalidInput, match=r"past midnight"):
        _create(service, catalog.coloring, catalog.alice, "23:00")
    with pytest.raises(InvalidInput):
        _create(service, catalog.coloring, None, "23:00")


# ----------------------------------------------------------------------------
# Queue admission and assignment
# ----------------------------------------------------------------------------


def test_booking_without_staff_joins_the_queue(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    first = _create(service, catalog.haircut, None, "09:00", name="Ann")
    second = _create(service, catalog.massage, None, "09:00", name="Ben")

    assert first["status"] == "queued"
    assert first["queue_position"] == 1
    assert second["queue_position"] == 2
    appointment = service.get_appointment(first["id"])
    assert appointment.staff_id is None
    assert [entry.customer_name for entry in service.list_queue()] == ["Ann", "Ben"]


def test_assign_from_queue_schedules_and_dequeues(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")

    appointment = service.assign_from_queue(queued["id"], catalog.alice, OPERATOR)

    assert appointment.status == "scheduled"
    assert appointment.staff_id == catalog.alice
    assert AppointmentQueue.count(db) == 0


def test_assign_from_queue_twice_is_already_assigned(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")
    service.assign_from_queue(queued["id"], catalog.alice, OPERATOR)

    with pytest.raises(AlreadyAssigned):
        service.assign_from_queue(queued["id"], catalog.bob, OPERATOR)


def test_assign_from_queue_checks_eligibility(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.massage, None, "09:00")

    with pytest.raises(StaffIneligible):
        service.assign_from_queue(queued["id"], catalog.alice, OPERATOR)

    assert service.get_appointment(queued["id"]).status == "queued"
    assert AppointmentQueue.count(db) == 1


def test_assign_to_staff_at_capacity_leaves_appointment_queued(
    db: Session, catalog: SimpleNamespace
) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.bob, "09:00")
    queued = _create(service, catalog.haircut, None, "11:00")

    with pytest.raises(CapacityExceeded):
        service.assign_from_queue(queued["id"], catalog.bob, OPERATOR)

    assert service.get_appointment(queued["id"]).status == "queued"
    assert [entry.appointment_id for entry in service.list_queue()] == [queued["id"]]


def test_assign_from_queue_checks_time_conflicts(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.alice, "09:00")
    queued = _create(service, catalog.haircut, None, "09:15")

    with pytest.raises(TimeConflict):
        service.assign_from_queue(queued["id"], catalog.alice, OPERATOR)


def test_auto_assign_takes_earliest_matching_entry(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    massage = _create(service, catalog.massage, None, "09:00", name="Ann")
    haircut = _create(service, catalog.haircut, None, "10:00", name="Ben")

    appointment = service.auto_assign(catalog.alice, OPERATOR)

    assert appointment.id == haircut["id"]
    assert appointment.staff_id == catalog.alice
    remaining = service.list_queue()
    assert [entry.appointment_id for entry in remaining] == [massage["id"]]
    assert remaining[0].position == 1


def test_auto_assign_with_nothing_eligible(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.massage, None, "09:00")

    with pytest.raises(NoEligibleAppointment):
        service.auto_assign(catalog.alice, OPERATOR)


def test_auto_assign_to_staff_on_leave_is_ineligible(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, None, "09:00")

    with pytest.raises(StaffIneligible):
        service.auto_assign(catalog.dave, OPERATOR)


# ----------------------------------------------------------------------------
# Updates
# ----------------------------------------------------------------------------


def test_giving_staff_to_a_queued_appointment_assigns_it(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")

    updated = service.update_appointment(
        queued["id"], AppointmentUpdate(staff_id=catalog.alice), OPERATOR
    )

    assert updated.status == "scheduled"
    assert updated.staff_id == catalog.alice
    assert db.query(QueueEntry).count() == 0


def test_moving_into_an_occupied_slot_is_a_conflict(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.alice, "09:00")
    second = _create(service, catalog.haircut, catalog.alice, "10:00")

    with pytest.raises(TimeConflict):
        service.update_appointment(second["id"], AppointmentUpdate(appointment_time="09:15"), OPERATOR)

    assert service.get_appointment(second["id"]).appointment_time == time(10, 0)


def test_rescheduling_within_own_window_is_allowed(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    booked = _create(service, catalog.haircut, catalog.bob, "09:00")

    updated = service.update_appointment(
        booked["id"], AppointmentUpdate(appointment_time="09:15"), OPERATOR
    )

    assert updated.appointment_time == time(9, 15)


def test_reassigning_to_staff_at_capacity_is_rejected(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.bob, "09:00")
    booked = _create(service, catalog.haircut, catalog.alice, "11:00")

    with pytest.raises(CapacityExceeded):
        service.update_appointment(booked["id"], AppointmentUpdate(staff_id=catalog.bob), OPERATOR)


def test_status_workflow_on_update(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    booked = _create(service, catalog.haircut, catalog.alice, "09:00")

    completed = service.update_appointment(booked["id"], AppointmentUpdate(status="completed"), OPERATOR)
    assert completed.status == "completed"

    with pytest.raises(InvalidInput, match=r"Cannot change appointment status"):
        service.update_appointment(booked["id"], AppointmentUpdate(status="scheduled"), OPERATOR)


def test_cancelling_frees_capacity(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    booked = _create(service, catalog.haircut, catalog.bob, "09:00")

    service.update_appointment(booked["id"], AppointmentUpdate(status="cancelled"), OPERATOR)
    again = _create(service, catalog.haircut, catalog.bob, "09:00")

    assert again["status"] == "scheduled"


def test_cancelling_a_queued_appointment_dequeues_it(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")

    cancelled = service.update_appointment(queued["id"], AppointmentUpdate(status="cancelled"), OPERATOR)

    assert cancelled.status == "cancelled"
    assert cancelled.staff_id is None
    assert service.list_queue() == []


def test_scheduling_without_staff_is_invalid(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")

    with pytest.raises(InvalidInput, match=r"staff member"):
        service.update_appointment(queued["id"], AppointmentUpdate(status="scheduled"), OPERATOR)


def test_removing_staff_from_assigned_appointment_is_invalid(
    db: Session, catalog: SimpleNamespace
) -> None:
    service = SchedulingService(db)
    booked = _create(service, catalog.haircut, catalog.alice, "09:00")

    with pytest.raises(InvalidInput):
        service.update_appointment(booked["id"], AppointmentUpdate(staff_id=None), OPERATOR)


def test_update_unknown_appointment_is_not_found(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)

    with pytest.raises(NotFound):
        service.update_appointment(999, AppointmentUpdate(customer_name="X"), OPERATOR)


# ----------------------------------------------------------------------------
# Delete, conflict probe, activity log
# ----------------------------------------------------------------------------


def test_deleting_a_queued_appointment_removes_its_entry(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00")
    booked = _create(service, catalog.haircut, catalog.alice, "09:00")

    service.delete_appointment(queued["id"], OPERATOR)
    service.delete_appointment(booked["id"], OPERATOR)

    assert db.query(Appointment).count() == 0
    assert db.query(QueueEntry).count() == 0
    with pytest.raises(NotFound):
        service.delete_appointment(queued["id"], OPERATOR)


def test_check_conflict_reports_the_blocking_appointment(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    booked = _create(service, catalog.coloring, catalog.alice, "09:00")

    existing = service.check_conflict(catalog.alice, DAY, time(10, 0), catalog.haircut)
    assert existing is not None
    assert existing.id == booked["id"]

    assert service.check_conflict(catalog.alice, DAY, time(10, 30), catalog.haircut) is None
    assert (
        service.check_conflict(
            catalog.alice, DAY, time(10, 0), catalog.haircut, exclude_appointment_id=booked["id"]
        )
        is None
    )


def test_every_mutation_is_logged(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    queued = _create(service, catalog.haircut, None, "09:00", name="Ann")
    service.auto_assign(catalog.alice, OPERATOR)
    service.delete_appointment(queued["id"], OPERATOR)

    actions = [entry.action for entry in get_recent_activity(db)]
    assert actions == [
        'Appointment for "Ann" deleted by frontdesk@clinic.test',
        'Appointment for "Ann" auto-assigned to Alice',
        'Appointment for "Ann" added to queue at position 1',
    ]
    assert get_recent_activity(db)[0].actor == "frontdesk@clinic.test"


def test_failed_operations_are_not_logged(db: Session, catalog: SimpleNamespace) -> None:
    service = SchedulingService(db)
    _create(service, catalog.haircut, catalog.bob, "09:00")

    with pytest.raises(CapacityExceeded):
        _create(service, catalog.haircut, catalog.bob, "10:00")

    assert len(get_recent_activity(db)) == 1


# ----------------------------------------------------------------------------
# Changes made by another request between load and lock
# ----------------------------------------------------------------------------


class _AssignedAfterLoad(SchedulingService):
    """Another session assigns the appointment right after this service loads it"""

    def __init__(self, db: Session, factory: sessionmaker, staff_id: int) -> None:
        super().__init__(db)
        self.factory = factory
        self.staff_id = staff_id

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = super().get_appointment(appointment_id)
        other = self.factory()
        try:
            SchedulingService(other).assign_from_queue(appointment_id, self.staff_id, OPERATOR)
        finally:
            other.close()
        return appointment


class _DeletedDuringValidation(SchedulingService):
    """Another session deletes the appointment while this one validates the assignment"""

    def __init__(self, db: Session, factory: sessionmaker, appointment_id: int) -> None:
        super().__init__(db)
        self.factory = factory
        self.appointment_id = appointment_id

    def _validate_assignment(self, *args, **kwargs) -> None:
        super()._validate_assignment(*args, **kwargs)
        other = self.factory()
        try:
            SchedulingService(other).delete_appointment(self.appointment_id, OPERATOR)
        finally:
            other.close()


def test_status_update_keeps_staff_assigned_after_load(
    db: Session, session_factory: sessionmaker, catalog: SimpleNamespace
) -> None:
    queued = _create(SchedulingService(db), catalog.haircut, None, "09:00")

    service = _AssignedAfterLoad(db, session_factory, catalog.alice)
    updated = service.update_appointment(queued["id"], AppointmentUpdate(status="completed"), OPERATOR)

    assert updated.status == "completed"
    assert updated.staff_id == catalog.alice
    assert AppointmentQueue.count(db) == 0


def test_assign_of_appointment_deleted_meanwhile_is_not_found(
    db: Session, session_factory: sessionmaker, catalog: SimpleNamespace
) -> None:
    queued = _create(SchedulingService(db), catalog.haircut, None, "09:00")

    service = _DeletedDuringValidation(db, session_factory, queued["id"])
    with pytest.raises(NotFound):
        service.assign_from_queue(queued["id"], catalog.alice, OPERATOR)

    assert db.query(Appointment).count() == 0
