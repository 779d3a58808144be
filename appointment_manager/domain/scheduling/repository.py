"""Appointment repository - Database operations for appointments"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment_by_id(db: Session, appointment_id: int) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .options(joinedload(Appointment.service), joinedload(Appointment.staff))
            .filter(Appointment.id == appointment_id)
            .first()
        )

    @staticmethod
    def get_appointments(
        db: Session,
        on_date: Optional[date] = None,
        staff_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Appointment]:
        """Get appointments with optional filters, newest date first then by time"""
        query = db.query(Appointment).options(
            joinedload(Appointment.service), joinedload(Appointment.staff)
        )

        if on_date:
            query = query.filter(Appointment.appointment_date == on_date)
        if staff_id:
            query = query.filter(Appointment.staff_id == staff_id)
        if status:
            query = query.filter(Appointment.status == status)

        return query.order_by(
            Appointment.appointment_date.desc(), Appointment.appointment_time.asc()
        ).all()

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment and assign its id (caller commits)"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def apply_updates(appointment: Appointment, **updates) -> Appointment:
        """Copy fields onto an appointment; None is a legitimate value for staff_id"""
        for key, value in updates.items():
            if hasattr(appointment, key):
                setattr(appointment, key, value)
        return appointment

    @staticmethod
    def claim_unassigned(db: Session, appointment_id: int, staff_id: int) -> bool:
        """
        Set staff and scheduled status only if the appointment still has no staff.
        Returns False when another request assigned it first.
        """
        updated = (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.staff_id.is_(None))
            .update(
                {Appointment.staff_id: staff_id, Appointment.status: "scheduled"},
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def appointment_exists(db: Session, appointment_id: int) -> bool:
        return db.query(Appointment.id).filter(Appointment.id == appointment_id).first() is not None

    @staticmethod
    def delete_appointment(db: Session, appointment: Appointment) -> None:
        db.delete(appointment)
