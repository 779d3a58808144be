"""Waiting list of appointments without a staff member, ordered by position"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Appointment, QueueEntry, QueueSequence, Service

logger = logging.getLogger(__name__)

SEQUENCE_ROW_ID = 1


@dataclass(frozen=True)
class QueuedAppointment:
    """A queue entry joined with the appointment and service data callers filter on"""

    id: int
    appointment_id: int
    position: int
    customer_name: str
    appointment_date: date
    appointment_time: time
    service_id: int
    service_name: str
    required_staff_type: str


class AppointmentQueue:
    """
    Queue operations. They only stage changes on the session; the caller
    commits, holding locks.QUEUE_LOCK_KEY around enqueue + commit.
    """

    @staticmethod
    def _next_position(db: Session) -> int:
        sequence = (
            db.query(QueueSequence)
            .filter(QueueSequence.id == SEQUENCE_ROW_ID)
            .with_for_update()
            .first()
        )
        if sequence is None:
            # First use: continue after any positions that already exist
            current_max = db.query(func.max(QueueEntry.position)).scalar() or 0
            sequence = QueueSequence(id=SEQUENCE_ROW_ID, last_position=current_max)
            db.add(sequence)

        sequence.last_position += 1
        return sequence.last_position

    @classmethod
    def enqueue(cls, db: Session, appointment_id: int) -> int:
        """Admit an appointment at the back of the queue and return its position"""
        position = cls._next_position(db)
        db.add(QueueEntry(appointment_id=appointment_id, position=position))
        db.flush()
        logger.debug(f"Queued appointment {appointment_id} at position {position}")
        return position

    @staticmethod
    def dequeue(db: Session, appointment_id: int) -> bool:
        """Remove the entry for an appointment; returns False when it was not queued"""
        entry = db.query(QueueEntry).filter(QueueEntry.appointment_id == appointment_id).first()
        if entry is None:
            return False
        db.delete(entry)
        db.flush()
        return True

    @staticmethod
    def _joined_query(db: Session):
        return (
            db.query(
                QueueEntry.id,
                QueueEntry.appointment_id,
                QueueEntry.position,
                Appointment.customer_name,
                Appointment.appointment_date,
                Appointment.appointment_time,
                Service.id.label("service_id"),
                Service.name.label("service_name"),
                Service.required_staff_type,
            )
            .join(Appointment, QueueEntry.appointment_id == Appointment.id)
            .join(Service, Appointment.service_id == Service.id)
        )

    @classmethod
    def list_ordered(cls, db: Session) -> list[QueuedAppointment]:
        rows = cls._joined_query(db).order_by(QueueEntry.position.asc()).all()
        return [QueuedAppointment(*row) for row in rows]

    @classmethod
    def earliest_eligible_for(
        cls, db: Session, required_staff_type: str
    ) -> Optional[QueuedAppointment]:
        """Lowest-position entry whose service needs `required_staff_type`"""
        row = (
            cls._joined_query(db)
            .filter(Service.required_staff_type == required_staff_type)
            .order_by(QueueEntry.position.asc())
            .first()
        )
        return QueuedAppointment(*row) if row else None

    @staticmethod
    def count(db: Session) -> int:
        return db.query(func.count(QueueEntry.id)).scalar() or 0
