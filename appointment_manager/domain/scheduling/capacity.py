"""Capacity checker - daily appointment load per staff member"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Appointment, Staff
from .status import CAPACITY_STATUSES


class CapacityChecker:
    """Counts committed (scheduled/completed) appointments against daily capacity"""

    @staticmethod
    def committed_count(
        db: Session, staff_id: int, on_date: date, exclude_appointment_id: Optional[int] = None
    ) -> int:
        query = db.query(func.count(Appointment.id)).filter(
            Appointment.staff_id == staff_id,
            Appointment.appointment_date == on_date,
            Appointment.status.in_(CAPACITY_STATUSES),
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.scalar() or 0

    @classmethod
    def has_capacity(
        cls,
        db: Session,
        staff: Staff,
        on_date: date,
        exclude_appointment_id: Optional[int] = None,
    ) -> bool:
        return cls.committed_count(db, staff.id, on_date, exclude_appointment_id) < staff.daily_capacity

    @staticmethod
    def load_by_staff(db: Session, on_date: date) -> dict[int, int]:
        """Committed appointment count for every staff member with load on `on_date`"""
        rows = (
            db.query(Appointment.staff_id, func.count(Appointment.id))
            .filter(
                Appointment.staff_id.isnot(None),
                Appointment.appointment_date == on_date,
                Appointment.status.in_(CAPACITY_STATUSES),
            )
            .group_by(Appointment.staff_id)
            .all()
        )
        return {staff_id: count for staff_id, count in rows}
