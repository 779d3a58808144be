"""
Conflict detector

The database query only narrows candidates to the same staff member, same
date and a blocking status; the overlap decision itself is the pure
Interval.overlaps test, evaluated with each existing appointment's own
service duration.
"""

import logging
from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment
from .status import NON_BLOCKING_STATUSES
from .timeslots import Interval

logger = logging.getLogger(__name__)


class ConflictDetector:
    @staticmethod
    def candidates(
        db: Session, staff_id: int, on_date: date, exclude_appointment_id: Optional[int] = None
    ) -> list[Appointment]:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.service))
            .filter(
                Appointment.staff_id == staff_id,
                Appointment.appointment_date == on_date,
                Appointment.status.notin_(NON_BLOCKING_STATUSES),
            )
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.appointment_time).all()

    @classmethod
    def find_conflict(
        cls,
        db: Session,
        staff_id: int,
        on_date: date,
        start: time,
        duration_minutes: int,
        exclude_appointment_id: Optional[int] = None,
    ) -> Optional[Appointment]:
        """
        Return an existing appointment whose window overlaps the candidate, or None.

        Raises:
            ValueError: If the candidate window runs past midnight
        """
        candidate = Interval.from_start(start, duration_minutes)

        for existing in cls.candidates(db, staff_id, on_date, exclude_appointment_id):
            existing_window = Interval.from_start(existing.appointment_time, existing.service.duration)
            if candidate.overlaps(existing_window):
                logger.debug(
                    f"Candidate {candidate} overlaps appointment {existing.id} ({existing_window})"
                )
                return existing

        return None
