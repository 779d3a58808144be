"""Staff directory router - read-only endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import Operator, get_current_operator
from ...database import get_db
from ...errors import InvalidInput, NotFound
from ...shared.validators import parse_appointment_date
from ..scheduling.capacity import CapacityChecker
from .repository import StaffRepository
from .schemas import StaffResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["Staff"])


@router.get("", response_model=list[StaffResponse])
def list_staff(
    type: Optional[str] = Query(None, description="Filter by service type"),
    date: Optional[str] = Query(None, description="Include appointment_count for this date"),
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    """List staff, optionally filtered by type, with daily load when a date is given"""
    try:
        on_date = parse_appointment_date(date)
    except ValueError as e:
        raise InvalidInput(str(e)) from e

    staff_members = StaffRepository.list_staff(db, type)
    load = CapacityChecker.load_by_staff(db, on_date) if on_date else {}

    results = []
    for member in staff_members:
        item = StaffResponse.model_validate(member)
        if on_date:
            item.appointment_count = load.get(member.id, 0)
        results.append(item)
    return results


@router.get("/types", response_model=list[str])
def list_staff_types(
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    """Distinct staff service types, alphabetically"""
    return StaffRepository.get_service_types(db)


@router.get("/{staff_id}", response_model=StaffResponse)
def get_staff(
    staff_id: int,
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    staff = StaffRepository.get_staff_by_id(db, staff_id)
    if not staff:
        raise NotFound("Staff not found")
    return staff
