"""Service catalog router - read-only endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import Operator, get_current_operator
from ...database import get_db
from ...errors import NotFound
from .repository import ServiceRepository
from .schemas import ServiceResponse

router = APIRouter(prefix="/services", tags=["Services"])


@router.get("", response_model=list[ServiceResponse])
def list_services(
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    """Get all services ordered by name"""
    return ServiceRepository.get_services(db)


@router.get("/{service_id}", response_model=ServiceResponse)
def get_service(
    service_id: int,
    _operator: Operator = Depends(get_current_operator),
    db: Session = Depends(get_db),
):
    service = ServiceRepository.get_service_by_id(db, service_id)
    if not service:
        raise NotFound("Service not found")
    return service
