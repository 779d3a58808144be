"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...shared.validators import (
    parse_appointment_date,
    parse_appointment_time,
    validate_required_text,
)
from .status import AppointmentStatus


class AppointmentCreate(BaseModel):
    """Schema for booking an appointment; leave staff_id empty to join the queue"""

    customer_name: str
    service_id: int
    staff_id: Optional[int] = None
    appointment_date: date
    appointment_time: time

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        return validate_required_text(v, "Customer name")

    @field_validator("staff_id", mode="before")
    @classmethod
    def empty_staff_means_queue(cls, v):
        # Booking forms send "" for "no preference"
        if v == "" or v == 0:
            return None
        return v

    @field_validator("appointment_date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return parse_appointment_date(v)

    @field_validator("appointment_time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return parse_appointment_time(v)


class AppointmentUpdate(BaseModel):
    """
    Schema for editing an appointment. Omitted fields keep their current value;
    staff_id is only considered when it is present in the payload.
    """

    customer_name: Optional[str] = None
    service_id: Optional[int] = None
    staff_id: Optional[int] = None
    appointment_date: Optional[date] = None
    appointment_time: Optional[time] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("customer_name")
    @classmethod
    def validate_customer_name(cls, v):
        if v is None:
            return v
        return validate_required_text(v, "Customer name")

    @field_validator("staff_id", mode="before")
    @classmethod
    def empty_staff_means_none(cls, v):
        if v == "" or v == 0:
            return None
        return v

    @field_validator("appointment_date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return parse_appointment_date(v)

    @field_validator("appointment_time", mode="before")
    @classmethod
    def validate_time(cls, v):
        return parse_appointment_time(v)


class QueueAssignRequest(BaseModel):
    """Assign a specific queued appointment, or the earliest eligible one when appointment_id is omitted"""

    staff_id: int
    appointment_id: Optional[int] = None


class ManualAssignRequest(BaseModel):
    staff_id: int
    appointment_id: int


class AutoAssignRequest(BaseModel):
    staff_id: int


class AppointmentResponse(BaseModel):
    id: int
    customer_name: str
    service_id: int
    service_name: Optional[str] = None
    duration: Optional[int] = None
    required_staff_type: Optional[str] = None
    staff_id: Optional[int] = None
    staff_name: Optional[str] = None
    appointment_date: date
    appointment_time: time
    status: str
    created_at: Optional[datetime] = None


class AppointmentCreateResponse(BaseModel):
    success: bool = True
    id: int
    status: str
    message: str
    queue_position: Optional[int] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class AutoAssignResponse(BaseModel):
    success: bool = True
    message: str
    appointment_id: int


class QueueEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    appointment_id: int
    position: int
    customer_name: str
    appointment_date: date
    appointment_time: time
    service_id: int
    service_name: str
    required_staff_type: str


class ConflictCheckResponse(BaseModel):
    conflict: bool
    existing_appointment: Optional[AppointmentResponse] = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    actor: Optional[str] = None
    created_at: Optional[datetime] = None
