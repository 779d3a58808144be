from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_DAILY_CAPACITY
from .database import Base


class Service(Base):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    duration = Column(Integer, nullable=False)  # Minutes: 15, 30, 45, 60, 90 or 120
    required_staff_type = Column(String(100), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="service")

    __table_args__ = (
        CheckConstraint("duration IN (15, 30, 45, 60, 90, 120)", name="ck_services_duration"),
    )


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    service_type = Column(String(100), nullable=False, index=True)
    daily_capacity = Column(Integer, nullable=False, default=DEFAULT_DAILY_CAPACITY)
    status = Column(String(20), nullable=False, default="available")  # available, on_leave
    created_at = Column(DateTime, server_default=func.now())

    appointments = relationship("Appointment", back_populates="staff")

    __table_args__ = (CheckConstraint("daily_capacity > 0", name="ck_staff_daily_capacity"),)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(255), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)  # NULL while queued
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    # Status workflow: queued → scheduled → completed | cancelled | no_show
    status = Column(String(20), nullable=False, default="scheduled", index=True)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service", back_populates="appointments")
    staff = relationship("Staff", back_populates="appointments")

    __table_args__ = (
        # Capacity and conflict lookups always filter on (staff, date)
        Index("ix_appointments_staff_date", "staff_id", "appointment_date"),
    )


class QueueEntry(Base):
    """Waiting-list slot for an appointment that has no staff member yet"""

    __tablename__ = "queue"

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(
        Integer, ForeignKey("appointments.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    position = Column(Integer, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment")


class QueueSequence(Base):
    """Single-row watermark for queue positions; positions are never reused"""

    __tablename__ = "queue_sequence"

    id = Column(Integer, primary_key=True)
    last_position = Column(Integer, nullable=False, default=0)


class ActivityLog(Base):
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(Text, nullable=False)
    actor = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
