"""Appointment model definitions."""

from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from vetclinic.database import Base


class AppointmentStatus(str, Enum):
    PROPOSED = 'proposed'
    CONFIRMED = 'confirmed'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    CANCELLED_LATE = 'cancelled_late'


APPOINTMENT_STATUSES = tuple(member.value for member in AppointmentStatus)
CANCELLED_STATUSES = (AppointmentStatus.CANCELLED.value, AppointmentStatus.CANCELLED_LATE.value)
TERMINAL_STATUSES = CANCELLED_STATUSES + (AppointmentStatus.COMPLETED.value,)


class Appointment(Base):
    """Represents a scheduled visit of a pet with a practitioner."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    pet_id = Column(Integer, ForeignKey("pets.id"), nullable=False)
    doctor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_by_user_id = Column(Integer, ForeignKey("users.id"))
    scheduled_at = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=45)
    status = Column(String, nullable=False, default=AppointmentStatus.PROPOSED.value)
    reason = Column(String)
    location = Column(String)
    reason_id = Column(Integer, ForeignKey("appointment_reasons.id"))
    vaccination_type_id = Column(Integer, ForeignKey("vaccination_types.id"))
    late_cancellation_fee = Column(Numeric(10, 2))
    late_cancellation_fee_paid = Column(Boolean)
    late_cancellation_fee_note = Column(String)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)


class AppointmentServiceItem(Base):
    """A billable service attached to an appointment."""
    __tablename__ = "appointment_services"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)


class AppointmentReason(Base):
    """Catalogue entry describing why an appointment is booked."""
    __tablename__ = "appointment_reasons"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    is_vaccination = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
