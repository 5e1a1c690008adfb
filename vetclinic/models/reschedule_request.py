"""Reschedule request model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from vetclinic.database import Base


class RescheduleRequest(Base):
    """A client proposal to move an appointment, awaiting staff review."""
    __tablename__ = "appointment_reschedule_requests"
    __table_args__ = (
        Index(
            'uq_reschedule_requests_one_pending',
            'appointment_id',
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    old_scheduled_at = Column(DateTime, nullable=False)
    new_scheduled_at = Column(DateTime, nullable=False)
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    client_note = Column(String)
    status = Column(String, nullable=False, default='pending')  # pending/approved/rejected/cancelled
    requested_at = Column(DateTime, default=datetime.now)
    reviewed_by = Column(Integer, ForeignKey("users.id"))
    reviewed_at = Column(DateTime)
    rejection_reason = Column(String)
