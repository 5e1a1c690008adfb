"""Practitioner working hours and date-specific schedule overrides."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Time
from vetclinic.database import Base


class WorkingHours(Base):
    """Default recurring open/close interval for a practitioner on a weekday."""
    __tablename__ = "working_hours"

    id = Column(Integer, primary_key=True)
    doctor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(String, nullable=False)  # monday..sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True)


class Schedule(Base):
    """Date-specific exception to working hours; 00:00-00:00 marks a day off."""
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True)
    doctor_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default='pending')  # pending/approved/rejected
    created_at = Column(DateTime, default=datetime.now)
