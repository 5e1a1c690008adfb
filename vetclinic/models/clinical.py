"""Clinical records produced as side effects of appointment transitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String
from vetclinic.database import Base


class VaccinationType(Base):
    """Catalogue of vaccines; species 'all' matches every pet."""
    __tablename__ = "vaccination_types"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    species = Column(String, nullable=False, default='all')
    recommended_interval_months = Column(Integer)
    is_active = Column(Boolean, default=True)


class Vaccination(Base):
    __tablename__ = "vaccinations"

    id = Column(Integer, primary_key=True)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"))
    vaccination_type_id = Column(Integer, ForeignKey("vaccination_types.id"))
    vaccine_name = Column(String, nullable=False)
    vaccination_date = Column(Date, nullable=False)
    next_due_date = Column(Date)
    batch_number = Column(String)
    notes = Column(String)
    source = Column(String, nullable=False, default='manual')  # manual/appointment
    administered_by_user_id = Column(Integer, ForeignKey("users.id"))
    added_by_user_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.now)


class MedicalRecord(Base):
    __tablename__ = "medical_records"

    id = Column(Integer, primary_key=True)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"))
    doctor_user_id = Column(Integer, ForeignKey("users.id"))
    diagnosis = Column(String)
    treatment = Column(String)
    notes = Column(String)
    created_at = Column(DateTime, default=datetime.now)


class Penalty(Base):
    """Standalone ledger entry charged to a client."""
    __tablename__ = "penalties"

    id = Column(Integer, primary_key=True)
    client_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"))
    amount = Column(Numeric(10, 2), nullable=False)
    reason = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.now)
