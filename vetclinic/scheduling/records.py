"""Records created as side effects of appointment status transitions."""

import logging
from datetime import date, datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from vetclinic.core.errors import NotFoundError, ValidationError
from vetclinic.models.appointment import Appointment
from vetclinic.models.clinical import MedicalRecord, Penalty, Vaccination, VaccinationType
from vetclinic.scheduling.rules import CANCEL_LATE_PENALTY_HOURS, get_hours_until

logger = logging.getLogger(__name__)

APPOINTMENT_SOURCE = 'appointment'
ALL_SPECIES = 'all'
DEFAULT_REVACCINATION_MONTHS = 12
LATE_CANCELLATION_PENALTY_AMOUNT = Decimal('50.00')


def get_vaccination_type_or_404(db: Session, vaccination_type_id: int, active_only: bool = False) -> VaccinationType:
    query = db.query(VaccinationType).filter(VaccinationType.id == vaccination_type_id)
    if active_only:
        query = query.filter(VaccinationType.is_active.is_(True))

    vaccination_type = query.first()
    if vaccination_type is None:
        raise NotFoundError('Vaccination type not found.')
    return vaccination_type


def is_species_compatible(vaccination_type: VaccinationType, species: str | None) -> bool:
    return vaccination_type.species == ALL_SPECIES or vaccination_type.species == species


def calculate_next_due_date(vaccination_date: date, vaccination_type: VaccinationType) -> date:
    months = vaccination_type.recommended_interval_months or DEFAULT_REVACCINATION_MONTHS
    return vaccination_date + relativedelta(months=months)


def create_vaccination_from_appointment(db: Session, appointment: Appointment) -> Vaccination:
    if not appointment.vaccination_type_id:
        raise ValidationError('Vaccination type is required for appointment-based vaccination.')

    vaccination_type = get_vaccination_type_or_404(db, appointment.vaccination_type_id)
    vaccination_date = appointment.scheduled_at.date()

    vaccination = Vaccination(
        pet_id=appointment.pet_id,
        appointment_id=appointment.id,
        vaccination_type_id=vaccination_type.id,
        vaccine_name=vaccination_type.name,
        vaccination_date=vaccination_date,
        next_due_date=calculate_next_due_date(vaccination_date, vaccination_type),
        notes=appointment.reason,
        source=APPOINTMENT_SOURCE,
        administered_by_user_id=appointment.doctor_user_id,
        added_by_user_id=appointment.doctor_user_id,
    )
    db.add(vaccination)
    return vaccination


def create_vaccination_medical_record(db: Session, appointment: Appointment, administered: bool) -> MedicalRecord:
    vaccination_type = get_vaccination_type_or_404(db, appointment.vaccination_type_id)

    if administered:
        diagnosis = f'Vaccination: {vaccination_type.name}'
        treatment = f'Administered {vaccination_type.name} vaccine.'
        notes = appointment.reason
    else:
        diagnosis = f'Vaccination not performed: {vaccination_type.name}'
        treatment = None
        notes = f'The scheduled {vaccination_type.name} vaccination was not administered during this visit.'

    record = MedicalRecord(
        pet_id=appointment.pet_id,
        appointment_id=appointment.id,
        doctor_user_id=appointment.doctor_user_id,
        diagnosis=diagnosis,
        treatment=treatment,
        notes=notes,
    )
    db.add(record)
    return record


def create_late_cancellation_penalty(
    db: Session,
    appointment: Appointment,
    client_user_id: int,
    now: datetime,
) -> Penalty | None:
    hours_until = get_hours_until(appointment.scheduled_at, now)

    if not 0 <= hours_until < CANCEL_LATE_PENALTY_HOURS:
        return None

    penalty = Penalty(
        client_user_id=client_user_id,
        appointment_id=appointment.id,
        amount=LATE_CANCELLATION_PENALTY_AMOUNT,
        reason=f'Late cancellation (less than {CANCEL_LATE_PENALTY_HOURS} hours before appointment)',
    )
    db.add(penalty)
    logger.info('Late cancellation penalty recorded for appointment %s', appointment.id)
    return penalty
