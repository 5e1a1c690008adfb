"""Appointment lifecycle: booking, updates and status transitions.

Statuses move ``proposed -> confirmed -> in_progress -> completed``; ``cancelled``
and ``cancelled_late`` are reachable from any non-terminal status. Completing a
vaccination appointment and entering ``cancelled_late`` trigger side effects.
"""

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetclinic.auth.identity import Actor
from vetclinic.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from vetclinic.database import unit_of_work
from vetclinic.models.appointment import (
    APPOINTMENT_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentReason,
    AppointmentServiceItem,
    AppointmentStatus,
)
from vetclinic.scheduling import events
from vetclinic.scheduling.conflicts import MAX_APPOINTMENT_DURATION_MINUTES, has_overlap
from vetclinic.scheduling.events import NotificationEvents
from vetclinic.scheduling.queries import (
    get_appointment_or_404,
    get_appointment_owner_id,
    get_pet_or_404,
    get_practitioner_or_404,
)
from vetclinic.scheduling.records import (
    create_late_cancellation_penalty,
    create_vaccination_from_appointment,
    create_vaccination_medical_record,
    get_vaccination_type_or_404,
    is_species_compatible,
)
from vetclinic.scheduling.rules import normalize_appointment_time

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 45

STATUS_EVENTS = {
    AppointmentStatus.CONFIRMED.value: events.APPOINTMENT_CONFIRMED,
    AppointmentStatus.COMPLETED.value: events.APPOINTMENT_COMPLETED,
    AppointmentStatus.CANCELLED.value: events.APPOINTMENT_CANCELLED,
    AppointmentStatus.CANCELLED_LATE.value: events.APPOINTMENT_CANCELLED,
}


class VaccinationOutcome(str, Enum):
    PERFORMED = 'performed'
    NOT_PERFORMED = 'not_performed'
    NOT_APPLICABLE = 'not_applicable'

    @classmethod
    def from_flag(cls, vaccination_performed: bool | None) -> 'VaccinationOutcome':
        if vaccination_performed is None:
            return cls.NOT_APPLICABLE
        return cls.PERFORMED if vaccination_performed else cls.NOT_PERFORMED


class ServiceLineItem(BaseModel):
    service_id: int
    quantity: int = 1
    unit_price: Decimal


class BookingRequest(BaseModel):
    pet_id: int
    doctor_id: int
    scheduled_at: datetime
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    reason: str | None = None
    location: str | None = None
    reason_id: int | None = None
    vaccination_type_id: int | None = None
    services: list[ServiceLineItem] = []


class AppointmentChanges(BaseModel):
    scheduled_at: datetime | None = None
    duration_minutes: int | None = None
    reason: str | None = None
    location: str | None = None


class StatusChangeResult(BaseModel):
    appointment_id: int
    status: str
    vaccination_created: bool = False
    vaccination_error: str | None = None
    medical_record_created: bool = False
    medical_record_error: str | None = None
    penalty_created: bool = False


def initial_status_for(actor: Actor) -> str:
    if actor.is_client:
        return AppointmentStatus.PROPOSED.value
    return AppointmentStatus.CONFIRMED.value


def validate_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0 or duration_minutes > MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f'Duration must be between 1 and {MAX_APPOINTMENT_DURATION_MINUTES} minutes.'
        )


def _validate_vaccination_booking(db: Session, data: BookingRequest, pet_species: str | None) -> None:
    if data.reason_id is not None:
        reason = db.query(AppointmentReason).filter(
            AppointmentReason.id == data.reason_id,
            AppointmentReason.is_active.is_(True),
        ).first()
        if reason is None:
            raise NotFoundError('Appointment reason not found.')
        if reason.is_vaccination and not data.vaccination_type_id:
            raise ValidationError('Vaccination type is required when booking a vaccination appointment.')

    if data.vaccination_type_id is not None:
        vaccination_type = get_vaccination_type_or_404(db, data.vaccination_type_id, active_only=True)
        if not is_species_compatible(vaccination_type, pet_species):
            raise ValidationError(f'Selected vaccination type is not compatible with {pet_species}.')


def book_appointment(
    db: Session,
    data: BookingRequest,
    actor: Actor,
    event_sink: NotificationEvents | None = None,
) -> Appointment:
    validate_duration(data.duration_minutes)
    scheduled_at = normalize_appointment_time(data.scheduled_at)

    with unit_of_work(db):
        pet = get_pet_or_404(db, data.pet_id)
        if actor.is_client and pet.owner_user_id != actor.id:
            raise ForbiddenError('You can only book appointments for your own pets.')

        _validate_vaccination_booking(db, data, pet.species)
        get_practitioner_or_404(db, data.doctor_id)

        if has_overlap(db, data.doctor_id, scheduled_at, data.duration_minutes):
            raise ConflictError('The practitioner is not available at this time - there is a scheduling conflict.')

        appointment = Appointment(
            pet_id=data.pet_id,
            doctor_user_id=data.doctor_id,
            created_by_user_id=actor.id,
            scheduled_at=scheduled_at,
            duration_minutes=data.duration_minutes,
            status=initial_status_for(actor),
            reason=data.reason,
            location=data.location,
            reason_id=data.reason_id,
            vaccination_type_id=data.vaccination_type_id,
        )
        db.add(appointment)
        db.flush()

        for item in data.services:
            db.add(AppointmentServiceItem(
                appointment_id=appointment.id,
                service_id=item.service_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
            ))

    logger.info(
        'Appointment %s booked with practitioner %s at %s (status %s)',
        appointment.id, appointment.doctor_user_id, appointment.scheduled_at, appointment.status,
    )

    if event_sink is not None:
        event_name = (
            events.APPOINTMENT_PROPOSED
            if appointment.status == AppointmentStatus.PROPOSED.value
            else events.APPOINTMENT_CONFIRMED
        )
        event_sink.emit(event_name, {
            'appointment_id': appointment.id,
            'pet_id': appointment.pet_id,
            'practitioner_id': appointment.doctor_user_id,
            'scheduled_at': appointment.scheduled_at,
        })

    return appointment


def update_appointment(db: Session, appointment_id: int, changes: AppointmentChanges) -> Appointment:
    appointment = get_appointment_or_404(db, appointment_id)

    new_time = appointment.scheduled_at
    if changes.scheduled_at is not None:
        new_time = normalize_appointment_time(changes.scheduled_at)
    new_duration = appointment.duration_minutes
    if changes.duration_minutes is not None:
        validate_duration(changes.duration_minutes)
        new_duration = changes.duration_minutes

    with unit_of_work(db):
        if (new_time, new_duration) != (appointment.scheduled_at, appointment.duration_minutes):
            if has_overlap(db, appointment.doctor_user_id, new_time, new_duration, exclude_appointment_id=appointment.id):
                raise ConflictError('The practitioner is not available at this time.')

        appointment.scheduled_at = new_time
        appointment.duration_minutes = new_duration
        if changes.reason is not None:
            appointment.reason = changes.reason
        if changes.location is not None:
            appointment.location = changes.location

    return appointment


def delete_appointment(db: Session, appointment_id: int, actor: Actor) -> None:
    if not actor.is_staff:
        raise ForbiddenError('Only clinic staff can delete appointments.')

    appointment = get_appointment_or_404(db, appointment_id)

    with unit_of_work(db):
        db.query(AppointmentServiceItem).filter(
            AppointmentServiceItem.appointment_id == appointment.id,
        ).delete(synchronize_session=False)
        db.delete(appointment)

    logger.info('Appointment %s deleted by user %s', appointment_id, actor.id)


def _is_vaccination_appointment(db: Session, appointment: Appointment) -> bool:
    if appointment.reason_id is None or appointment.vaccination_type_id is None:
        return False

    reason = db.query(AppointmentReason).filter(AppointmentReason.id == appointment.reason_id).first()
    return bool(reason and reason.is_vaccination)


def _side_effect_error(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        return str(exc.detail)
    return str(exc)


def _record_vaccination_outcome(
    db: Session,
    appointment: Appointment,
    outcome: VaccinationOutcome,
    result: StatusChangeResult,
) -> None:
    if outcome == VaccinationOutcome.NOT_APPLICABLE:
        return

    administered = outcome == VaccinationOutcome.PERFORMED

    if administered:
        try:
            with unit_of_work(db):
                create_vaccination_from_appointment(db, appointment)
            result.vaccination_created = True
            logger.info('Created vaccination record for appointment %s', appointment.id)
        except Exception as exc:
            result.vaccination_error = _side_effect_error(exc)
            logger.exception('Failed to create vaccination record for appointment %s', appointment.id)

    try:
        with unit_of_work(db):
            create_vaccination_medical_record(db, appointment, administered=administered)
        result.medical_record_created = True
    except Exception as exc:
        result.medical_record_error = _side_effect_error(exc)
        logger.exception('Failed to create medical record for appointment %s', appointment.id)


def set_status(
    db: Session,
    appointment_id: int,
    new_status: str,
    now: datetime,
    vaccination_outcome: VaccinationOutcome = VaccinationOutcome.NOT_APPLICABLE,
    event_sink: NotificationEvents | None = None,
) -> StatusChangeResult:
    if new_status not in APPOINTMENT_STATUSES:
        raise ValidationError('Invalid status.')

    appointment = get_appointment_or_404(db, appointment_id)
    if appointment.status in TERMINAL_STATUSES:
        raise ValidationError(f'Cannot change the status of a {appointment.status} appointment.')

    result = StatusChangeResult(appointment_id=appointment.id, status=new_status)

    with unit_of_work(db):
        appointment.status = new_status
        if new_status == AppointmentStatus.CANCELLED_LATE.value:
            client_id = get_appointment_owner_id(db, appointment)
            result.penalty_created = create_late_cancellation_penalty(db, appointment, client_id, now) is not None

    logger.info('Appointment %s status set to %s', appointment.id, new_status)

    if new_status == AppointmentStatus.COMPLETED.value and _is_vaccination_appointment(db, appointment):
        _record_vaccination_outcome(db, appointment, vaccination_outcome, result)

    if event_sink is not None and new_status in STATUS_EVENTS:
        event_sink.emit(STATUS_EVENTS[new_status], {
            'appointment_id': appointment.id,
            'status': new_status,
        })

    return result
