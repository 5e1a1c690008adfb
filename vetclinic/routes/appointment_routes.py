from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from vetclinic.auth.dependencies import get_current_actor, require_staff
from vetclinic.auth.identity import Actor
from vetclinic.database import get_db
from vetclinic.models.appointment import APPOINTMENT_STATUSES
from vetclinic.routes.common import database_errors, ensure_can_view, ensure_database_ready
from vetclinic.scheduling.cancellation import (
    CancellationPreview,
    CancellationResult,
    CanCancelResult,
    can_cancel,
    cancel_appointment,
    get_cancellation_preview,
)
from vetclinic.scheduling.events import notification_events
from vetclinic.scheduling.lifecycle import (
    AppointmentChanges,
    BookingRequest,
    StatusChangeResult,
    VaccinationOutcome,
    book_appointment,
    delete_appointment,
    set_status,
    update_appointment,
)
from vetclinic.scheduling.queries import get_appointment_or_404
from vetclinic.scheduling.reschedule import (
    ForceRescheduleResult,
    force_reschedule,
    list_requests_for_appointment,
    request_reschedule,
)
from vetclinic.scheduling.rules import RescheduleCheck, can_reschedule, normalize_appointment_time

router = APIRouter(tags=['appointments'])

MAX_NOTE_LENGTH = 600


def _normalize_note(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_NOTE_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTE_LENGTH} characters or fewer.')

    return normalized


class StatusChangeRequest(BaseModel):
    status: str
    vaccination_performed: bool | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in APPOINTMENT_STATUSES:
            raise ValueError('Invalid status.')
        return normalized


class RescheduleRequestCreate(BaseModel):
    new_scheduled_at: datetime
    client_note: str | None = None

    @field_validator('new_scheduled_at')
    @classmethod
    def drop_seconds(cls, value: datetime) -> datetime:
        return normalize_appointment_time(value)

    @field_validator('client_note')
    @classmethod
    def validate_client_note(cls, value: str | None) -> str | None:
        return _normalize_note(value)


class ForceRescheduleRequest(BaseModel):
    new_scheduled_at: datetime
    reason: str | None = None
    new_practitioner_id: int | None = None

    @field_validator('new_scheduled_at')
    @classmethod
    def drop_seconds(cls, value: datetime) -> datetime:
        return normalize_appointment_time(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_note(value)


class AppointmentResponse(BaseModel):
    id: int
    pet_id: int
    doctor_user_id: int
    created_by_user_id: int | None = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    reason: str | None = None
    location: str | None = None
    reason_id: int | None = None
    vaccination_type_id: int | None = None
    late_cancellation_fee: Decimal | None = None
    late_cancellation_fee_paid: bool | None = None
    late_cancellation_fee_note: str | None = None

    class Config:
        from_attributes = True


class RescheduleRequestResponse(BaseModel):
    id: int
    appointment_id: int
    old_scheduled_at: datetime
    new_scheduled_at: datetime
    requested_by: int
    client_note: str | None = None
    status: str
    requested_at: datetime | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None

    class Config:
        from_attributes = True


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: BookingRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return book_appointment(db, data, actor, event_sink=notification_events)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_can_view(db, appointment, actor)
        return appointment


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def edit_appointment(
    appointment_id: int,
    changes: AppointmentChanges,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    del staff
    ensure_database_ready()
    return update_appointment(db, appointment_id, changes)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: int,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    delete_appointment(db, appointment_id, staff)


@router.patch('/{appointment_id}/status', response_model=StatusChangeResult)
def change_status(
    appointment_id: int,
    data: StatusChangeRequest,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    del staff
    ensure_database_ready()
    return set_status(
        db,
        appointment_id,
        data.status,
        datetime.now(),
        vaccination_outcome=VaccinationOutcome.from_flag(data.vaccination_performed),
        event_sink=notification_events,
    )


@router.get('/{appointment_id}/cancellation-preview', response_model=CancellationPreview)
def preview_cancellation(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_can_view(db, appointment, actor)
        return get_cancellation_preview(appointment, datetime.now())


@router.get('/{appointment_id}/can-cancel', response_model=CanCancelResult)
def check_can_cancel(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        appointment = get_appointment_or_404(db, appointment_id)
        return can_cancel(db, appointment, actor, datetime.now())


@router.post('/{appointment_id}/cancel', response_model=CancellationResult)
def cancel(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = get_appointment_or_404(db, appointment_id)
    return cancel_appointment(db, appointment, actor, datetime.now(), event_sink=notification_events)


@router.get('/{appointment_id}/reschedule-check', response_model=RescheduleCheck)
def check_can_reschedule(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_can_view(db, appointment, actor)
        return can_reschedule(appointment.scheduled_at, datetime.now())


@router.post(
    '/{appointment_id}/reschedule-requests',
    response_model=RescheduleRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_reschedule_request(
    appointment_id: int,
    data: RescheduleRequestCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    appointment = get_appointment_or_404(db, appointment_id)
    return request_reschedule(
        db,
        appointment,
        data.new_scheduled_at,
        actor,
        datetime.now(),
        client_note=data.client_note,
        event_sink=notification_events,
    )


@router.get('/{appointment_id}/reschedule-requests', response_model=list[RescheduleRequestResponse])
def list_appointment_reschedule_requests(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        appointment = get_appointment_or_404(db, appointment_id)
        ensure_can_view(db, appointment, actor)
        return list_requests_for_appointment(db, appointment.id)


@router.post('/{appointment_id}/force-reschedule', response_model=ForceRescheduleResult)
def staff_reschedule(
    appointment_id: int,
    data: ForceRescheduleRequest,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return force_reschedule(
        db,
        appointment_id,
        data.new_scheduled_at,
        staff,
        datetime.now(),
        reason=data.reason,
        new_practitioner_id=data.new_practitioner_id,
        event_sink=notification_events,
    )
