import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetclinic.auth.identity import Actor
from vetclinic.core.errors import ForbiddenError, ValidationError
from vetclinic.database import unit_of_work
from vetclinic.models.appointment import CANCELLED_STATUSES, Appointment, AppointmentStatus
from vetclinic.scheduling import events
from vetclinic.scheduling.events import NotificationEvents
from vetclinic.scheduling.queries import get_appointment_owner_id
from vetclinic.scheduling.rules import classify_cancellation, format_time_remaining, get_hours_until

logger = logging.getLogger(__name__)


class CancellationResult(BaseModel):
    appointment_id: int
    status: str
    has_fee: bool
    fee: Decimal | None = None
    warning: str


class CancellationPreview(BaseModel):
    can_cancel: bool
    status: str | None = None
    has_fee: bool
    fee: Decimal | None = None
    message: str
    hours_until_appointment: float
    time_remaining: str


class CanCancelResult(BaseModel):
    can_cancel: bool
    reason: str | None = None


def _cancellation_blocker(appointment: Appointment, owner_id: int, actor: Actor) -> ForbiddenError | ValidationError | None:
    if not actor.is_staff and owner_id != actor.id:
        return ForbiddenError('You can only cancel your own appointments.')

    if appointment.status in CANCELLED_STATUSES:
        return ValidationError('Appointment is already cancelled.')

    if appointment.status == AppointmentStatus.COMPLETED.value:
        return ValidationError('Cannot cancel a completed appointment.')

    return None


def cancel_appointment(
    db: Session,
    appointment: Appointment,
    actor: Actor,
    now: datetime,
    event_sink: NotificationEvents | None = None,
) -> CancellationResult:
    blocker = _cancellation_blocker(appointment, get_appointment_owner_id(db, appointment), actor)
    if blocker is not None:
        raise blocker

    decision = classify_cancellation(appointment.scheduled_at, now)
    if not decision.can_cancel:
        raise ValidationError(decision.message)

    with unit_of_work(db):
        appointment.status = decision.status
        if decision.has_fee:
            hours_until = get_hours_until(appointment.scheduled_at, now)
            appointment.late_cancellation_fee = decision.fee
            appointment.late_cancellation_fee_paid = False
            appointment.late_cancellation_fee_note = f'Cancelled {hours_until:.1f}h before the appointment'

    logger.info('Appointment %s cancelled by user %s with status %s', appointment.id, actor.id, decision.status)

    if event_sink is not None:
        event_sink.emit(events.APPOINTMENT_CANCELLED, {
            'appointment_id': appointment.id,
            'status': decision.status,
            'cancelled_by': actor.id,
            'has_fee': decision.has_fee,
        })

    return CancellationResult(
        appointment_id=appointment.id,
        status=decision.status,
        has_fee=decision.has_fee,
        fee=decision.fee,
        warning=decision.message,
    )


def get_cancellation_preview(appointment: Appointment, now: datetime) -> CancellationPreview:
    decision = classify_cancellation(appointment.scheduled_at, now)
    hours_until = get_hours_until(appointment.scheduled_at, now)

    return CancellationPreview(
        can_cancel=decision.can_cancel,
        status=decision.status,
        has_fee=decision.has_fee,
        fee=decision.fee,
        message=decision.message,
        hours_until_appointment=hours_until,
        time_remaining=format_time_remaining(hours_until),
    )


def can_cancel(db: Session, appointment: Appointment, actor: Actor, now: datetime) -> CanCancelResult:
    blocker = _cancellation_blocker(appointment, get_appointment_owner_id(db, appointment), actor)
    if blocker is not None:
        return CanCancelResult(can_cancel=False, reason=blocker.message)

    decision = classify_cancellation(appointment.scheduled_at, now)
    return CanCancelResult(
        can_cancel=decision.can_cancel,
        reason=None if decision.can_cancel else decision.message,
    )
