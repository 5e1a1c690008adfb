"""Reschedule workflow.

Clients propose a new time through a pending ``RescheduleRequest`` that staff
approve or reject. Staff can also move an appointment immediately with
``force_reschedule``, which requires the new time to be at least
``FORCE_RESCHEDULE_MIN_DAYS`` away from the original one.
"""

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vetclinic.auth.identity import Actor
from vetclinic.core.errors import ConflictError, ForbiddenError, ValidationError
from vetclinic.database import unit_of_work
from vetclinic.models.appointment import TERMINAL_STATUSES, Appointment
from vetclinic.models.reschedule_request import RescheduleRequest
from vetclinic.scheduling import events
from vetclinic.scheduling.conflicts import has_overlap
from vetclinic.scheduling.events import NotificationEvents
from vetclinic.scheduling.queries import (
    get_appointment_or_404,
    get_appointment_owner_id,
    get_practitioner_or_404,
    get_reschedule_request_or_404,
)
from vetclinic.scheduling.rules import can_reschedule, normalize_appointment_time

logger = logging.getLogger(__name__)

PENDING = 'pending'
APPROVED = 'approved'
REJECTED = 'rejected'
CANCELLED = 'cancelled'
REQUEST_STATUSES = (PENDING, APPROVED, REJECTED, CANCELLED)

FORCE_RESCHEDULE_MIN_DAYS = 7
SUPERSEDED_BY_STAFF_REASON = 'Appointment time was changed directly by staff.'


class ForceRescheduleResult(BaseModel):
    appointment_id: int
    old_time: datetime
    new_time: datetime
    practitioner_changed: bool
    new_practitioner_id: int | None = None
    new_practitioner_name: str | None = None
    cancelled_request_ids: list[int] = []
    client_notified: bool


def _ensure_not_terminal(appointment: Appointment) -> None:
    if appointment.status in TERMINAL_STATUSES:
        raise ValidationError(f'Cannot reschedule a {appointment.status} appointment.')


def _ensure_no_conflict(db: Session, practitioner_id: int, appointment: Appointment, new_time: datetime) -> None:
    if has_overlap(db, practitioner_id, new_time, appointment.duration_minutes, exclude_appointment_id=appointment.id):
        raise ConflictError('The practitioner is not available at this time - there is a scheduling conflict.')


def get_pending_request(db: Session, appointment_id: int) -> RescheduleRequest | None:
    return db.query(RescheduleRequest).filter(
        RescheduleRequest.appointment_id == appointment_id,
        RescheduleRequest.status == PENDING,
    ).first()


def request_reschedule(
    db: Session,
    appointment: Appointment,
    new_time: datetime,
    actor: Actor,
    now: datetime,
    client_note: str | None = None,
    event_sink: NotificationEvents | None = None,
) -> RescheduleRequest:
    if not actor.is_staff and get_appointment_owner_id(db, appointment) != actor.id:
        raise ForbiddenError('You can only reschedule your own appointments.')

    _ensure_not_terminal(appointment)
    new_time = normalize_appointment_time(new_time)

    check = can_reschedule(appointment.scheduled_at, now)
    if not check.can_reschedule:
        raise ValidationError(check.message)

    if new_time <= now:
        raise ValidationError('New appointment time must be in the future.')

    if get_pending_request(db, appointment.id) is not None:
        raise ValidationError('There is already a pending reschedule request for this appointment.')

    request = RescheduleRequest(
        appointment_id=appointment.id,
        old_scheduled_at=appointment.scheduled_at,
        new_scheduled_at=new_time,
        requested_by=actor.id,
        client_note=client_note,
        status=PENDING,
        requested_at=now,
    )

    with unit_of_work(db):
        db.add(request)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ValidationError('There is already a pending reschedule request for this appointment.') from exc

    logger.info('Reschedule request %s filed for appointment %s', request.id, appointment.id)

    if event_sink is not None:
        event_sink.emit(events.RESCHEDULE_REQUESTED, {
            'request_id': request.id,
            'appointment_id': appointment.id,
            'old_time': request.old_scheduled_at,
            'new_time': request.new_scheduled_at,
        })

    return request


def list_reschedule_requests(db: Session, status: str | None = None) -> list[RescheduleRequest]:
    query = db.query(RescheduleRequest)
    if status:
        if status not in REQUEST_STATUSES:
            raise ValidationError('Invalid reschedule request status.')
        query = query.filter(RescheduleRequest.status == status)
    return query.order_by(RescheduleRequest.requested_at.desc(), RescheduleRequest.id.desc()).all()


def count_pending_requests(db: Session) -> int:
    return db.query(RescheduleRequest).filter(RescheduleRequest.status == PENDING).count()


def list_requests_for_appointment(db: Session, appointment_id: int) -> list[RescheduleRequest]:
    return db.query(RescheduleRequest).filter(
        RescheduleRequest.appointment_id == appointment_id,
    ).order_by(RescheduleRequest.requested_at.desc(), RescheduleRequest.id.desc()).all()


def approve_reschedule(
    db: Session,
    request_id: int,
    reviewer_id: int,
    now: datetime,
    event_sink: NotificationEvents | None = None,
) -> RescheduleRequest:
    request = get_reschedule_request_or_404(db, request_id)

    if request.status != PENDING:
        raise ValidationError(f'Request has already been {request.status}.')

    appointment = get_appointment_or_404(db, request.appointment_id)
    _ensure_not_terminal(appointment)

    with unit_of_work(db):
        _ensure_no_conflict(db, appointment.doctor_user_id, appointment, request.new_scheduled_at)
        appointment.scheduled_at = request.new_scheduled_at
        request.status = APPROVED
        request.reviewed_by = reviewer_id
        request.reviewed_at = now

    logger.info('Reschedule request %s approved by user %s', request.id, reviewer_id)

    if event_sink is not None:
        event_sink.emit(events.RESCHEDULE_APPROVED, {
            'request_id': request.id,
            'appointment_id': appointment.id,
            'new_time': appointment.scheduled_at,
        })

    return request


def reject_reschedule(
    db: Session,
    request_id: int,
    reviewer_id: int,
    now: datetime,
    rejection_reason: str | None = None,
    event_sink: NotificationEvents | None = None,
) -> RescheduleRequest:
    request = get_reschedule_request_or_404(db, request_id)

    if request.status != PENDING:
        raise ValidationError(f'Request has already been {request.status}.')

    with unit_of_work(db):
        request.status = REJECTED
        request.reviewed_by = reviewer_id
        request.reviewed_at = now
        request.rejection_reason = rejection_reason

    logger.info('Reschedule request %s rejected by user %s', request.id, reviewer_id)

    if event_sink is not None:
        event_sink.emit(events.RESCHEDULE_REJECTED, {
            'request_id': request.id,
            'appointment_id': request.appointment_id,
            'reason': rejection_reason,
        })

    return request


def force_reschedule(
    db: Session,
    appointment_id: int,
    new_time: datetime,
    staff: Actor,
    now: datetime,
    reason: str | None = None,
    new_practitioner_id: int | None = None,
    event_sink: NotificationEvents | None = None,
) -> ForceRescheduleResult:
    if not staff.is_staff:
        raise ForbiddenError('Only clinic staff can reschedule appointments directly.')

    appointment = get_appointment_or_404(db, appointment_id)
    _ensure_not_terminal(appointment)
    new_time = normalize_appointment_time(new_time)

    if new_time < now:
        raise ValidationError('New appointment time must be in the future.')

    old_time = appointment.scheduled_at
    if abs(new_time - old_time) < timedelta(days=FORCE_RESCHEDULE_MIN_DAYS):
        raise ValidationError(
            f'The new time must be at least {FORCE_RESCHEDULE_MIN_DAYS} days away from the current appointment time.'
        )

    old_practitioner = get_practitioner_or_404(db, appointment.doctor_user_id)
    target_practitioner = old_practitioner
    practitioner_changed = new_practitioner_id is not None and new_practitioner_id != old_practitioner.id
    if practitioner_changed:
        target_practitioner = get_practitioner_or_404(db, new_practitioner_id)
    client_id = get_appointment_owner_id(db, appointment)

    with unit_of_work(db):
        _ensure_no_conflict(db, target_practitioner.id, appointment, new_time)
        appointment.scheduled_at = new_time
        appointment.doctor_user_id = target_practitioner.id

        superseded = db.query(RescheduleRequest).filter(
            RescheduleRequest.appointment_id == appointment.id,
            RescheduleRequest.status == PENDING,
        ).all()
        for pending_request in superseded:
            pending_request.status = CANCELLED
            pending_request.reviewed_by = staff.id
            pending_request.reviewed_at = now
            pending_request.rejection_reason = SUPERSEDED_BY_STAFF_REASON
        cancelled_request_ids = [pending_request.id for pending_request in superseded]

    logger.info(
        'Appointment %s moved by staff %s from %s to %s',
        appointment.id, staff.id, old_time, new_time,
    )

    client_notified = False
    if event_sink is not None:
        client_notified = event_sink.emit(events.APPOINTMENT_RESCHEDULED_BY_STAFF, {
            'appointment_id': appointment.id,
            'client_id': client_id,
            'old_time': old_time,
            'new_time': new_time,
            'reason': reason,
            'practitioner_change': {
                'old_practitioner_name': old_practitioner.full_name,
                'new_practitioner_name': target_practitioner.full_name,
            } if practitioner_changed else None,
        })

    return ForceRescheduleResult(
        appointment_id=appointment.id,
        old_time=old_time,
        new_time=new_time,
        practitioner_changed=practitioner_changed,
        new_practitioner_id=target_practitioner.id if practitioner_changed else None,
        new_practitioner_name=target_practitioner.full_name if practitioner_changed else None,
        cancelled_request_ids=cancelled_request_ids,
        client_notified=client_notified,
    )
