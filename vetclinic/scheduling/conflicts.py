"""Booking conflict detection.

``has_overlap`` is the booking authority: two live appointments of the same
practitioner conflict when their half-open intervals ``[start, start+duration)``
intersect. ``is_start_time_taken`` is the cheaper exact-start check the slot
grid uses and must not replace it.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from vetclinic.models.appointment import CANCELLED_STATUSES, Appointment

MAX_APPOINTMENT_DURATION_MINUTES = 24 * 60


def _live_appointments(db: Session, practitioner_id: int, exclude_appointment_id: int | None = None):
    query = db.query(Appointment).filter(
        Appointment.doctor_user_id == practitioner_id,
        Appointment.status.notin_(CANCELLED_STATUSES),
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query


def intervals_overlap(first_start: datetime, first_end: datetime, second_start: datetime, second_end: datetime) -> bool:
    return first_start < second_end and second_start < first_end


def find_overlapping_appointments(
    db: Session,
    practitioner_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    end = start + timedelta(minutes=duration_minutes)
    earliest_possible_start = start - timedelta(minutes=MAX_APPOINTMENT_DURATION_MINUTES)

    candidates = _live_appointments(db, practitioner_id, exclude_appointment_id).filter(
        Appointment.scheduled_at < end,
        Appointment.scheduled_at > earliest_possible_start,
    ).order_by(Appointment.scheduled_at.asc()).all()

    return [
        appointment
        for appointment in candidates
        if intervals_overlap(start, end, appointment.scheduled_at, appointment.ends_at)
    ]


def has_overlap(
    db: Session,
    practitioner_id: int,
    start: datetime,
    duration_minutes: int,
    exclude_appointment_id: int | None = None,
) -> bool:
    return bool(find_overlapping_appointments(db, practitioner_id, start, duration_minutes, exclude_appointment_id))


def is_start_time_taken(
    db: Session,
    practitioner_id: int,
    start: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    return _live_appointments(db, practitioner_id, exclude_appointment_id).filter(
        Appointment.scheduled_at == start,
    ).first() is not None
