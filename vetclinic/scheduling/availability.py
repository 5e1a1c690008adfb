"""Slot availability for practitioners.

A practitioner's open interval for a date is resolved through
``OPEN_INTERVAL_RESOLVERS`` in priority order: an approved schedule override
for the exact date, then the weekday's working hours. The first resolver that
returns an interval wins, even if that interval is the day-off sentinel.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetclinic.auth.identity import CLIENT_ROLE
from vetclinic.models.appointment import CANCELLED_STATUSES, Appointment
from vetclinic.models.schedule import Schedule, WorkingHours
from vetclinic.models.user import User
from vetclinic.scheduling.conflicts import is_start_time_taken
from vetclinic.scheduling.queries import get_practitioner_or_404, list_active_practitioners

logger = logging.getLogger(__name__)

APPOINTMENT_MINUTES = 45
BREAK_MINUTES = 15
SLOT_INTERVAL_MINUTES = APPOINTMENT_MINUTES + BREAK_MINUTES
CLIENT_MIN_BOOKING_ADVANCE_MINUTES = 30
STAFF_MAX_PAST_BOOKING_MINUTES = 60
DAY_OFF = (time(0, 0), time(0, 0))
DAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
APPROVED_SCHEDULE_STATUS = 'approved'

OpenInterval = tuple[time, time]
IntervalResolver = Callable[[Session, int, date], OpenInterval | None]


class Slot(BaseModel):
    time: str
    available: bool


class PractitionerTimeRange(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    is_working: bool


class ClinicTimeRange(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    has_practitioners: bool


class PractitionerSlotAvailability(BaseModel):
    practitioner_id: int
    name: str
    is_available: bool


def day_name_for(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def format_slot_time(value: time) -> str:
    return value.strftime('%H:%M')


def resolve_schedule_override(db: Session, practitioner_id: int, day: date) -> OpenInterval | None:
    override = db.query(Schedule).filter(
        Schedule.doctor_user_id == practitioner_id,
        Schedule.date == day,
        Schedule.status == APPROVED_SCHEDULE_STATUS,
    ).order_by(Schedule.created_at.desc(), Schedule.id.desc()).first()

    if override is None:
        return None
    return override.start_time, override.end_time


def resolve_working_hours(db: Session, practitioner_id: int, day: date) -> OpenInterval | None:
    working_hours = db.query(WorkingHours).filter(
        WorkingHours.doctor_user_id == practitioner_id,
        WorkingHours.day_of_week == day_name_for(day),
        WorkingHours.is_active.is_(True),
    ).first()

    if working_hours is None:
        return None
    return working_hours.start_time, working_hours.end_time


OPEN_INTERVAL_RESOLVERS: tuple[IntervalResolver, ...] = (
    resolve_schedule_override,
    resolve_working_hours,
)


def resolve_open_interval(db: Session, practitioner_id: int, day: date) -> OpenInterval | None:
    """Return the practitioner's open interval for ``day`` or None when closed."""
    for resolver in OPEN_INTERVAL_RESOLVERS:
        interval = resolver(db, practitioner_id, day)
        if interval is None:
            continue

        start_time, end_time = interval
        if interval == DAY_OFF or start_time >= end_time:
            return None
        return interval

    return None


def iterate_slot_starts(day: date, open_time: time, close_time: time) -> list[datetime]:
    slots: list[datetime] = []
    current = datetime.combine(day, open_time)
    close = datetime.combine(day, close_time)

    while current < close:
        slots.append(current)
        current += timedelta(minutes=SLOT_INTERVAL_MINUTES)

    return slots


def get_booked_slot_times(db: Session, practitioner_id: int, day: date) -> set[str]:
    day_start = datetime.combine(day, time(0, 0))
    booked = db.query(Appointment.scheduled_at).filter(
        Appointment.doctor_user_id == practitioner_id,
        Appointment.scheduled_at >= day_start,
        Appointment.scheduled_at < day_start + timedelta(days=1),
        Appointment.status.notin_(CANCELLED_STATUSES),
    ).all()

    return {format_slot_time(scheduled_at.time()) for (scheduled_at,) in booked}


def is_slot_bookable_now(slot_start: datetime, now: datetime, caller_role: str | None) -> bool:
    """Apply today's look-ahead guard for clients and look-behind guard for staff."""
    if slot_start.date() != now.date():
        return True

    minutes_until_slot = (slot_start - now).total_seconds() / 60

    if caller_role == CLIENT_ROLE:
        return not minutes_until_slot < CLIENT_MIN_BOOKING_ADVANCE_MINUTES
    return not minutes_until_slot < -STAFF_MAX_PAST_BOOKING_MINUTES


def compute_slots(
    db: Session,
    practitioner_id: int,
    day: date,
    now: datetime,
    caller_role: str | None = None,
) -> list[Slot]:
    practitioner = get_practitioner_or_404(db, practitioner_id)

    if not practitioner.is_active:
        return []

    interval = resolve_open_interval(db, practitioner_id, day)
    if interval is None:
        logger.debug('Practitioner %s is not working on %s', practitioner_id, day)
        return []

    open_time, close_time = interval
    booked_slot_times = get_booked_slot_times(db, practitioner_id, day)

    slots: list[Slot] = []
    for slot_start in iterate_slot_starts(day, open_time, close_time):
        slot_time = format_slot_time(slot_start.time())
        is_available = slot_time not in booked_slot_times
        if is_available:
            is_available = is_slot_bookable_now(slot_start, now, caller_role)
        slots.append(Slot(time=slot_time, available=is_available))

    return slots


def get_practitioner_time_range(db: Session, practitioner_id: int, day: date) -> PractitionerTimeRange:
    practitioner = get_practitioner_or_404(db, practitioner_id)

    if not practitioner.is_active:
        return PractitionerTimeRange(is_working=False)

    interval = resolve_open_interval(db, practitioner_id, day)
    if interval is None:
        return PractitionerTimeRange(is_working=False)

    return PractitionerTimeRange(start_time=interval[0], end_time=interval[1], is_working=True)


def time_range_across_practitioners(db: Session, day: date) -> ClinicTimeRange:
    intervals = [
        interval
        for interval in (
            resolve_open_interval(db, practitioner.id, day)
            for practitioner in list_active_practitioners(db)
        )
        if interval is not None
    ]

    if not intervals:
        return ClinicTimeRange(has_practitioners=False)

    return ClinicTimeRange(
        start_time=min(start for start, _ in intervals),
        end_time=max(end for _, end in intervals),
        has_practitioners=True,
    )


def practitioners_for_slot(db: Session, day: date, slot_time: time) -> list[PractitionerSlotAvailability]:
    result: list[PractitionerSlotAvailability] = []
    slot_start = datetime.combine(day, slot_time.replace(second=0, microsecond=0))

    for practitioner in list_active_practitioners(db):
        interval = resolve_open_interval(db, practitioner.id, day)
        if interval is None:
            continue

        open_time, close_time = interval
        if not open_time <= slot_start.time() < close_time:
            continue

        result.append(
            PractitionerSlotAvailability(
                practitioner_id=practitioner.id,
                name=_display_name(practitioner),
                is_available=not is_start_time_taken(db, practitioner.id, slot_start),
            )
        )

    return result


def _display_name(practitioner: User) -> str:
    return practitioner.full_name or practitioner.email or f'Practitioner {practitioner.id}'
