from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetclinic.auth.dependencies import get_current_actor
from vetclinic.auth.identity import Actor
from vetclinic.core.errors import ValidationError
from vetclinic.database import get_db
from vetclinic.routes.common import database_errors, ensure_database_ready
from vetclinic.scheduling.availability import (
    ClinicTimeRange,
    PractitionerSlotAvailability,
    PractitionerTimeRange,
    Slot,
    compute_slots,
    get_practitioner_time_range,
    practitioners_for_slot,
    time_range_across_practitioners,
)
from vetclinic.scheduling.conflicts import MAX_APPOINTMENT_DURATION_MINUTES, find_overlapping_appointments, is_start_time_taken
from vetclinic.scheduling.queries import get_practitioner_or_404

router = APIRouter(tags=['availability'])


class SlotCheckResponse(BaseModel):
    practitioner_id: int
    start: datetime
    end: datetime
    start_time_taken: bool
    has_overlap: bool
    conflicting_appointment_ids: list[int]


def parse_slot_time(value: str) -> time:
    try:
        return datetime.strptime(value.strip(), '%H:%M').time()
    except ValueError as exc:
        raise ValidationError('Time must use the HH:MM format.') from exc


@router.get('/practitioners/{practitioner_id}/slots', response_model=list[Slot])
def list_practitioner_slots(
    practitioner_id: int,
    day: date = Query(alias='date'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with database_errors(db):
        return compute_slots(db, practitioner_id, day, datetime.now(), caller_role=actor.role)


@router.get('/practitioners/{practitioner_id}/time-range', response_model=PractitionerTimeRange)
def get_practitioner_hours(
    practitioner_id: int,
    day: date = Query(alias='date'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    ensure_database_ready()

    with database_errors(db):
        return get_practitioner_time_range(db, practitioner_id, day)


@router.get('/time-range', response_model=ClinicTimeRange)
def get_clinic_hours(
    day: date = Query(alias='date'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    ensure_database_ready()

    with database_errors(db):
        return time_range_across_practitioners(db, day)


@router.get('/slot-practitioners', response_model=list[PractitionerSlotAvailability])
def list_practitioners_for_slot(
    day: date = Query(alias='date'),
    slot_time: str = Query(alias='time'),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    parsed_time = parse_slot_time(slot_time)
    ensure_database_ready()

    with database_errors(db):
        return practitioners_for_slot(db, day, parsed_time)


@router.get('/check', response_model=SlotCheckResponse)
def check_slot(
    practitioner_id: int = Query(...),
    start: datetime = Query(...),
    duration_minutes: int = Query(default=45, ge=1, le=MAX_APPOINTMENT_DURATION_MINUTES),
    exclude_appointment_id: int | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    del actor
    ensure_database_ready()
    normalized_start = start.replace(second=0, microsecond=0)

    with database_errors(db):
        get_practitioner_or_404(db, practitioner_id)
        overlapping = find_overlapping_appointments(
            db, practitioner_id, normalized_start, duration_minutes, exclude_appointment_id,
        )
        return SlotCheckResponse(
            practitioner_id=practitioner_id,
            start=normalized_start,
            end=normalized_start + timedelta(minutes=duration_minutes),
            start_time_taken=is_start_time_taken(db, practitioner_id, normalized_start, exclude_appointment_id),
            has_overlap=bool(overlapping),
            conflicting_appointment_ids=[appointment.id for appointment in overlapping],
        )
