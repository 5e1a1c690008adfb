from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from vetclinic.auth.dependencies import require_staff
from vetclinic.auth.identity import Actor
from vetclinic.database import get_db
from vetclinic.routes.appointment_routes import RescheduleRequestResponse
from vetclinic.routes.common import database_errors, ensure_database_ready
from vetclinic.scheduling.events import notification_events
from vetclinic.scheduling.queries import get_reschedule_request_or_404
from vetclinic.scheduling.reschedule import (
    approve_reschedule,
    count_pending_requests,
    list_reschedule_requests,
    reject_reschedule,
)

router = APIRouter(tags=['reschedule-requests'])

MAX_REJECTION_REASON_LENGTH = 600


class PendingCountResponse(BaseModel):
    pending: int


class RejectRescheduleRequest(BaseModel):
    rejection_reason: str | None = None

    @field_validator('rejection_reason')
    @classmethod
    def validate_rejection_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_REJECTION_REASON_LENGTH:
            raise ValueError(f'Rejection reason must be {MAX_REJECTION_REASON_LENGTH} characters or fewer.')

        return normalized


@router.get('', response_model=list[RescheduleRequestResponse])
def list_requests(
    request_status: str | None = Query(default=None, alias='status'),
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    del staff
    ensure_database_ready()

    with database_errors(db):
        return list_reschedule_requests(db, status=request_status)


@router.get('/pending-count', response_model=PendingCountResponse)
def get_pending_count(
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    del staff
    ensure_database_ready()

    with database_errors(db):
        return PendingCountResponse(pending=count_pending_requests(db))


@router.get('/{request_id}', response_model=RescheduleRequestResponse)
def get_request(
    request_id: int,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    del staff
    ensure_database_ready()

    with database_errors(db):
        return get_reschedule_request_or_404(db, request_id)


@router.post('/{request_id}/approve', response_model=RescheduleRequestResponse)
def approve_request(
    request_id: int,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return approve_reschedule(db, request_id, staff.id, datetime.now(), event_sink=notification_events)


@router.post('/{request_id}/reject', response_model=RescheduleRequestResponse)
def reject_request(
    request_id: int,
    data: RejectRescheduleRequest,
    staff: Actor = Depends(require_staff),
    db: Session = Depends(get_db),
):
    ensure_database_ready()
    return reject_reschedule(
        db,
        request_id,
        staff.id,
        datetime.now(),
        rejection_reason=data.rejection_reason,
        event_sink=notification_events,
    )
