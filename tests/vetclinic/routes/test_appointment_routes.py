from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from vetclinic.auth.identity import Actor
from vetclinic.routes.appointment_routes import (
    ForceRescheduleRequest,
    RescheduleRequestCreate,
    StatusChangeRequest,
    cancel,
    change_status,
    check_can_cancel,
    create_appointment,
    create_reschedule_request,
    get_appointment,
    list_appointment_reschedule_requests,
    preview_cancellation,
)
from vetclinic.routes.reschedule_routes import (
    RejectRescheduleRequest,
    approve_request,
    get_pending_count,
    reject_request,
)
from vetclinic.scheduling.lifecycle import BookingRequest


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('vetclinic.routes.appointment_routes.ensure_database_ready', lambda: None)
    monkeypatch.setattr('vetclinic.routes.reschedule_routes.ensure_database_ready', lambda: None)


def in_days(days: int) -> datetime:
    return (datetime.now() + timedelta(days=days)).replace(hour=10, minute=0, second=0, microsecond=0)


def test_status_change_request_normalizes_status() -> None:
    assert StatusChangeRequest(status=' Completed ').status == 'completed'


def test_status_change_request_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        StatusChangeRequest(status='archived')


def test_reschedule_request_drops_seconds_and_blank_note() -> None:
    request = RescheduleRequestCreate(new_scheduled_at=datetime(2026, 3, 10, 12, 0, 33), client_note='   ')

    assert request.new_scheduled_at == datetime(2026, 3, 10, 12, 0)
    assert request.client_note is None


def test_reschedule_payloads_convert_offset_timestamps_to_local_time() -> None:
    sent = datetime(2026, 3, 10, 12, 0, 15, tzinfo=timezone.utc)
    expected = sent.astimezone().replace(tzinfo=None, second=0)

    assert RescheduleRequestCreate(new_scheduled_at=sent).new_scheduled_at == expected
    assert ForceRescheduleRequest(new_scheduled_at='2026-03-10T12:00:15Z').new_scheduled_at == expected


def test_force_reschedule_request_rejects_long_reason() -> None:
    with pytest.raises(ValidationError):
        ForceRescheduleRequest(new_scheduled_at=datetime(2026, 3, 10, 12, 0), reason='x' * 601)


def test_reject_request_strips_reason() -> None:
    assert RejectRescheduleRequest(rejection_reason='  Fully booked ').rejection_reason == 'Fully booked'


def test_booking_and_viewing_own_appointment(db, pet, doctor, client_actor, make_user) -> None:
    data = BookingRequest(pet_id=pet.id, doctor_id=doctor.id, scheduled_at=in_days(10))

    appointment = create_appointment(data=data, actor=client_actor, db=db)

    assert appointment.status == 'proposed'
    assert get_appointment(appointment_id=appointment.id, actor=client_actor, db=db).id == appointment.id

    stranger = make_user('client', 'Tomasz', 'Obcy')
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=appointment.id, actor=Actor(id=stranger.id, role='client'), db=db)
    assert exception_info.value.status_code == 403


def test_get_missing_appointment(db, staff_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_appointment(appointment_id=404, actor=staff_actor, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


def test_cancel_flow(db, pet, doctor, add_appointment, client_actor) -> None:
    appointment = add_appointment(pet.id, doctor.id, in_days(10))

    preview = preview_cancellation(appointment_id=appointment.id, actor=client_actor, db=db)
    assert preview.can_cancel is True
    assert check_can_cancel(appointment_id=appointment.id, actor=client_actor, db=db).can_cancel is True

    result = cancel(appointment_id=appointment.id, actor=client_actor, db=db)
    assert result.status == 'cancelled'

    result = check_can_cancel(appointment_id=appointment.id, actor=client_actor, db=db)
    assert result.can_cancel is False
    assert result.reason == 'Appointment is already cancelled.'


def test_reschedule_request_round_trip(db, pet, doctor, add_appointment, client_actor, staff_actor) -> None:
    appointment = add_appointment(pet.id, doctor.id, in_days(10))

    request = create_reschedule_request(
        appointment_id=appointment.id,
        data=RescheduleRequestCreate(new_scheduled_at=in_days(12)),
        actor=client_actor,
        db=db,
    )
    assert get_pending_count(staff=staff_actor, db=db).pending == 1

    approved = approve_request(request_id=request.id, staff=staff_actor, db=db)
    assert approved.status == 'approved'
    assert get_pending_count(staff=staff_actor, db=db).pending == 0

    history = list_appointment_reschedule_requests(appointment_id=appointment.id, actor=client_actor, db=db)
    assert [entry.id for entry in history] == [request.id]


def test_reject_missing_request(db, staff_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        reject_request(request_id=99, data=RejectRescheduleRequest(), staff=staff_actor, db=db)

    assert exception_info.value.status_code == 404


def test_change_status_reports_side_effects(db, pet, doctor, add_appointment, staff_actor) -> None:
    appointment = add_appointment(pet.id, doctor.id, in_days(3), status='in_progress')

    result = change_status(
        appointment_id=appointment.id,
        data=StatusChangeRequest(status='completed', vaccination_performed=True),
        staff=staff_actor,
        db=db,
    )

    assert result.status == 'completed'
    assert result.vaccination_created is False
