from datetime import date, datetime, time

import pytest
from fastapi import HTTPException

from vetclinic.routes.availability_routes import (
    check_slot,
    get_clinic_hours,
    list_practitioners_for_slot,
    parse_slot_time,
)

MONDAY = date(2026, 3, 2)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('vetclinic.routes.availability_routes.ensure_database_ready', lambda: None)


def test_parse_slot_time() -> None:
    assert parse_slot_time(' 09:00 ') == time(9, 0)


def test_parse_slot_time_rejects_bad_format() -> None:
    with pytest.raises(HTTPException) as exception_info:
        parse_slot_time('9am')

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Time must use the HH:MM format.'


def test_check_slot_reports_both_checks(db, pet, doctor, add_appointment, staff_actor) -> None:
    existing = add_appointment(pet.id, doctor.id, datetime(2026, 3, 2, 9, 30))

    result = check_slot(
        practitioner_id=doctor.id,
        start=datetime(2026, 3, 2, 10, 0),
        duration_minutes=45,
        exclude_appointment_id=None,
        actor=staff_actor,
        db=db,
    )

    assert result.start_time_taken is False
    assert result.has_overlap is True
    assert result.conflicting_appointment_ids == [existing.id]
    assert result.end == datetime(2026, 3, 2, 10, 45)


def test_check_slot_unknown_practitioner(db, staff_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        check_slot(
            practitioner_id=12345,
            start=datetime(2026, 3, 2, 10, 0),
            duration_minutes=45,
            exclude_appointment_id=None,
            actor=staff_actor,
            db=db,
        )

    assert exception_info.value.status_code == 404


def test_clinic_hours_and_slot_practitioners(db, doctor, add_working_hours, client_actor) -> None:
    add_working_hours(doctor.id, 'monday', time(8, 0), time(14, 0))

    clinic_range = get_clinic_hours(day=MONDAY, actor=client_actor, db=db)
    assert clinic_range.start_time == time(8, 0)
    assert clinic_range.end_time == time(14, 0)

    practitioners = list_practitioners_for_slot(day=MONDAY, slot_time='09:00', actor=client_actor, db=db)
    assert [entry.practitioner_id for entry in practitioners] == [doctor.id]
