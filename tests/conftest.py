import os
from datetime import datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from vetclinic.auth.identity import Actor  # noqa: E402
from vetclinic.database import Base  # noqa: E402
from vetclinic.models.appointment import Appointment, AppointmentReason  # noqa: E402
from vetclinic.models import clinical, reschedule_request, schedule  # noqa: E402,F401
from vetclinic.models.clinical import VaccinationType  # noqa: E402
from vetclinic.models.pet import Pet  # noqa: E402
from vetclinic.models.schedule import Schedule, WorkingHours  # noqa: E402
from vetclinic.models.user import User  # noqa: E402
from vetclinic.scheduling import events  # noqa: E402
from vetclinic.scheduling.events import NotificationEvents  # noqa: E402

# Monday
BASE_DAY = datetime(2026, 3, 2).date()

ALL_EVENTS = (
    events.APPOINTMENT_PROPOSED,
    events.APPOINTMENT_CONFIRMED,
    events.APPOINTMENT_CANCELLED,
    events.APPOINTMENT_COMPLETED,
    events.APPOINTMENT_RESCHEDULED_BY_STAFF,
    events.RESCHEDULE_REQUESTED,
    events.RESCHEDULE_APPROVED,
    events.RESCHEDULE_REJECTED,
)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_user(db):
    def _make_user(role: str = 'client', first_name: str = 'Anna', last_name: str = 'Nowak', is_active: bool = True) -> User:
        user = User(
            email=f'{first_name.lower()}.{last_name.lower()}.{role}@example.com',
            first_name=first_name,
            last_name=last_name,
            hashed_password='',
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def client(make_user) -> User:
    return make_user('client', 'Anna', 'Nowak')


@pytest.fixture
def doctor(make_user) -> User:
    return make_user('doctor', 'Jan', 'Kowalski')


@pytest.fixture
def receptionist(make_user) -> User:
    return make_user('receptionist', 'Ewa', 'Lis')


@pytest.fixture
def client_actor(client) -> Actor:
    return Actor(id=client.id, role=client.role)


@pytest.fixture
def staff_actor(receptionist) -> Actor:
    return Actor(id=receptionist.id, role=receptionist.role)


@pytest.fixture
def pet(db, client) -> Pet:
    pet = Pet(owner_user_id=client.id, name='Burek', species='dog')
    db.add(pet)
    db.commit()
    return pet


@pytest.fixture
def add_working_hours(db):
    def _add(practitioner_id: int, day_of_week: str = 'monday', start: time = time(9, 0), end: time = time(17, 0)) -> WorkingHours:
        hours = WorkingHours(
            doctor_user_id=practitioner_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            is_active=True,
        )
        db.add(hours)
        db.commit()
        return hours

    return _add


@pytest.fixture
def add_schedule(db):
    def _add(practitioner_id: int, day, start: time, end: time, status: str = 'approved', created_at: datetime | None = None) -> Schedule:
        override = Schedule(
            doctor_user_id=practitioner_id,
            date=day,
            start_time=start,
            end_time=end,
            status=status,
            created_at=created_at or datetime(2026, 1, 1, 12, 0),
        )
        db.add(override)
        db.commit()
        return override

    return _add


@pytest.fixture
def add_appointment(db):
    def _add(
        pet_id: int,
        practitioner_id: int,
        scheduled_at: datetime,
        duration_minutes: int = 45,
        status: str = 'confirmed',
        reason_id: int | None = None,
        vaccination_type_id: int | None = None,
    ) -> Appointment:
        appointment = Appointment(
            pet_id=pet_id,
            doctor_user_id=practitioner_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=status,
            reason_id=reason_id,
            vaccination_type_id=vaccination_type_id,
        )
        db.add(appointment)
        db.commit()
        return appointment

    return _add


@pytest.fixture
def vaccination_reason(db) -> AppointmentReason:
    reason = AppointmentReason(name='Vaccination', is_vaccination=True, is_active=True)
    db.add(reason)
    db.commit()
    return reason


@pytest.fixture
def checkup_reason(db) -> AppointmentReason:
    reason = AppointmentReason(name='Checkup', is_vaccination=False, is_active=True)
    db.add(reason)
    db.commit()
    return reason


@pytest.fixture
def rabies(db) -> VaccinationType:
    vaccination_type = VaccinationType(name='Rabies', species='dog', recommended_interval_months=36, is_active=True)
    db.add(vaccination_type)
    db.commit()
    return vaccination_type


@pytest.fixture
def recorded_events():
    sink = NotificationEvents()
    received: list[tuple[str, dict]] = []

    for event_name in ALL_EVENTS:
        sink.subscribe(event_name, lambda payload, name=event_name: received.append((name, payload)))

    return sink, received
