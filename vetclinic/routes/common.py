from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vetclinic.core.errors import DatabaseUnavailableError, ForbiddenError
from vetclinic.auth.identity import Actor
from vetclinic.database import ensure_appointment_schema, ensure_reschedule_schema
from vetclinic.models.appointment import Appointment
from vetclinic.scheduling.queries import get_appointment_owner_id


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
        ensure_reschedule_schema()
    except SQLAlchemyError as exc:
        raise DatabaseUnavailableError() from exc


@contextmanager
def database_errors(db: Session) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise DatabaseUnavailableError() from exc


def ensure_can_view(db: Session, appointment: Appointment, actor: Actor) -> None:
    if not actor.is_staff and get_appointment_owner_id(db, appointment) != actor.id:
        raise ForbiddenError('You can only view your own appointments.')
