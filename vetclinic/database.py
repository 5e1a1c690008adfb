import logging
import os
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from vetclinic.core.errors import DatabaseUnavailableError


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")

engine = create_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

logger = logging.getLogger(__name__)

_schema_lock = Lock()
_appointment_schema_checked = False
_reschedule_schema_checked = False


def _apply_migration_steps(table_name: str, migration_steps: list[tuple[str, str]], index_statements: list[str]) -> None:
    inspector = inspect(engine)

    if table_name not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                logger.info('Adding column %s.%s', table_name, column_name)
                connection.execute(text(statement))
        for statement in index_statements:
            connection.execute(text(statement))


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        _apply_migration_steps(
            'appointments',
            [
                ('reason_id', 'ALTER TABLE appointments ADD COLUMN reason_id INTEGER'),
                ('vaccination_type_id', 'ALTER TABLE appointments ADD COLUMN vaccination_type_id INTEGER'),
                ('late_cancellation_fee', 'ALTER TABLE appointments ADD COLUMN late_cancellation_fee NUMERIC(10, 2)'),
                ('late_cancellation_fee_paid', 'ALTER TABLE appointments ADD COLUMN late_cancellation_fee_paid BOOLEAN'),
                ('late_cancellation_fee_note', 'ALTER TABLE appointments ADD COLUMN late_cancellation_fee_note VARCHAR'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_appointments_doctor_start ON appointments(doctor_user_id, scheduled_at)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_status_start ON appointments(status, scheduled_at)',
            ],
        )

        _appointment_schema_checked = True


def ensure_reschedule_schema() -> None:
    global _reschedule_schema_checked

    if _reschedule_schema_checked:
        return

    with _schema_lock:
        if _reschedule_schema_checked:
            return

        _apply_migration_steps(
            'appointment_reschedule_requests',
            [
                ('client_note', 'ALTER TABLE appointment_reschedule_requests ADD COLUMN client_note VARCHAR'),
                ('rejection_reason', 'ALTER TABLE appointment_reschedule_requests ADD COLUMN rejection_reason VARCHAR'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_reschedule_requests_status ON appointment_reschedule_requests(status, requested_at)',
            ],
        )

        _reschedule_schema_checked = True


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Run the enclosed writes as one transaction.

    Commits when the block exits normally. Any exception rolls back every write
    made in the block; store failures are reported as ``DatabaseUnavailableError``
    and everything else is re-raised unchanged.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Transaction rolled back after a database error.')
        raise DatabaseUnavailableError() from exc
    except Exception:
        db.rollback()
        raise


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
