from sqlalchemy.orm import Session

from vetclinic.auth.identity import DOCTOR_ROLE
from vetclinic.core.errors import NotFoundError
from vetclinic.models.appointment import Appointment
from vetclinic.models.pet import Pet
from vetclinic.models.reschedule_request import RescheduleRequest
from vetclinic.models.user import User


def get_appointment_or_404(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def get_pet_or_404(db: Session, pet_id: int) -> Pet:
    pet = db.query(Pet).filter(Pet.id == pet_id).first()
    if pet is None:
        raise NotFoundError('Pet not found.')
    return pet


def get_appointment_owner_id(db: Session, appointment: Appointment) -> int:
    return get_pet_or_404(db, appointment.pet_id).owner_user_id


def get_practitioner_or_404(db: Session, practitioner_id: int) -> User:
    practitioner = db.query(User).filter(
        User.id == practitioner_id,
        User.role == DOCTOR_ROLE,
    ).first()
    if practitioner is None:
        raise NotFoundError('Practitioner not found.')
    return practitioner


def list_active_practitioners(db: Session) -> list[User]:
    return db.query(User).filter(
        User.role == DOCTOR_ROLE,
        User.is_active.is_(True),
    ).order_by(User.id.asc()).all()


def get_reschedule_request_or_404(db: Session, request_id: int) -> RescheduleRequest:
    request = db.query(RescheduleRequest).filter(RescheduleRequest.id == request_id).first()
    if request is None:
        raise NotFoundError('Reschedule request not found.')
    return request
