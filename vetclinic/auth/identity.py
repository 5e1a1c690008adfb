"""Resolved caller identity consumed by every actor-aware operation."""

from pydantic import BaseModel

CLIENT_ROLE = 'client'
DOCTOR_ROLE = 'doctor'
RECEPTIONIST_ROLE = 'receptionist'
ADMIN_ROLE = 'admin'
STAFF_ROLES = frozenset({DOCTOR_ROLE, RECEPTIONIST_ROLE, ADMIN_ROLE})


class Actor(BaseModel):
    id: int
    role: str

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_client(self) -> bool:
        return self.role == CLIENT_ROLE
