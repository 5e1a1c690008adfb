"""User model definitions."""

from sqlalchemy import Boolean, Column, Integer, String
from vetclinic.database import Base


class User(Base):
    """Represents an application user (client or clinic staff)."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    first_name = Column(String)
    last_name = Column(String)
    hashed_password = Column(String)
    role = Column(String)  # client/doctor/receptionist/admin
    is_active = Column(Boolean, default=True)

    @property
    def full_name(self) -> str:
        return ' '.join(part for part in (self.first_name, self.last_name) if part)
