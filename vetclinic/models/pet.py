"""Pet model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from vetclinic.database import Base


class Pet(Base):
    """Represents a patient owned by a client."""
    __tablename__ = "pets"

    id = Column(Integer, primary_key=True)
    owner_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    species = Column(String)
