from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vetclinic.auth.dependencies import get_current_actor
from vetclinic.auth.identity import Actor
from vetclinic.database import get_db
from vetclinic.models.user import User

router = APIRouter()


class MeResponse(BaseModel):
    id: int
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    role: str
    is_staff: bool


@router.get("/me", response_model=MeResponse)
def me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == actor.id).first()
    return MeResponse(
        id=actor.id,
        email=user.email if user else None,
        first_name=user.first_name if user else None,
        last_name=user.last_name if user else None,
        role=actor.role,
        is_staff=actor.is_staff,
    )
