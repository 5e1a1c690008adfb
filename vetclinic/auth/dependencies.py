import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from vetclinic.auth import jwt_handler
from vetclinic.auth.identity import Actor
from vetclinic.database import get_db
from vetclinic.models.user import User

security = HTTPBearer()


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account has been deactivated")
    return Actor(id=user.id, role=user.role)


def require_staff(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_staff:
        raise HTTPException(status_code=403, detail="Only clinic staff can perform this action.")
    return actor
