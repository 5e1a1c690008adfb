from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from vetclinic.auth import jwt_handler
from vetclinic.auth.dependencies import get_current_actor, require_staff
from vetclinic.auth.identity import Actor
from vetclinic.core import config
from vetclinic.routes.auth_routes import me


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_token_round_trip() -> None:
    token = jwt_handler.create_access_token('7', role='doctor')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == '7'
    assert payload['role'] == 'doctor'


def test_get_current_actor_loads_user(db, client) -> None:
    actor = get_current_actor(credentials=bearer(jwt_handler.create_access_token(str(client.id))), db=db)

    assert actor == Actor(id=client.id, role='client')
    assert actor.is_client is True
    assert actor.is_staff is False


def test_get_current_actor_rejects_expired_token(db, client) -> None:
    expired = jwt.encode(
        {'sub': str(client.id), 'exp': datetime.now(timezone.utc) - timedelta(minutes=1)},
        config.JWT_SECRET_KEY,
        algorithm=config.JWT_ALGORITHM,
    )

    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(credentials=bearer(expired), db=db)

    assert exception_info.value.status_code == 401


@pytest.mark.parametrize('subject', ['abc', '999'])
def test_get_current_actor_rejects_unknown_subject(db, subject: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(credentials=bearer(jwt_handler.create_access_token(subject)), db=db)

    assert exception_info.value.status_code == 401


def test_get_current_actor_rejects_inactive_user(db, make_user) -> None:
    inactive = make_user('client', 'Ola', 'Zawieszona', is_active=False)

    with pytest.raises(HTTPException) as exception_info:
        get_current_actor(credentials=bearer(jwt_handler.create_access_token(str(inactive.id))), db=db)

    assert exception_info.value.status_code == 403


def test_require_staff(client_actor, staff_actor) -> None:
    assert require_staff(actor=staff_actor) is staff_actor

    with pytest.raises(HTTPException) as exception_info:
        require_staff(actor=client_actor)

    assert exception_info.value.status_code == 403


def test_me_returns_profile(db, doctor) -> None:
    response = me(actor=Actor(id=doctor.id, role='doctor'), db=db)

    assert response.first_name == 'Jan'
    assert response.is_staff is True
