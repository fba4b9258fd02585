from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import LoginRequest
from techschool.services.auth_service import Identity, login
from techschool.services.user_service import get_user, serialize_user


router = APIRouter(prefix='/auth', tags=['Auth'], route_class=EndpointNameRoute)


@router.post('/login')
def login_api(payload: LoginRequest, db: Session = Depends(get_db)):
    try:
        return login(db, payload.identifier, payload.password)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/me')
def me_api(identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return serialize_user(get_user(db, identity.user_id))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
