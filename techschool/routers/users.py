from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import UserCreate, UserStatusUpdate, UserUpdate
from techschool.services.auth_service import Identity
from techschool.services.user_service import (
    create_user,
    get_user,
    list_roles,
    list_users,
    serialize_user,
    set_user_status,
    update_user,
    user_metrics,
)


router = APIRouter(prefix='/users', tags=['Users'], route_class=EndpointNameRoute)


@router.get('')
def list_users_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return list_users(db)


@router.get('/metrics')
def user_metrics_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return user_metrics(db)


@router.get('/roles')
def list_roles_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return list_roles(db)


@router.post('', status_code=201)
def create_user_api(payload: UserCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_user(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{user_id}')
def get_user_api(user_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return serialize_user(get_user(db, user_id))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{user_id}')
def update_user_api(
    user_id: int,
    payload: UserUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_user(db, user_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.patch('/{user_id}/status')
def set_user_status_api(
    user_id: int,
    payload: UserStatusUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return set_user_status(db, user_id, is_active=payload.is_active)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
