from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import SchoolCreate, SchoolRead, SchoolUpdate
from techschool.services.auth_service import Identity
from techschool.services.school_service import create_school, deactivate_school, get_school, list_schools, update_school


router = APIRouter(prefix='/schools', tags=['Schools'], route_class=EndpointNameRoute)


@router.get('', response_model=list[SchoolRead])
def list_schools_api(search: str | None = None, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return list_schools(db, search=search)


@router.get('/{school_id}', response_model=SchoolRead)
def get_school_api(school_id: int, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return get_school(db, school_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('', response_model=SchoolRead, status_code=201)
def create_school_api(payload: SchoolCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_school(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{school_id}', response_model=SchoolRead)
def update_school_api(
    school_id: int,
    payload: SchoolUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_school(db, school_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{school_id}')
def delete_school_api(school_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return deactivate_school(db, school_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
