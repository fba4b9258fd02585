from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import ClassroomCreate, ClassroomRead, ClassroomUpdate
from techschool.services.auth_service import Identity
from techschool.services.catalog_service import create_classroom, deactivate_classroom, list_classrooms, update_classroom


router = APIRouter(prefix='/classrooms', tags=['Classrooms'], route_class=EndpointNameRoute)


@router.get('', response_model=list[ClassroomRead])
def list_classrooms_api(_: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return list_classrooms(db)


@router.post('', response_model=ClassroomRead, status_code=201)
def create_classroom_api(payload: ClassroomCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_classroom(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{classroom_id}', response_model=ClassroomRead)
def update_classroom_api(
    classroom_id: int,
    payload: ClassroomUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_classroom(db, classroom_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{classroom_id}')
def delete_classroom_api(classroom_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return deactivate_classroom(db, classroom_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
