from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import TeacherCreate, TeacherUpdate
from techschool.services.auth_service import Identity
from techschool.services.people_service import (
    create_teacher,
    deactivate_teacher,
    get_teacher,
    list_teachers,
    serialize_teacher,
    update_teacher,
)


router = APIRouter(prefix='/teachers', tags=['Teachers'], route_class=EndpointNameRoute)


@router.get('')
def list_teachers_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return list_teachers(db)


@router.post('', status_code=201)
def create_teacher_api(payload: TeacherCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_teacher(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{teacher_id}')
def get_teacher_api(teacher_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return serialize_teacher(get_teacher(db, teacher_id), with_groups=True)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{teacher_id}')
def update_teacher_api(
    teacher_id: int,
    payload: TeacherUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_teacher(db, teacher_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{teacher_id}')
def delete_teacher_api(teacher_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return deactivate_teacher(db, teacher_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
