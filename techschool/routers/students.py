from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import StudentCreate, StudentUpdate
from techschool.services.auth_service import Identity
from techschool.services.people_service import (
    academic_history,
    create_student,
    deactivate_student,
    get_student,
    list_students,
    serialize_student,
    update_student,
)


router = APIRouter(prefix='/students', tags=['Students'], route_class=EndpointNameRoute)


@router.get('')
def list_students_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return list_students(db)


@router.post('', status_code=201)
def create_student_api(payload: StudentCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_student(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{student_id}')
def get_student_api(student_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return serialize_student(db, get_student(db, student_id), with_enrollments=True)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{student_id}/academic-history')
def academic_history_api(student_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return academic_history(db, student_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{student_id}')
def update_student_api(
    student_id: int,
    payload: StudentUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_student(db, student_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{student_id}')
def delete_student_api(student_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return deactivate_student(db, student_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
