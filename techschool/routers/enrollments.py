from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import EnrollmentCreate
from techschool.services.auth_service import Identity
from techschool.services.enrollment_service import (
    cancel_enrollment,
    create_enrollment,
    enrollment_report,
    get_enrollment,
    list_enrollments,
    serialize_enrollment,
)


router = APIRouter(prefix='/enrollments', tags=['Enrollments'], route_class=EndpointNameRoute)


@router.get('')
def list_enrollments_api(
    group_id: int | None = None,
    student_id: int | None = None,
    status: str | None = None,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_enrollments(db, group_id=group_id, student_id=student_id, status=status)


@router.get('/report')
def enrollment_report_api(
    course_id: int | None = None,
    year: int | None = None,
    academic_period: int | None = None,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return enrollment_report(db, course_id=course_id, year=year, academic_period=academic_period)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('', status_code=201)
def create_enrollment_api(
    payload: EnrollmentCreate,
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return create_enrollment(db, created_by_id=identity.user_id, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{enrollment_id}')
def get_enrollment_api(enrollment_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return serialize_enrollment(get_enrollment(db, enrollment_id))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/{enrollment_id}/cancel')
def cancel_enrollment_api(enrollment_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return cancel_enrollment(db, enrollment_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
