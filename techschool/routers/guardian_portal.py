from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_roles
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.services.auth_service import Identity
from techschool.services.portal_service import my_students, ward_attendance, ward_courses, ward_grades


router = APIRouter(prefix='/guardian-portal', tags=['Guardian Portal'], route_class=EndpointNameRoute)
_guardian = require_roles('LEGAL_GUARDIAN', 'GUARDIAN')


@router.get('/my-students')
def my_students_api(identity: Identity = Depends(_guardian), db: Session = Depends(get_db)):
    try:
        return my_students(db, user_id=identity.user_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/student-courses/{student_id}')
def ward_courses_api(student_id: int, identity: Identity = Depends(_guardian), db: Session = Depends(get_db)):
    try:
        return ward_courses(db, user_id=identity.user_id, student_id=student_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/student-grades/{student_id}/{enrollment_id}')
def ward_grades_api(
    student_id: int,
    enrollment_id: int,
    identity: Identity = Depends(_guardian),
    db: Session = Depends(get_db),
):
    try:
        return ward_grades(db, user_id=identity.user_id, student_id=student_id, enrollment_id=enrollment_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/student-attendance/{student_id}/{enrollment_id}')
def ward_attendance_api(
    student_id: int,
    enrollment_id: int,
    identity: Identity = Depends(_guardian),
    db: Session = Depends(get_db),
):
    try:
        return ward_attendance(db, user_id=identity.user_id, student_id=student_id, enrollment_id=enrollment_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
