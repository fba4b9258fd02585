from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_roles
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.services.auth_service import Identity
from techschool.services.portal_service import my_academic_history, my_attendance, my_courses, my_grades


router = APIRouter(prefix='/student-portal', tags=['Student Portal'], route_class=EndpointNameRoute)
_student = require_roles('STUDENT')


@router.get('/my-courses')
def my_courses_api(identity: Identity = Depends(_student), db: Session = Depends(get_db)):
    try:
        return my_courses(db, user_id=identity.user_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/my-grades/{enrollment_id}')
def my_grades_api(enrollment_id: int, identity: Identity = Depends(_student), db: Session = Depends(get_db)):
    try:
        return my_grades(db, user_id=identity.user_id, enrollment_id=enrollment_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/my-attendance/{enrollment_id}')
def my_attendance_api(enrollment_id: int, identity: Identity = Depends(_student), db: Session = Depends(get_db)):
    try:
        return my_attendance(db, user_id=identity.user_id, enrollment_id=enrollment_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/my-academic-history')
def my_academic_history_api(identity: Identity = Depends(_student), db: Session = Depends(get_db)):
    try:
        return my_academic_history(db, user_id=identity.user_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
