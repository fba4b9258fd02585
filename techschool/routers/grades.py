from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user, require_roles
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import GradeSaveRequest
from techschool.services.auth_service import Identity
from techschool.services.grade_service import (
    group_report,
    list_all_active_grades,
    list_course_grades,
    list_group_grades,
    report_card,
    save_grades,
)


router = APIRouter(prefix='/grades', tags=['Grades'], route_class=EndpointNameRoute)
_staff = require_roles('ADMIN', 'TEACHER')


@router.get('/group/{group_id}')
def group_grades_api(group_id: int, identity: Identity = Depends(_staff), db: Session = Depends(get_db)):
    try:
        return list_group_grades(db, group_id=group_id, identity=identity)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/save')
def save_grades_api(payload: GradeSaveRequest, identity: Identity = Depends(_staff), db: Session = Depends(get_db)):
    try:
        return save_grades(
            db,
            enrollment_id=payload.enrollment_id,
            grades=[item.model_dump() for item in payload.grades],
            identity=identity,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/report-card/{enrollment_id}')
def report_card_api(enrollment_id: int, identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return report_card(db, enrollment_id=enrollment_id, identity=identity)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/course/{course_id}')
def course_grades_api(course_id: int, identity: Identity = Depends(_staff), db: Session = Depends(get_db)):
    try:
        return list_course_grades(db, course_id=course_id, identity=identity)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/report/group/{group_id}')
def group_report_api(group_id: int, identity: Identity = Depends(_staff), db: Session = Depends(get_db)):
    try:
        return group_report(db, group_id=group_id, identity=identity)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/stats/all')
def all_grades_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return list_all_active_grades(db)
