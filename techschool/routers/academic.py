from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import CourseCreate, CourseDetail, CourseRead, LevelCreate, LevelRead
from techschool.services.auth_service import Identity
from techschool.services.catalog_service import create_course, create_level, get_course, list_courses, list_levels


router = APIRouter(prefix='/academic', tags=['Academic'], route_class=EndpointNameRoute)


@router.get('/courses', response_model=list[CourseRead])
def list_courses_api(_: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return list_courses(db)


@router.post('/courses', response_model=CourseRead, status_code=201)
def create_course_api(payload: CourseCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_course(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/courses/{course_id}', response_model=CourseDetail)
def get_course_api(course_id: int, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return get_course(db, course_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/courses/{course_id}/levels', response_model=list[LevelRead])
def list_levels_api(course_id: int, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return list_levels(db, course_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/courses/{course_id}/levels', response_model=LevelRead, status_code=201)
def create_level_api(
    course_id: int,
    payload: LevelCreate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return create_level(db, course_id=course_id, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
