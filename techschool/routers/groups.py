from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user, require_roles
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import GroupCreate, GroupRead, GroupUpdate
from techschool.services.attendance_service import assert_group_access, teacher_for_user
from techschool.services.auth_service import Identity
from techschool.services.catalog_service import (
    cancel_group,
    create_group,
    describe_group,
    get_group,
    list_groups,
    update_group,
)
from techschool.services.group_lifecycle_service import close_group, submit_grades


router = APIRouter(prefix='/groups', tags=['Groups'], route_class=EndpointNameRoute)


@router.get('')
def list_groups_api(
    status: str | None = None,
    course_id: int | None = None,
    identity: Identity = Depends(require_roles('ADMIN', 'TEACHER')),
    db: Session = Depends(get_db),
):
    teacher_id = None
    if not identity.has_role('ADMIN'):
        teacher = teacher_for_user(db, identity.user_id)
        if teacher is None:
            return []
        teacher_id = teacher.id
    groups = list_groups(db, status=status, teacher_id=teacher_id, course_id=course_id)
    return [describe_group(db, group) for group in groups]


@router.post('', response_model=GroupRead, status_code=201)
def create_group_api(payload: GroupCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_group(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{group_id}')
def get_group_api(
    group_id: int,
    identity: Identity = Depends(require_roles('ADMIN', 'TEACHER')),
    db: Session = Depends(get_db),
):
    try:
        group = get_group(db, group_id)
        assert_group_access(db, group, identity)
        return describe_group(db, group)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{group_id}', response_model=GroupRead)
def update_group_api(
    group_id: int,
    payload: GroupUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_group(db, group_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{group_id}', response_model=GroupRead)
def cancel_group_api(group_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return cancel_group(db, group_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/{group_id}/submit-grades')
def submit_grades_api(group_id: int, identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return submit_grades(db, group_id=group_id, caller_user_id=identity.user_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/{group_id}/close')
def close_group_api(group_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return close_group(db, group_id=group_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
