from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_roles
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import AttendanceBatchRequest
from techschool.services.attendance_service import get_attendance, get_attendance_stats, save_attendance_batch
from techschool.services.auth_service import Identity


router = APIRouter(prefix='/attendance', tags=['Attendance'], route_class=EndpointNameRoute)
_staff = require_roles('ADMIN', 'TEACHER')


@router.get('/{group_id}/date')
def attendance_by_date_api(
    group_id: int,
    attendance_date: date = Query(alias='date'),
    identity: Identity = Depends(_staff),
    db: Session = Depends(get_db),
):
    try:
        return get_attendance(db, group_id=group_id, attendance_date=attendance_date, identity=identity)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/batch')
def save_attendance_batch_api(
    payload: AttendanceBatchRequest,
    identity: Identity = Depends(_staff),
    db: Session = Depends(get_db),
):
    try:
        return save_attendance_batch(
            db,
            group_id=payload.group_id,
            attendance_date=payload.attendance_date,
            records=[record.model_dump() for record in payload.records],
            identity=identity,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.get('/{group_id}/stats')
def attendance_stats_api(
    group_id: int,
    start_date: date,
    end_date: date,
    identity: Identity = Depends(_staff),
    db: Session = Depends(get_db),
):
    try:
        return get_attendance_stats(
            db,
            group_id=group_id,
            start_date=start_date,
            end_date=end_date,
            identity=identity,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
