from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import (
    NotificationBroadcastRequest,
    NotificationBulkRequest,
    NotificationRead,
    NotificationSendRequest,
)
from techschool.services.auth_service import Identity
from techschool.services.notification_service import (
    broadcast_to_role,
    list_my_notifications,
    mark_all_as_read,
    mark_as_read,
    notify_user,
    notify_users,
)


router = APIRouter(prefix='/notifications', tags=['Notifications'], route_class=EndpointNameRoute)


@router.get('')
def my_notifications_api(identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    data = list_my_notifications(db, user_id=identity.user_id)
    return {
        'notifications': [NotificationRead.model_validate(row) for row in data['notifications']],
        'unread_count': data['unread_count'],
    }


@router.patch('/read-all')
def mark_all_read_api(identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return mark_all_as_read(db, user_id=identity.user_id)


@router.patch('/{notification_id}/read', response_model=NotificationRead)
def mark_read_api(notification_id: int, identity: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return mark_as_read(db, notification_id=notification_id, user_id=identity.user_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/send', response_model=NotificationRead, status_code=201)
def send_notification_api(
    payload: NotificationSendRequest,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return notify_user(
            db,
            user_id=payload.user_id,
            title=payload.title,
            message=payload.message,
            notification_type=payload.type,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/broadcast', status_code=201)
def broadcast_notification_api(
    payload: NotificationBroadcastRequest,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return broadcast_to_role(
            db,
            role_name=payload.role_name,
            title=payload.title,
            message=payload.message,
            notification_type=payload.type,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('/send-bulk', status_code=201)
def send_bulk_notification_api(
    payload: NotificationBulkRequest,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return notify_users(
            db,
            user_ids=payload.user_ids,
            title=payload.title,
            message=payload.message,
            notification_type=payload.type,
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
