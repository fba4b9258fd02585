from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from techschool.config import settings
from techschool.core.errors import NotFoundError, ValidationError
from techschool.models import Notification, NotificationType, Role, User, user_roles


logger = logging.getLogger(__name__)

_VALID_TYPES = {item.value for item in NotificationType}


def _clean_content(title: str, message: str, notification_type: str | None) -> tuple[str, str, str]:
    clean_title = (title or '').strip()
    clean_message = (message or '').strip()
    if not clean_title or not clean_message:
        raise ValidationError('Title and message are required')
    clean_type = (notification_type or NotificationType.INFO.value).strip().upper()
    if clean_type not in _VALID_TYPES:
        raise ValidationError(f'Invalid notification type: {notification_type}')
    return clean_title, clean_message, clean_type


def _insert_many(db: Session, user_ids: list[int], title: str, message: str, notification_type: str) -> int:
    db.add_all(
        [
            Notification(user_id=user_id, title=title, message=message, type=notification_type, is_read=False)
            for user_id in user_ids
        ]
    )
    return len(user_ids)


def notify_user(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    notification_type: str | None = None,
) -> Notification:
    clean_title, clean_message, clean_type = _clean_content(title, message, notification_type)
    if not db.query(User).filter(User.id == int(user_id)).first():
        raise NotFoundError('User not found')
    row = Notification(user_id=int(user_id), title=clean_title, message=clean_message, type=clean_type)
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('notification_sent user_id=%s notification_id=%s', user_id, row.id)
    return row


def broadcast_to_role(
    db: Session,
    *,
    role_name: str,
    title: str,
    message: str,
    notification_type: str | None = None,
) -> dict:
    clean_title, clean_message, clean_type = _clean_content(title, message, notification_type)
    role = db.query(Role).filter(Role.name == (role_name or '').strip().upper()).first()
    if not role:
        raise NotFoundError(f'Role {role_name} not found')

    member_ids = [
        row.user_id
        for row in db.query(user_roles.c.user_id).filter(user_roles.c.role_id == role.id).all()
    ]
    if not member_ids:
        logger.info('notification_broadcast_empty role=%s', role.name)
        return {'message': f'No users found with role {role.name}', 'count': 0}

    count = _insert_many(db, member_ids, clean_title, clean_message, clean_type)
    db.commit()
    logger.info('notification_broadcast role=%s count=%s', role.name, count)
    return {'message': f'Notification sent to {count} users with role {role.name}', 'count': count}


def notify_users(
    db: Session,
    *,
    user_ids: list[int],
    title: str,
    message: str,
    notification_type: str | None = None,
) -> dict:
    clean_title, clean_message, clean_type = _clean_content(title, message, notification_type)
    unique_ids = list(dict.fromkeys(int(user_id) for user_id in user_ids or []))
    if not unique_ids:
        raise ValidationError('At least one user id is required')
    known_ids = {row.id for row in db.query(User.id).filter(User.id.in_(unique_ids)).all()}
    missing = [user_id for user_id in unique_ids if user_id not in known_ids]
    if missing:
        raise NotFoundError(f'Users not found: {missing}')

    count = _insert_many(db, unique_ids, clean_title, clean_message, clean_type)
    db.commit()
    logger.info('notification_bulk_sent count=%s', count)
    return {'message': f'Notification sent to {count} users', 'count': count}


def notify_admins(db: Session, *, title: str, message: str, notification_type: str | None = None) -> int:
    admin_ids = [
        row.id
        for row in db.query(User.id)
        .join(user_roles, user_roles.c.user_id == User.id)
        .join(Role, Role.id == user_roles.c.role_id)
        .filter(Role.name == 'ADMIN', User.is_active.is_(True))
        .all()
    ]
    if not admin_ids:
        logger.warning('notification_admins_missing title=%s', title)
        return 0
    return notify_users(
        db,
        user_ids=admin_ids,
        title=title,
        message=message,
        notification_type=notification_type,
    )['count']


def list_my_notifications(db: Session, *, user_id: int, limit: int | None = None) -> dict:
    page_size = int(limit or settings.notifications_page_size)
    rows = (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(page_size)
        .all()
    )
    unread_count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )
    return {'notifications': rows, 'unread_count': unread_count}


def mark_as_read(db: Session, *, notification_id: int, user_id: int) -> Notification:
    row = db.query(Notification).filter(Notification.id == int(notification_id)).first()
    if not row or row.user_id != user_id:
        raise NotFoundError('Notification not found')
    if not row.is_read:
        row.is_read = True
        db.commit()
        db.refresh(row)
    return row


def mark_all_as_read(db: Session, *, user_id: int) -> dict:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return {'message': 'All notifications marked as read', 'updated': int(updated or 0)}
