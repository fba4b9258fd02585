from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy import func
from sqlalchemy.orm import Session

from techschool.core.errors import ConflictError, NotFoundError, ValidationError
from techschool.models import Role, User, user_roles
from techschool.services.auth_service import hash_password


logger = logging.getLogger(__name__)

_PASSWORD_ALPHABET = string.ascii_letters + string.digits


def serialize_user(user: User) -> dict:
    return {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'first_name': user.first_name,
        'paternal_surname': user.paternal_surname,
        'maternal_surname': user.maternal_surname,
        'phone': user.phone,
        'is_active': user.is_active,
        'roles': user.role_names,
        'created_at': user.created_at,
    }


def generate_username(db: Session, first_name: str, paternal_surname: str) -> str:
    initial = (first_name or '').strip()[:1].upper()
    surname = ''.join((paternal_surname or '').split()).upper()
    base = f'{initial}{surname}' or 'USER'
    for _ in range(20):
        candidate = f'{base}{secrets.randbelow(900) + 100}'
        if not db.query(User.id).filter(User.username == candidate).first():
            return candidate
    raise ConflictError('Could not generate a unique username')


def generate_password(length: int = 8) -> str:
    return ''.join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))


def ensure_login_available(db: Session, *, username: str | None, email: str | None, exclude_user_id: int | None = None) -> None:
    for column, value, label in ((User.username, username, 'username'), (User.email, email, 'email')):
        if not value:
            continue
        query = db.query(User.id).filter(column == value)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first():
            raise ConflictError(f'User with this {label} already exists')


def roles_by_ids(db: Session, role_ids: list[int]) -> list[Role]:
    unique_ids = list(dict.fromkeys(int(role_id) for role_id in role_ids))
    if not unique_ids:
        return []
    roles = db.query(Role).filter(Role.id.in_(unique_ids)).all()
    if len(roles) != len(unique_ids):
        raise NotFoundError('One or more roles not found')
    return roles


def role_by_name(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        raise NotFoundError(f'Role {name} not found')
    return role


def build_user(
    db: Session,
    *,
    first_name: str,
    paternal_surname: str,
    password: str,
    roles: list[Role],
    maternal_surname: str = '',
    username: str | None = None,
    email: str | None = None,
    phone: str = '',
) -> User:
    """Adds a user to the session without committing."""
    clean_email = (email or '').strip().lower() or None
    clean_username = (username or '').strip() or None
    ensure_login_available(db, username=clean_username, email=clean_email)
    user = User(
        username=clean_username,
        email=clean_email,
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        paternal_surname=paternal_surname.strip(),
        maternal_surname=(maternal_surname or '').strip(),
        phone=(phone or '').strip(),
        is_active=True,
    )
    user.roles = list(roles)
    db.add(user)
    db.flush()
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError('User not found')
    return user


def list_users(db: Session) -> list[dict]:
    return [serialize_user(user) for user in db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()]


def list_roles(db: Session) -> list[dict]:
    return [
        {'id': role.id, 'name': role.name, 'description': role.description}
        for role in db.query(Role).order_by(Role.name.asc()).all()
    ]


def create_user(
    db: Session,
    *,
    username: str,
    password: str,
    first_name: str,
    paternal_surname: str,
    maternal_surname: str = '',
    email: str | None = None,
    phone: str = '',
    role_ids: list[int] | None = None,
) -> dict:
    if not (username or '').strip() or not password or not (first_name or '').strip() or not (paternal_surname or '').strip():
        raise ValidationError('Username, password, first name and paternal surname are required')
    try:
        user = build_user(
            db,
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            paternal_surname=paternal_surname,
            maternal_surname=maternal_surname,
            phone=phone,
            roles=roles_by_ids(db, role_ids or []),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info('user_created user_id=%s roles=%s', user.id, user.role_names)
    return serialize_user(user)


def update_user(db: Session, user_id: int, *, role_ids: list[int] | None = None, **changes) -> dict:
    user = get_user(db, user_id)
    try:
        if 'email' in changes and changes['email'] is not None:
            changes['email'] = changes['email'].strip().lower() or None
        ensure_login_available(
            db,
            username=changes.get('username'),
            email=changes.get('email'),
            exclude_user_id=user.id,
        )
        password = changes.pop('password', None)
        if password:
            user.password_hash = hash_password(password)
        for field_name in ('username', 'email', 'first_name', 'paternal_surname', 'maternal_surname', 'phone', 'is_active'):
            value = changes.get(field_name)
            if value is not None:
                setattr(user, field_name, value)
        if role_ids is not None:
            user.roles = roles_by_ids(db, role_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info('user_updated user_id=%s roles_replaced=%s', user.id, role_ids is not None)
    return serialize_user(user)


def set_user_status(db: Session, user_id: int, *, is_active: bool) -> dict:
    user = get_user(db, user_id)
    user.is_active = bool(is_active)
    db.commit()
    db.refresh(user)
    logger.info('user_status_changed user_id=%s is_active=%s', user.id, user.is_active)
    return serialize_user(user)


def user_metrics(db: Session) -> dict:
    total = db.query(User).count()
    active = db.query(User).filter(User.is_active.is_(True)).count()
    distribution = (
        db.query(Role.name, func.count(user_roles.c.user_id))
        .outerjoin(user_roles, user_roles.c.role_id == Role.id)
        .group_by(Role.id, Role.name)
        .order_by(Role.name.asc())
        .all()
    )
    return {
        'total_users': total,
        'active_users': active,
        'inactive_users': total - active,
        'roles_distribution': [{'role': name, 'count': int(count)} for name, count in distribution],
    }
