import logging

from sqlalchemy.orm import Session

from techschool.config import settings
from techschool.models import Role, RoleName, User
from techschool.services.auth_service import hash_password


logger = logging.getLogger(__name__)

ROLE_DESCRIPTIONS = {
    RoleName.ADMIN.value: 'Administrador del sistema',
    RoleName.TEACHER.value: 'Docente',
    RoleName.STUDENT.value: 'Estudiante',
    RoleName.LEGAL_GUARDIAN.value: 'Tutor legal',
}


def _seed_roles(db: Session) -> list[str]:
    existing = {name for (name,) in db.query(Role.name).all()}
    created = []
    for name, description in ROLE_DESCRIPTIONS.items():
        if name in existing:
            continue
        db.add(Role(name=name, description=description))
        created.append(name)
    if created:
        db.commit()
    return created


def _seed_admin(db: Session) -> dict:
    email = (settings.bootstrap_admin_email or '').strip().lower()
    if not email:
        return {'seeded': False, 'reason': 'no_admin_email'}
    if db.query(User.id).filter(User.email == email).first():
        return {'seeded': False, 'reason': 'admin_exists'}
    if not settings.bootstrap_admin_password:
        logger.warning('bootstrap_admin_skipped missing BOOTSTRAP_ADMIN_PASSWORD')
        return {'seeded': False, 'reason': 'no_admin_password'}

    admin_role = db.query(Role).filter(Role.name == RoleName.ADMIN.value).first()
    user = User(
        email=email,
        username='admin',
        password_hash=hash_password(settings.bootstrap_admin_password),
        first_name='Admin',
        paternal_surname='Sistema',
        is_active=True,
        email_verified=True,
    )
    user.roles = [admin_role]
    db.add(user)
    db.commit()
    logger.warning('Bootstrap admin created email=%s - change the password after first login', email)
    return {'seeded': True, 'email': email}


def run_bootstrap(db: Session) -> dict:
    roles = _seed_roles(db)
    admin = _seed_admin(db)
    return {'ran': bool(roles) or admin.get('seeded', False), 'roles_created': roles, 'admin': admin}
