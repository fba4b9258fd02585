import sys

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import text

from techschool.config import settings
from techschool.db import SessionLocal, engine
from techschool.models import Role, RoleName, User
from techschool.services.system_settings_service import list_settings


GREEN = '\033[32m'
RED = '\033[31m'
RESET = '\033[0m'


def run_check(name, fn):
    try:
        message = fn() or ''
        suffix = f' - {message}' if message else ''
        print(f'{GREEN}PASS{RESET} {name}{suffix}')
        return True
    except Exception as exc:
        print(f'{RED}FAIL{RESET} {name} - {exc}')
        return False


def check_db_connectivity_and_write():
    with engine.begin() as conn:
        conn.execute(text('SELECT 1'))
        conn.execute(text('CREATE TABLE IF NOT EXISTS _healthcheck_write (id INTEGER PRIMARY KEY, note TEXT)'))
        conn.execute(text("INSERT INTO _healthcheck_write (note) VALUES ('check')"))
        conn.execute(text("DELETE FROM _healthcheck_write WHERE note='check'"))
        conn.execute(text('DROP TABLE IF EXISTS _healthcheck_write'))
    return 'connect + write ok'


def check_alembic_head():
    cfg = Config('alembic.ini')
    script = ScriptDirectory.from_config(cfg)
    heads = set(script.get_heads())
    if not heads:
        raise RuntimeError('No alembic heads found in repository')

    with engine.connect() as conn:
        current = MigrationContext.configure(conn).get_current_revision()

    if current is None:
        raise RuntimeError('No migration version in DB (run alembic upgrade head)')
    if current not in heads:
        raise RuntimeError(f'DB revision {current} is not at head {sorted(heads)}')
    return f'current={current}'


def check_required_env():
    required = {
        'DATABASE_URL': settings.database_url,
        'JWT_SECRET': settings.jwt_secret,
    }
    missing = [key for key, value in required.items() if not str(value).strip()]
    if missing:
        raise RuntimeError(f'Missing env vars: {", ".join(missing)}')
    if settings.app_env != 'local' and settings.jwt_secret == 'change-me':
        raise RuntimeError('JWT_SECRET still has the default value')
    return 'all required vars present'


def check_roles_seeded():
    db = SessionLocal()
    try:
        present = {name for (name,) in db.query(Role.name).all()}
        missing = sorted({item.value for item in RoleName} - present)
        if missing:
            raise RuntimeError(f'Missing roles: {missing} (run python bootstrap.py)')
        return f'roles={sorted(present)}'
    finally:
        db.close()


def check_admin_present():
    db = SessionLocal()
    try:
        admins = (
            db.query(User)
            .filter(User.is_active.is_(True), User.roles.any(Role.name == RoleName.ADMIN.value))
            .count()
        )
        if not admins:
            raise RuntimeError('No active ADMIN user')
        return f'active_admins={admins}'
    finally:
        db.close()


def check_settings_readable():
    db = SessionLocal()
    try:
        rows = list_settings(db)
        return f'settings={len(rows)}'
    finally:
        db.close()


def main():
    checks = [
        ('Database connectivity and write access', check_db_connectivity_and_write),
        ('Alembic migration status at head', check_alembic_head),
        ('Required environment variables present', check_required_env),
        ('Roles seeded', check_roles_seeded),
        ('Active administrator present', check_admin_present),
        ('System settings readable', check_settings_readable),
    ]

    all_ok = True
    for name, fn in checks:
        all_ok = run_check(name, fn) and all_ok

    if not all_ok:
        sys.exit(1)
    sys.exit(0)


if __name__ == '__main__':
    main()
