"""Creates the schema if needed, seeds roles and the first admin account.

Run once after deploying:  BOOTSTRAP_ADMIN_PASSWORD=... python bootstrap.py
"""
import logging
import sys

from techschool.config import settings
from techschool.db import Base, SessionLocal, engine
from techschool.services.bootstrap_service import run_bootstrap


logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s %(message)s')
logger = logging.getLogger('techschool.bootstrap')


def main() -> int:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        result = run_bootstrap(db)
    finally:
        db.close()

    admin = result['admin']
    logger.info('bootstrap_done env=%s roles_created=%s admin=%s', settings.app_env, result['roles_created'], admin)
    if admin.get('reason') == 'no_admin_password':
        logger.error('bootstrap_incomplete set BOOTSTRAP_ADMIN_PASSWORD to seed the admin account')
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
