from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.orm import Session

from techschool.core.errors import NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import SystemSetting


logger = logging.getLogger(__name__)

GRADES_OPEN = 'GRADES_OPEN'
CURRENT_PERIOD = 'CURRENT_PERIOD'


def academic_period_for(day: date) -> int:
    return 1 if day.month <= 6 else 2


def current_period_label(time_provider: TimeProvider = default_time_provider) -> str:
    today = time_provider.today()
    return f'{academic_period_for(today)}-{today.year}'


def _defaults(time_provider: TimeProvider) -> dict[str, str]:
    return {
        GRADES_OPEN: 'true',
        CURRENT_PERIOD: current_period_label(time_provider),
    }


def get_setting(db: Session, key: str, *, time_provider: TimeProvider = default_time_provider) -> dict:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    if row:
        return {'key': row.key, 'value': row.value}
    defaults = _defaults(time_provider)
    if key in defaults:
        return {'key': key, 'value': defaults[key]}
    raise NotFoundError('Setting not found')


def list_settings(db: Session, *, time_provider: TimeProvider = default_time_provider) -> list[dict]:
    merged = _defaults(time_provider)
    for row in db.query(SystemSetting).order_by(SystemSetting.key.asc()).all():
        merged[row.key] = row.value
    return [{'key': key, 'value': value} for key, value in merged.items()]


def update_setting(db: Session, key: str, value: str) -> dict:
    clean_key = (key or '').strip().upper()
    if not clean_key:
        raise ValidationError('Setting key is required')
    if value is None:
        raise ValidationError('Setting value is required')

    row = db.query(SystemSetting).filter(SystemSetting.key == clean_key).first()
    if row:
        row.value = str(value)
    else:
        row = SystemSetting(key=clean_key, value=str(value))
        db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('system_setting_updated key=%s', clean_key)
    return {'key': row.key, 'value': row.value}


def grades_open(db: Session) -> bool:
    return get_setting(db, GRADES_OPEN)['value'].strip().lower() != 'false'
