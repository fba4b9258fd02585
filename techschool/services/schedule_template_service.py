from __future__ import annotations

import logging
from datetime import time

from sqlalchemy.orm import Session

from techschool.core.errors import ConflictError, NotFoundError, ValidationError
from techschool.models import DayOfWeek, ScheduleTemplate, ScheduleTemplateItem


logger = logging.getLogger(__name__)

_DAYS = {item.value for item in DayOfWeek}


def _parse_clock(value, label: str) -> time:
    if isinstance(value, time):
        parsed = value
    else:
        try:
            parsed = time.fromisoformat(str(value or '').strip())
        except ValueError as exc:
            raise ValidationError(f'Invalid {label}: {value}') from exc
    # Minute precision, seconds are dropped.
    return parsed.replace(second=0, microsecond=0, tzinfo=None)


def _build_items(items: list[dict]) -> list[ScheduleTemplateItem]:
    rows = []
    for index, item in enumerate(items):
        day = str(item.get('day_of_week') or '').strip().upper()
        if day not in _DAYS:
            raise ValidationError(f'Invalid day of week at item {index}: {item.get("day_of_week")}')
        start = _parse_clock(item.get('start_time'), 'start time')
        end = _parse_clock(item.get('end_time'), 'end time')
        if end <= start:
            raise ValidationError(f'End time must be after start time at item {index}')
        rows.append(ScheduleTemplateItem(day_of_week=day, start_time=start, end_time=end))
    return rows


def serialize_template(template: ScheduleTemplate) -> dict:
    return {
        'id': template.id,
        'name': template.name,
        'description': template.description,
        'items': [
            {
                'id': item.id,
                'day_of_week': item.day_of_week,
                'start_time': item.start_time.strftime('%H:%M'),
                'end_time': item.end_time.strftime('%H:%M'),
            }
            for item in template.items
        ],
    }


def list_templates(db: Session) -> list[dict]:
    templates = db.query(ScheduleTemplate).order_by(ScheduleTemplate.name.asc()).all()
    return [serialize_template(template) for template in templates]


def create_template(db: Session, *, name: str, items: list[dict] | None, description: str = '') -> dict:
    clean_name = (name or '').strip()
    if not clean_name or not isinstance(items, list):
        raise ValidationError('Template name and items are required')
    if db.query(ScheduleTemplate.id).filter(ScheduleTemplate.name == clean_name).first():
        raise ConflictError('A schedule template with this name already exists')

    template = ScheduleTemplate(name=clean_name, description=description or '')
    template.items = _build_items(items)
    try:
        db.add(template)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(template)
    logger.info('schedule_template_created template_id=%s items=%s', template.id, len(template.items))
    return serialize_template(template)


def delete_template(db: Session, template_id: int) -> dict:
    template = db.query(ScheduleTemplate).filter(ScheduleTemplate.id == template_id).first()
    if not template:
        raise NotFoundError('Schedule template not found')
    db.delete(template)
    db.commit()
    logger.info('schedule_template_deleted template_id=%s', template_id)
    return {'message': 'Template deleted successfully'}
