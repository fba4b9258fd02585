from __future__ import annotations

import logging
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from techschool.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import Classroom, Course, Enrollment, EnrollmentStatus, Group, GroupStatus, Level, Teacher


logger = logging.getLogger(__name__)

_GROUP_FIELDS = ('teacher_id', 'name', 'start_date', 'end_date', 'max_capacity', 'min_capacity', 'classroom', 'notes')


def list_classrooms(db: Session) -> list[Classroom]:
    return db.query(Classroom).filter(Classroom.is_active.is_(True)).order_by(Classroom.name.asc()).all()


def create_classroom(db: Session, *, name: str, capacity: int = 20, location: str = '', description: str = '') -> Classroom:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Classroom name is required')
    row = Classroom(name=clean_name, capacity=int(capacity), location=location or '', description=description or '')
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_classroom(db: Session, classroom_id: int) -> Classroom:
    row = db.query(Classroom).filter(Classroom.id == classroom_id).first()
    if not row:
        raise NotFoundError('Classroom not found')
    return row


def update_classroom(db: Session, classroom_id: int, **changes) -> Classroom:
    row = _get_classroom(db, classroom_id)
    for field_name in ('name', 'capacity', 'location', 'description'):
        value = changes.get(field_name)
        if value is not None:
            setattr(row, field_name, value)
    db.commit()
    db.refresh(row)
    return row


def deactivate_classroom(db: Session, classroom_id: int) -> dict:
    row = _get_classroom(db, classroom_id)
    row.is_active = False
    db.commit()
    return {'message': 'Classroom deleted successfully'}


def list_courses(db: Session, *, include_inactive: bool = False) -> list[Course]:
    query = db.query(Course)
    if not include_inactive:
        query = query.filter(Course.is_active.is_(True))
    return query.order_by(Course.name.asc()).all()


def get_course(db: Session, course_id: int) -> Course:
    row = db.query(Course).filter(Course.id == course_id).first()
    if not row:
        raise NotFoundError('Course not found')
    return row


def create_course(
    db: Session,
    *,
    name: str,
    code: str,
    description: str = '',
    min_age: int | None = None,
    max_age: int | None = None,
    duration_months: int | None = None,
) -> Course:
    clean_name = (name or '').strip()
    clean_code = (code or '').strip().upper()
    if not clean_name or not clean_code:
        raise ValidationError('Course name and code are required')
    if min_age is not None and max_age is not None and min_age > max_age:
        raise ValidationError('Minimum age cannot exceed maximum age')
    if db.query(Course.id).filter(Course.code == clean_code).first():
        raise ConflictError('Course with this code already exists')
    row = Course(
        name=clean_name,
        code=clean_code,
        description=description or '',
        min_age=min_age,
        max_age=max_age,
        duration_months=duration_months,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info('course_created course_id=%s code=%s', row.id, row.code)
    return row


def list_levels(db: Session, course_id: int) -> list[Level]:
    get_course(db, course_id)
    return (
        db.query(Level)
        .filter(Level.course_id == course_id, Level.is_active.is_(True))
        .order_by(Level.order_index.asc())
        .all()
    )


def create_level(
    db: Session,
    *,
    course_id: int,
    name: str,
    code: str,
    description: str = '',
    order_index: int = 1,
    duration_weeks: int | None = None,
    total_hours: int | None = None,
    base_price: float | None = None,
) -> Level:
    course = get_course(db, course_id)
    clean_name = (name or '').strip()
    clean_code = (code or '').strip().upper()
    if not clean_name or not clean_code:
        raise ValidationError('Level name and code are required')
    duplicate = db.query(Level.id).filter(Level.course_id == course.id, Level.code == clean_code).first()
    if duplicate:
        raise ConflictError('Level with this code already exists in the course')
    row = Level(
        course_id=course.id,
        name=clean_name,
        code=clean_code,
        description=description or '',
        order_index=int(order_index),
        duration_weeks=duration_weeks,
        total_hours=total_hours,
        base_price=base_price,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def get_group(db: Session, group_id: int) -> Group:
    group = db.query(Group).filter(Group.id == group_id).first()
    if not group:
        raise NotFoundError('Group not found')
    return group


def _active_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher or not teacher.is_active:
        raise NotFoundError('Teacher not found')
    return teacher


def _generate_group_code(db: Session, course: Course, level: Level, year: int) -> str:
    for _ in range(20):
        candidate = f'GRP-{course.code}-{level.code}-{year}-{secrets.randbelow(9000) + 1000}'
        if not db.query(Group.id).filter(Group.code == candidate).first():
            return candidate
    raise ConflictError('Could not generate a unique group code')


def _check_dates_and_capacity(group: Group) -> None:
    if group.end_date and group.end_date < group.start_date:
        raise ValidationError('End date cannot be before start date')
    if group.min_capacity > group.max_capacity:
        raise ValidationError('Minimum capacity cannot exceed maximum capacity')


def create_group(
    db: Session,
    *,
    level_id: int,
    teacher_id: int,
    start_date,
    end_date=None,
    name: str | None = None,
    code: str | None = None,
    max_capacity: int = 20,
    min_capacity: int = 5,
    classroom: str = '',
    notes: str = '',
    time_provider: TimeProvider = default_time_provider,
) -> Group:
    level = db.query(Level).filter(Level.id == level_id).first()
    if not level or not level.is_active:
        raise NotFoundError('Level not found')
    _active_teacher(db, teacher_id)

    clean_code = (code or '').strip().upper()
    if clean_code and db.query(Group.id).filter(Group.code == clean_code).first():
        raise ConflictError('Group with this code already exists')
    group = Group(
        level_id=level.id,
        teacher_id=teacher_id,
        name=(name or '').strip() or f'{level.course.name} - {level.name}',
        code=clean_code or _generate_group_code(db, level.course, level, (start_date or time_provider.today()).year),
        start_date=start_date,
        end_date=end_date,
        max_capacity=int(max_capacity),
        min_capacity=int(min_capacity),
        classroom=classroom or '',
        notes=notes or '',
        status=GroupStatus.ACTIVE.value,
    )
    _check_dates_and_capacity(group)
    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info('group_created group_id=%s code=%s teacher_id=%s', group.id, group.code, teacher_id)
    return group


def list_groups(
    db: Session,
    *,
    status: str | None = None,
    teacher_id: int | None = None,
    course_id: int | None = None,
) -> list[Group]:
    query = db.query(Group)
    if status:
        query = query.filter(Group.status == status.upper())
    if teacher_id:
        query = query.filter(Group.teacher_id == teacher_id)
    if course_id:
        query = query.join(Level, Level.id == Group.level_id).filter(Level.course_id == course_id)
    return query.order_by(Group.start_date.desc(), Group.id.desc()).all()


def describe_group(db: Session, group: Group) -> dict:
    enrolled = (
        db.query(func.count(Enrollment.id))
        .filter(Enrollment.group_id == group.id, Enrollment.status == EnrollmentStatus.ACTIVE.value)
        .scalar()
    )
    teacher = group.teacher
    return {
        'id': group.id,
        'name': group.name,
        'code': group.code,
        'status': group.status,
        'start_date': group.start_date,
        'end_date': group.end_date,
        'max_capacity': group.max_capacity,
        'min_capacity': group.min_capacity,
        'classroom': group.classroom,
        'notes': group.notes,
        'level': {'id': group.level.id, 'name': group.level.name, 'code': group.level.code},
        'course': {'id': group.level.course.id, 'name': group.level.course.name, 'code': group.level.course.code},
        'teacher': {'id': teacher.id, 'name': teacher.user.full_name} if teacher else None,
        'enrolled_count': int(enrolled or 0),
    }


def update_group(db: Session, group_id: int, **changes) -> Group:
    group = get_group(db, group_id)
    if group.status in (GroupStatus.COMPLETED.value, GroupStatus.CANCELLED.value):
        raise InvalidStateError(f'Cannot modify a group with status {group.status}')
    if changes.get('teacher_id') is not None:
        _active_teacher(db, changes['teacher_id'])
    try:
        for field_name in _GROUP_FIELDS:
            value = changes.get(field_name)
            if value is not None:
                setattr(group, field_name, value)
        _check_dates_and_capacity(group)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(group)
    return group


def cancel_group(db: Session, group_id: int) -> Group:
    group = get_group(db, group_id)
    if group.status != GroupStatus.ACTIVE.value:
        raise InvalidStateError(f'Only active groups can be cancelled (current status: {group.status})')
    group.status = GroupStatus.CANCELLED.value
    db.commit()
    db.refresh(group)
    logger.info('group_cancelled group_id=%s', group.id)
    return group
