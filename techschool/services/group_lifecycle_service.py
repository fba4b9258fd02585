from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from techschool.core.errors import AccessDeniedError, DataIntegrityError, InvalidStateError
from techschool.models import Enrollment, EnrollmentStatus, Group, GroupStatus, NotificationType
from techschool.services.catalog_service import get_group
from techschool.services.notification_service import notify_admins
from techschool.services.side_effect_failure_service import run_best_effort


logger = logging.getLogger(__name__)

_CLOSED_STATES = (GroupStatus.COMPLETED.value, GroupStatus.CANCELLED.value)


def _notify_admins_grades_submitted(db: Session, group: Group) -> int:
    teacher_name = group.teacher.user.full_name
    return notify_admins(
        db,
        title='Notas Finalizadas',
        message=f'El docente {teacher_name} ha finalizado las notas del grupo {group.name} ({group.code}).',
        notification_type=NotificationType.INFO.value,
    )


def submit_grades(db: Session, *, group_id: int, caller_user_id: int) -> dict:
    group = get_group(db, group_id)
    if group.teacher_id is None or group.teacher is None:
        logger.error('group_without_teacher group_id=%s', group.id)
        raise DataIntegrityError('Data integrity error: Group has no teacher assigned.')
    if group.teacher.user_id != caller_user_id:
        raise AccessDeniedError('Only the assigned teacher can submit grades')
    if group.status != GroupStatus.ACTIVE.value:
        raise InvalidStateError('Grades already submitted or course completed')

    group.status = GroupStatus.GRADES_SUBMITTED.value
    db.commit()
    db.refresh(group)
    logger.info('group_grades_submitted group_id=%s teacher_id=%s', group.id, group.teacher_id)

    run_best_effort(
        db,
        lambda: _notify_admins_grades_submitted(db, group),
        task_name='notify_admins_grades_submitted',
        entity_type='group',
        entity_id=group.id,
    )
    return {'message': 'Grades submitted successfully', 'group_id': group.id, 'status': group.status}


def close_group(db: Session, *, group_id: int) -> dict:
    group = get_group(db, group_id)
    if group.status in _CLOSED_STATES:
        raise InvalidStateError(f'Group is already {group.status.lower()}')

    try:
        group.status = GroupStatus.COMPLETED.value
        completed = (
            db.query(Enrollment)
            .filter(Enrollment.group_id == group.id, Enrollment.status == EnrollmentStatus.ACTIVE.value)
            .update({Enrollment.status: EnrollmentStatus.COMPLETED.value}, synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(group)
    logger.info('group_closed group_id=%s enrollments_completed=%s', group.id, completed)
    return {
        'message': 'Group closed successfully',
        'group_id': group.id,
        'status': group.status,
        'enrollments_completed': int(completed or 0),
    }
