from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from techschool.core.errors import AccessDeniedError, InvalidStateError, NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import Enrollment, EnrollmentStatus, EvaluationType, Grade, Group, GroupStatus, Level, Student, User
from techschool.services.attendance_service import assert_group_access, student_display_name, teacher_for_user
from techschool.services.auth_service import Identity
from techschool.services.catalog_service import get_course, get_group
from techschool.services.system_settings_service import grades_open


logger = logging.getLogger(__name__)

CORE_COMPETENCIES = tuple(item.value for item in EvaluationType)
MAX_GRADE = 100.0
PASSING_GRADE = 51.0


def _get_enrollment(db: Session, enrollment_id: int) -> Enrollment:
    enrollment = db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
    if not enrollment:
        raise NotFoundError('Enrollment not found')
    return enrollment


def _resolve_value(item: dict) -> float:
    progress_test = item.get('progress_test')
    class_performance = item.get('class_performance')
    if progress_test is not None and class_performance is not None:
        return round((float(progress_test) + float(class_performance)) / 2, 2)
    if item.get('score') is not None:
        return float(item['score'])
    partial = progress_test if progress_test is not None else class_performance
    if partial is None:
        raise ValidationError(f'Grade for {item.get("type")} has no score')
    return float(partial)


def competency_average(grades: list[Grade]) -> float | None:
    values = [grade.grade_value for grade in grades if grade.evaluation_type in CORE_COMPETENCIES]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def serialize_grade(grade: Grade) -> dict:
    return {
        'id': grade.id,
        'evaluation_type': grade.evaluation_type,
        'progress_test': grade.progress_test,
        'class_performance': grade.class_performance,
        'grade_value': grade.grade_value,
        'max_grade': grade.max_grade,
        'comments': grade.comments,
        'evaluation_date': grade.evaluation_date.isoformat() if grade.evaluation_date else None,
    }


def save_grades(
    db: Session,
    *,
    enrollment_id: int,
    grades: list[dict],
    identity: Identity,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    enrollment = _get_enrollment(db, enrollment_id)
    group = enrollment.group
    teacher = assert_group_access(db, group, identity)
    if not grades_open(db):
        raise InvalidStateError('Grade registration is currently closed')
    if group.status != GroupStatus.ACTIVE.value:
        raise InvalidStateError('Grades can only be recorded while the group is active')
    if enrollment.status != EnrollmentStatus.ACTIVE.value:
        raise InvalidStateError('Grades can only be recorded for active enrollments')

    saved = 0
    skipped = []
    try:
        existing = {
            row.evaluation_type: row
            for row in db.query(Grade).filter(Grade.enrollment_id == enrollment.id).all()
        }
        for item in grades or []:
            evaluation_type = str(item.get('type') or '').strip().upper()
            if evaluation_type not in CORE_COMPETENCIES:
                skipped.append(item.get('type'))
                continue
            row = existing.get(evaluation_type)
            if row is None:
                row = Grade(enrollment_id=enrollment.id, evaluation_type=evaluation_type, max_grade=MAX_GRADE)
                db.add(row)
                existing[evaluation_type] = row
            row.progress_test = item.get('progress_test')
            row.class_performance = item.get('class_performance')
            row.grade_value = _resolve_value(item)
            row.comments = item.get('comments') or ''
            row.evaluation_date = time_provider.today()
            if teacher is not None:
                row.recorded_by_id = teacher.id
            saved += 1
        db.commit()
    except Exception:
        db.rollback()
        raise

    if skipped:
        logger.warning('grades_unknown_types_skipped enrollment_id=%s types=%s', enrollment.id, skipped)
    logger.info('grades_saved enrollment_id=%s saved=%s user_id=%s', enrollment.id, saved, identity.user_id)
    return {'message': 'Grades saved successfully', 'saved': saved, 'skipped': len(skipped)}


def _grades_by_enrollment(db: Session, enrollment_ids: list[int]) -> dict[int, list[Grade]]:
    by_enrollment: dict[int, list[Grade]] = {}
    if enrollment_ids:
        for grade in db.query(Grade).filter(Grade.enrollment_id.in_(enrollment_ids)).all():
            by_enrollment.setdefault(grade.enrollment_id, []).append(grade)
    return by_enrollment


def _ranked_enrollments(db: Session, *filters, include_completed: bool = False):
    statuses = [EnrollmentStatus.ACTIVE.value]
    if include_completed:
        statuses.append(EnrollmentStatus.COMPLETED.value)
    return (
        db.query(Enrollment, Student, User)
        .join(Student, Student.id == Enrollment.student_id)
        .join(User, User.id == Student.user_id)
        .join(Group, Group.id == Enrollment.group_id)
        .join(Level, Level.id == Group.level_id)
        .filter(Enrollment.status.in_(statuses), *filters)
        .order_by(User.paternal_surname.asc(), User.maternal_surname.asc(), User.first_name.asc(), Enrollment.id.asc())
        .all()
    )


def _grade_rows(db: Session, rows, *, with_group: bool = False) -> list[dict]:
    grades_by_enrollment = _grades_by_enrollment(db, [enrollment.id for enrollment, _, _ in rows])
    result = []
    for enrollment, student, user in rows:
        grades = grades_by_enrollment.get(enrollment.id, [])
        average = competency_average(grades)
        item = {
            'enrollment_id': enrollment.id,
            'student_id': student.id,
            'student_name': student_display_name(user),
            'registration_code': student.registration_code,
            'status': enrollment.status,
            'grades': {grade.evaluation_type: serialize_grade(grade) for grade in grades},
            'average': average,
            'passed': average is not None and average >= PASSING_GRADE,
        }
        if with_group:
            group = enrollment.group
            item['group'] = {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status}
            item['course'] = {'id': group.level.course.id, 'name': group.level.course.name}
            item['level'] = {'id': group.level.id, 'name': group.level.name}
        result.append(item)
    return result


def list_group_grades(db: Session, *, group_id: int, identity: Identity) -> dict:
    group = get_group(db, group_id)
    assert_group_access(db, group, identity)
    rows = _ranked_enrollments(db, Enrollment.group_id == group.id, include_completed=True)
    return {
        'group': {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status},
        'students': _grade_rows(db, rows),
    }


def list_course_grades(db: Session, *, course_id: int, identity: Identity) -> dict:
    """Grade sheets of every active enrollment in the course; teachers only see their own groups."""
    course = get_course(db, course_id)
    filters = [Level.course_id == course.id]
    if not identity.has_role('ADMIN'):
        teacher = teacher_for_user(db, identity.user_id)
        if teacher is None:
            raise AccessDeniedError('Insufficient permissions')
        filters.append(Group.teacher_id == teacher.id)
    rows = _ranked_enrollments(db, *filters)
    return {
        'course': {'id': course.id, 'name': course.name, 'code': course.code},
        'enrollments': _grade_rows(db, rows, with_group=True),
    }


def group_report(db: Session, *, group_id: int, identity: Identity) -> dict:
    group = get_group(db, group_id)
    assert_group_access(db, group, identity)
    students = _grade_rows(db, _ranked_enrollments(db, Enrollment.group_id == group.id))
    averages = [item['average'] for item in students if item['average'] is not None]
    teacher = group.teacher
    return {
        'group': {
            'id': group.id,
            'name': group.name,
            'code': group.code,
            'status': group.status,
            'start_date': group.start_date.isoformat(),
            'end_date': group.end_date.isoformat() if group.end_date else None,
            'classroom': group.classroom,
        },
        'course': {'id': group.level.course.id, 'name': group.level.course.name, 'code': group.level.course.code},
        'level': {'id': group.level.id, 'name': group.level.name, 'code': group.level.code},
        'teacher': {'id': teacher.id, 'name': teacher.user.full_name} if teacher else None,
        'students': students,
        'summary': {
            'total_students': len(students),
            'graded_students': len(averages),
            'passed': sum(1 for item in students if item['passed']),
            'group_average': round(sum(averages) / len(averages), 2) if averages else None,
        },
    }


def list_all_active_grades(db: Session) -> list[dict]:
    return _grade_rows(db, _ranked_enrollments(db), with_group=True)


def report_card(db: Session, *, enrollment_id: int, identity: Identity | None = None) -> dict:
    enrollment = _get_enrollment(db, enrollment_id)
    if identity is not None:
        if identity.has_role('ADMIN', 'TEACHER'):
            assert_group_access(db, enrollment.group, identity)
        elif enrollment.student.user_id != identity.user_id:
            raise AccessDeniedError('You do not have access to this enrollment')

    grades = (
        db.query(Grade)
        .filter(Grade.enrollment_id == enrollment.id)
        .order_by(Grade.evaluation_type.asc())
        .all()
    )
    average = competency_average(grades)
    group = enrollment.group
    student = enrollment.student
    return {
        'enrollment_id': enrollment.id,
        'student': {
            'id': student.id,
            'name': student_display_name(student.user),
            'registration_code': student.registration_code,
        },
        'course': {'id': group.level.course.id, 'name': group.level.course.name, 'code': group.level.course.code},
        'level': {'id': group.level.id, 'name': group.level.name},
        'group': {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status},
        'teacher': group.teacher.user.full_name if group.teacher else None,
        'grades': [serialize_grade(grade) for grade in grades],
        'average': average,
        'passed': average is not None and average >= PASSING_GRADE,
    }
