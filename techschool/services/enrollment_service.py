from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import extract, func
from sqlalchemy.orm import Session

from techschool.config import settings
from techschool.core.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import Agreement, Enrollment, EnrollmentStatus, Group, GroupStatus, Level, Student, User
from techschool.services.attendance_service import student_display_name
from techschool.services.auth_service import hash_password
from techschool.services.catalog_service import get_group
from techschool.services.people_service import get_student
from techschool.services.school_service import agreement_applies, apply_discount
from techschool.services.user_service import generate_password, generate_username


logger = logging.getLogger(__name__)


def serialize_enrollment(enrollment: Enrollment) -> dict:
    group = enrollment.group
    return {
        'id': enrollment.id,
        'status': enrollment.status,
        'enrollment_date': enrollment.enrollment_date.isoformat(),
        'agreed_price': enrollment.agreed_price,
        'discount_percentage': enrollment.discount_percentage,
        'agreement_id': enrollment.agreement_id,
        'notes': enrollment.notes,
        'student': {
            'id': enrollment.student.id,
            'name': student_display_name(enrollment.student.user),
            'registration_code': enrollment.student.registration_code,
        },
        'group': {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status},
        'course': {'id': group.level.course.id, 'name': group.level.course.name},
        'level': {'id': group.level.id, 'name': group.level.name},
    }


def _resolve_agreement(db: Session, student: Student, agreement_id: int | None, on_date: date) -> Agreement | None:
    if agreement_id is not None:
        agreement = db.query(Agreement).filter(Agreement.id == agreement_id).first()
        if not agreement:
            raise NotFoundError('Agreement not found')
        if not agreement_applies(agreement, on_date):
            raise ValidationError('Agreement is not valid on the enrollment date')
        return agreement
    if student.school is None:
        return None
    for agreement in sorted(student.school.agreements, key=lambda item: item.id):
        if agreement_applies(agreement, on_date):
            return agreement
    return None


def _issue_credentials(db: Session, user: User) -> dict | None:
    if user.username:
        return None
    username = generate_username(db, user.first_name, user.paternal_surname)
    password = generate_password()
    user.username = username
    user.password_hash = hash_password(password)
    return {'username': username, 'password': password}


def create_enrollment(
    db: Session,
    *,
    student_id: int,
    group_id: int,
    agreement_id: int | None = None,
    notes: str = '',
    created_by_id: int | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    student = get_student(db, student_id)
    if not student.is_active:
        raise NotFoundError('Student not found')
    group = get_group(db, group_id)
    if group.status != GroupStatus.ACTIVE.value:
        raise InvalidStateError('Group is not accepting enrollments')

    duplicate = (
        db.query(Enrollment.id)
        .filter(
            Enrollment.student_id == student.id,
            Enrollment.group_id == group.id,
            Enrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        .first()
    )
    if duplicate:
        raise ConflictError('Student is already enrolled in this group')
    active_count = (
        db.query(func.count(Enrollment.id))
        .filter(Enrollment.group_id == group.id, Enrollment.status == EnrollmentStatus.ACTIVE.value)
        .scalar()
    )
    if int(active_count or 0) >= group.max_capacity:
        raise InvalidStateError('Group is full')

    today = time_provider.today()
    agreement = _resolve_agreement(db, student, agreement_id, today)
    base_price = group.level.base_price if group.level.base_price is not None else settings.default_level_price
    agreed_price, discount_percentage = apply_discount(float(base_price), agreement, today)

    try:
        credentials = _issue_credentials(db, student.user)
        enrollment = Enrollment(
            student_id=student.id,
            group_id=group.id,
            agreement_id=agreement.id if agreement else None,
            status=EnrollmentStatus.ACTIVE.value,
            enrollment_date=today,
            agreed_price=agreed_price,
            discount_percentage=discount_percentage,
            created_by_id=created_by_id,
            notes=notes or '',
        )
        db.add(enrollment)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(enrollment)
    logger.info(
        'enrollment_created enrollment_id=%s student_id=%s group_id=%s price=%.2f discount=%.2f',
        enrollment.id,
        student.id,
        group.id,
        agreed_price,
        discount_percentage,
    )
    return {'enrollment': serialize_enrollment(enrollment), 'credentials': credentials}


def get_enrollment(db: Session, enrollment_id: int) -> Enrollment:
    enrollment = db.query(Enrollment).filter(Enrollment.id == enrollment_id).first()
    if not enrollment:
        raise NotFoundError('Enrollment not found')
    return enrollment


def list_enrollments(
    db: Session,
    *,
    group_id: int | None = None,
    student_id: int | None = None,
    status: str | None = None,
) -> list[dict]:
    query = db.query(Enrollment)
    if group_id:
        query = query.filter(Enrollment.group_id == group_id)
    if student_id:
        query = query.filter(Enrollment.student_id == student_id)
    if status:
        query = query.filter(Enrollment.status == status.upper())
    rows = query.order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc()).all()
    return [serialize_enrollment(row) for row in rows]


def cancel_enrollment(db: Session, enrollment_id: int) -> dict:
    enrollment = get_enrollment(db, enrollment_id)
    if enrollment.status != EnrollmentStatus.ACTIVE.value:
        raise InvalidStateError(f'Cannot cancel an enrollment with status {enrollment.status}')
    enrollment.status = EnrollmentStatus.CANCELLED.value
    db.commit()
    db.refresh(enrollment)
    logger.info('enrollment_cancelled enrollment_id=%s', enrollment.id)
    return serialize_enrollment(enrollment)


def enrollment_report(
    db: Session,
    *,
    course_id: int | None = None,
    year: int | None = None,
    academic_period: int | None = None,
) -> dict:
    if academic_period is not None and academic_period not in (1, 2):
        raise ValidationError('Academic period must be 1 or 2')
    query = db.query(Enrollment).join(Group, Group.id == Enrollment.group_id).join(Level, Level.id == Group.level_id)
    if course_id:
        query = query.filter(Level.course_id == course_id)
    if year:
        query = query.filter(extract('year', Enrollment.enrollment_date) == year)
    if academic_period == 1:
        query = query.filter(extract('month', Enrollment.enrollment_date) <= 6)
    elif academic_period == 2:
        query = query.filter(extract('month', Enrollment.enrollment_date) >= 7)
    rows = query.order_by(Enrollment.enrollment_date.asc(), Enrollment.id.asc()).all()

    billable = [row for row in rows if row.status != EnrollmentStatus.CANCELLED.value]
    return {
        'filters': {'course_id': course_id, 'year': year, 'academic_period': academic_period},
        'enrollments': [serialize_enrollment(row) for row in rows],
        'totals': {
            'count': len(rows),
            'cancelled': len(rows) - len(billable),
            'revenue': round(sum(row.agreed_price for row in billable), 2),
        },
    }
