from __future__ import annotations

import logging
from datetime import date, datetime, time

from sqlalchemy import func
from sqlalchemy.orm import Session

from techschool.core.errors import AccessDeniedError, InvalidStateError, ValidationError
from techschool.models import (
    Attendance,
    AttendanceStatus,
    Enrollment,
    EnrollmentStatus,
    Group,
    GroupStatus,
    Student,
    Teacher,
    User,
)
from techschool.services.auth_service import Identity
from techschool.services.catalog_service import get_group


logger = logging.getLogger(__name__)

ARRIVAL_REFERENCE_DATE = date(1970, 1, 1)
_VALID_STATUSES = {item.value for item in AttendanceStatus}


def teacher_for_user(db: Session, user_id: int) -> Teacher | None:
    return db.query(Teacher).filter(Teacher.user_id == user_id).first()


def assert_group_access(db: Session, group: Group, identity: Identity) -> Teacher | None:
    """Teachers without ADMIN may only touch their own groups; returns the caller's Teacher row."""
    teacher = teacher_for_user(db, identity.user_id) if identity.has_role('TEACHER') else None
    if identity.has_role('ADMIN'):
        return teacher
    if not identity.has_role('TEACHER'):
        raise AccessDeniedError('Insufficient permissions')
    if teacher is None or group.teacher_id != teacher.id:
        raise AccessDeniedError('You are not assigned to this group')
    return teacher


def student_display_name(user: User) -> str:
    return ' '.join(part for part in (user.paternal_surname, user.maternal_surname, user.first_name) if part)


def parse_arrival_time(value: str | None) -> datetime | None:
    if value is None or not str(value).strip():
        return None
    try:
        parsed = time.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f'Invalid arrival time: {value}') from exc
    return datetime.combine(ARRIVAL_REFERENCE_DATE, parsed.replace(tzinfo=None, microsecond=0))


def format_arrival_time(value: datetime | None) -> str | None:
    return value.strftime('%H:%M:%S') if value else None


def _active_enrollment_rows(db: Session, group_id: int):
    return (
        db.query(Enrollment, Student, User)
        .join(Student, Student.id == Enrollment.student_id)
        .join(User, User.id == Student.user_id)
        .filter(Enrollment.group_id == group_id, Enrollment.status == EnrollmentStatus.ACTIVE.value)
        .order_by(User.paternal_surname.asc(), User.maternal_surname.asc(), User.first_name.asc())
        .all()
    )


def get_attendance(db: Session, *, group_id: int, attendance_date: date, identity: Identity) -> dict:
    group = get_group(db, group_id)
    assert_group_access(db, group, identity)

    rows = _active_enrollment_rows(db, group.id)
    enrollment_ids = [enrollment.id for enrollment, _, _ in rows]
    recorded = {}
    if enrollment_ids:
        recorded = {
            item.enrollment_id: item
            for item in db.query(Attendance)
            .filter(Attendance.enrollment_id.in_(enrollment_ids), Attendance.attendance_date == attendance_date)
            .all()
        }

    students = []
    for enrollment, student, user in rows:
        record = recorded.get(enrollment.id)
        students.append(
            {
                'enrollment_id': enrollment.id,
                'student_id': student.id,
                'student_name': student_display_name(user),
                'registration_code': student.registration_code,
                'status': record.status if record else None,
                'notes': record.notes if record else None,
                'arrival_time': format_arrival_time(record.arrival_time) if record else None,
            }
        )
    return {
        'group': {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status},
        'date': attendance_date.isoformat(),
        'students': students,
    }


def _validated_records(db: Session, group: Group, records: list[dict]) -> list[dict]:
    if not records:
        raise ValidationError('At least one attendance record is required')
    group_enrollment_ids = {
        row.id for row in db.query(Enrollment.id).filter(Enrollment.group_id == group.id).all()
    }
    cleaned = []
    for index, record in enumerate(records):
        status = str(record.get('status') or '').strip().upper()
        if status not in _VALID_STATUSES:
            raise ValidationError(f'Invalid attendance status at record {index}: {record.get("status")}')
        try:
            enrollment_id = int(record.get('enrollment_id'))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f'Invalid enrollment id at record {index}') from exc
        if enrollment_id not in group_enrollment_ids:
            raise ValidationError(f'Enrollment {enrollment_id} does not belong to group {group.id}')
        cleaned.append(
            {
                'enrollment_id': enrollment_id,
                'status': status,
                'notes': record.get('notes'),
                'arrival_time': parse_arrival_time(record.get('arrival_time')),
            }
        )
    return cleaned


def save_attendance_batch(
    db: Session,
    *,
    group_id: int,
    attendance_date: date,
    records: list[dict],
    identity: Identity,
) -> dict:
    group = get_group(db, group_id)
    teacher = assert_group_access(db, group, identity)
    if group.status in (GroupStatus.COMPLETED.value, GroupStatus.CANCELLED.value):
        raise InvalidStateError(f'Cannot record attendance for a {group.status.lower()} group')

    try:
        cleaned = _validated_records(db, group, records)
        existing = {
            row.enrollment_id: row
            for row in db.query(Attendance)
            .filter(
                Attendance.enrollment_id.in_(sorted({item['enrollment_id'] for item in cleaned})),
                Attendance.attendance_date == attendance_date,
            )
            .all()
        }
        for item in cleaned:
            row = existing.get(item['enrollment_id'])
            if row is None:
                row = Attendance(enrollment_id=item['enrollment_id'], attendance_date=attendance_date)
                db.add(row)
                existing[item['enrollment_id']] = row
            row.status = item['status']
            row.arrival_time = item['arrival_time']
            # Omitted notes keep the stored text; an empty string clears it.
            if item['notes'] is not None:
                row.notes = item['notes']
            if teacher is not None:
                row.recorded_by_id = teacher.id
        db.flush()
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        'attendance_batch_saved group_id=%s date=%s records=%s user_id=%s',
        group.id,
        attendance_date.isoformat(),
        len(cleaned),
        identity.user_id,
    )
    return {'message': 'Attendance saved successfully', 'count': len(cleaned)}


def _percentage(present: int, late: int, total_classes: int) -> str:
    if total_classes <= 0:
        return '0.0'
    return f'{(present + late) / total_classes * 100:.1f}'


def get_attendance_stats(
    db: Session,
    *,
    group_id: int,
    start_date: date,
    end_date: date,
    identity: Identity,
) -> dict:
    if start_date > end_date:
        raise ValidationError('start_date must not be after end_date')
    group = get_group(db, group_id)
    assert_group_access(db, group, identity)

    in_range = (
        Enrollment.group_id == group.id,
        Attendance.attendance_date >= start_date,
        Attendance.attendance_date <= end_date,
    )
    total_classes = int(
        db.query(func.count(func.distinct(Attendance.attendance_date)))
        .join(Enrollment, Enrollment.id == Attendance.enrollment_id)
        .filter(*in_range)
        .scalar()
        or 0
    )
    counts: dict[int, dict[str, int]] = {}
    for enrollment_id, status, count in (
        db.query(Attendance.enrollment_id, Attendance.status, func.count(Attendance.id))
        .join(Enrollment, Enrollment.id == Attendance.enrollment_id)
        .filter(*in_range)
        .group_by(Attendance.enrollment_id, Attendance.status)
        .all()
    ):
        counts.setdefault(enrollment_id, {})[status] = int(count)

    stats = []
    for enrollment, student, user in _active_enrollment_rows(db, group.id):
        by_status = counts.get(enrollment.id, {})
        present = by_status.get(AttendanceStatus.PRESENT.value, 0)
        absent = by_status.get(AttendanceStatus.ABSENT.value, 0)
        late = by_status.get(AttendanceStatus.LATE.value, 0)
        excused = by_status.get(AttendanceStatus.EXCUSED.value, 0)
        stats.append(
            {
                'enrollment_id': enrollment.id,
                'student_id': student.id,
                'student_name': student_display_name(user),
                'registration_code': student.registration_code,
                'present': present,
                'absent': absent,
                'late': late,
                'excused': excused,
                'total_records': present + absent + late + excused,
                'total_classes': total_classes,
                'percentage': _percentage(present, late, total_classes),
            }
        )
    return {
        'stats': stats,
        'period': {
            'start': start_date.isoformat(),
            'end': end_date.isoformat(),
            'total_classes': total_classes,
        },
    }


def enrollment_attendance_history(db: Session, enrollment_id: int) -> dict:
    rows = (
        db.query(Attendance)
        .filter(Attendance.enrollment_id == enrollment_id)
        .order_by(Attendance.attendance_date.desc())
        .all()
    )
    summary = {status: 0 for status in _VALID_STATUSES}
    for row in rows:
        summary[row.status] = summary.get(row.status, 0) + 1
    attended = summary[AttendanceStatus.PRESENT.value] + summary[AttendanceStatus.LATE.value]
    return {
        'records': [
            {
                'date': row.attendance_date.isoformat(),
                'status': row.status,
                'notes': row.notes,
                'arrival_time': format_arrival_time(row.arrival_time),
            }
            for row in rows
        ],
        'summary': {
            **{status.lower(): count for status, count in summary.items()},
            'total': len(rows),
            'attendance_rate': _percentage(attended, 0, len(rows)),
        },
    }
