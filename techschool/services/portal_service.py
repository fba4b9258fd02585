from __future__ import annotations

from sqlalchemy.orm import Session

from techschool.core.errors import AccessDeniedError, NotFoundError
from techschool.models import Enrollment, EnrollmentStatus, Grade, Guardian, Student, StudentGuardian
from techschool.services.attendance_service import enrollment_attendance_history, student_display_name
from techschool.services.grade_service import PASSING_GRADE, serialize_grade
from techschool.services.people_service import academic_history


def _enrollment_summary(enrollment: Enrollment) -> dict:
    group = enrollment.group
    teacher = group.teacher
    return {
        'id': enrollment.id,
        'status': enrollment.status,
        'enrollment_date': enrollment.enrollment_date.isoformat(),
        'group': {
            'id': group.id,
            'name': group.name,
            'code': group.code,
            'status': group.status,
            'classroom': group.classroom,
            'start_date': group.start_date.isoformat(),
            'end_date': group.end_date.isoformat() if group.end_date else None,
        },
        'course': {'id': group.level.course.id, 'name': group.level.course.name, 'code': group.level.course.code},
        'level': {'id': group.level.id, 'name': group.level.name},
        'teacher': teacher.user.full_name if teacher else None,
    }


def _student_for_user(db: Session, user_id: int) -> Student:
    student = db.query(Student).filter(Student.user_id == user_id).first()
    if not student:
        raise NotFoundError('Student not found')
    return student


def _owned_enrollment(db: Session, student: Student, enrollment_id: int) -> Enrollment:
    enrollment = (
        db.query(Enrollment)
        .filter(Enrollment.id == enrollment_id, Enrollment.student_id == student.id)
        .first()
    )
    if not enrollment:
        raise AccessDeniedError('You do not have access to this enrollment')
    return enrollment


def _active_enrollments(db: Session, student: Student) -> list[dict]:
    rows = (
        db.query(Enrollment)
        .filter(Enrollment.student_id == student.id, Enrollment.status == EnrollmentStatus.ACTIVE.value)
        .order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
        .all()
    )
    return [_enrollment_summary(row) for row in rows]


def _grades_view(db: Session, enrollment: Enrollment) -> dict:
    grades = (
        db.query(Grade)
        .filter(Grade.enrollment_id == enrollment.id)
        .order_by(Grade.evaluation_date.desc(), Grade.id.desc())
        .all()
    )
    total = len(grades)
    average = sum(grade.grade_value for grade in grades) / total if total else 0.0
    return {
        'enrollment': _enrollment_summary(enrollment),
        'grades': [serialize_grade(grade) for grade in grades],
        'stats': {
            'average_grade': round(average, 2),
            'total_evaluations': total,
            'passed_evaluations': sum(1 for grade in grades if grade.grade_value >= PASSING_GRADE),
        },
    }


def my_courses(db: Session, *, user_id: int) -> dict:
    return {'enrollments': _active_enrollments(db, _student_for_user(db, user_id))}


def my_grades(db: Session, *, user_id: int, enrollment_id: int) -> dict:
    student = _student_for_user(db, user_id)
    return _grades_view(db, _owned_enrollment(db, student, enrollment_id))


def my_attendance(db: Session, *, user_id: int, enrollment_id: int) -> dict:
    student = _student_for_user(db, user_id)
    enrollment = _owned_enrollment(db, student, enrollment_id)
    return {'enrollment': _enrollment_summary(enrollment), **enrollment_attendance_history(db, enrollment.id)}


def my_academic_history(db: Session, *, user_id: int) -> dict:
    return academic_history(db, _student_for_user(db, user_id).id)


def _guardian_for_user(db: Session, user_id: int) -> Guardian:
    guardian = db.query(Guardian).filter(Guardian.user_id == user_id).first()
    if not guardian:
        raise NotFoundError('Guardian not found')
    return guardian


def _ward(db: Session, guardian: Guardian, student_id: int) -> Student:
    link = (
        db.query(StudentGuardian)
        .filter(StudentGuardian.guardian_id == guardian.id, StudentGuardian.student_id == student_id)
        .first()
    )
    if not link:
        raise AccessDeniedError('You do not have access to this student')
    return link.student


def my_students(db: Session, *, user_id: int) -> dict:
    guardian = _guardian_for_user(db, user_id)
    links = db.query(StudentGuardian).filter(StudentGuardian.guardian_id == guardian.id).all()
    students = []
    for link in links:
        student = link.student
        students.append(
            {
                'id': student.id,
                'name': student_display_name(student.user),
                'registration_code': student.registration_code,
                'is_primary': link.is_primary,
                'active_enrollments': len(
                    [item for item in student.enrollments if item.status == EnrollmentStatus.ACTIVE.value]
                ),
            }
        )
    return {'students': students}


def ward_courses(db: Session, *, user_id: int, student_id: int) -> dict:
    student = _ward(db, _guardian_for_user(db, user_id), student_id)
    return {'enrollments': _active_enrollments(db, student)}


def ward_grades(db: Session, *, user_id: int, student_id: int, enrollment_id: int) -> dict:
    student = _ward(db, _guardian_for_user(db, user_id), student_id)
    return _grades_view(db, _owned_enrollment(db, student, enrollment_id))


def ward_attendance(db: Session, *, user_id: int, student_id: int, enrollment_id: int) -> dict:
    student = _ward(db, _guardian_for_user(db, user_id), student_id)
    enrollment = _owned_enrollment(db, student, enrollment_id)
    return {'enrollment': _enrollment_summary(enrollment), **enrollment_attendance_history(db, enrollment.id)}
