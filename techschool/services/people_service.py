from __future__ import annotations

import logging
import secrets
from datetime import date

from sqlalchemy.orm import Session

from techschool.core.errors import InvalidStateError, NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import (
    Enrollment,
    Grade,
    Group,
    GroupStatus,
    Guardian,
    RoleName,
    School,
    Student,
    StudentGuardian,
    Teacher,
    User,
)
from techschool.services.grade_service import competency_average
from techschool.services.system_settings_service import academic_period_for
from techschool.services.user_service import build_user, generate_username, role_by_name


logger = logging.getLogger(__name__)

_STUDENT_FIELDS = ('address', 'school_id', 'emergency_contact_name', 'emergency_contact_phone')
_TEACHER_FIELDS = ('document_number', 'specialization', 'hire_date', 'contract_type', 'hourly_rate')
_USER_FIELDS = ('first_name', 'paternal_surname', 'maternal_surname', 'phone')


def _person(user: User) -> dict:
    return {
        'user_id': user.id,
        'first_name': user.first_name,
        'paternal_surname': user.paternal_surname,
        'maternal_surname': user.maternal_surname,
        'email': user.email,
        'phone': user.phone,
        'is_active': user.is_active,
    }


def _apply_user_changes(user: User, changes: dict) -> None:
    for field_name in _USER_FIELDS:
        value = changes.get(field_name)
        if value is not None:
            setattr(user, field_name, value)


def _registration_code(db: Session, year: int) -> str:
    for _ in range(20):
        candidate = f'ST{year}{secrets.randbelow(9000) + 1000}'
        if not db.query(Student.id).filter(Student.registration_code == candidate).first():
            return candidate
    raise ValidationError('Could not generate a unique registration code')


def _guardian_for(db: Session, payload: dict) -> Guardian:
    email = (payload.get('email') or '').strip().lower()
    if not email:
        raise ValidationError('Guardian email is required')
    guardian_role = role_by_name(db, RoleName.LEGAL_GUARDIAN.value)
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        password = payload.get('password') or payload.get('document_number') or ''
        user = build_user(
            db,
            email=email,
            password=password,
            first_name=payload.get('first_name') or '',
            paternal_surname=payload.get('paternal_surname') or '',
            maternal_surname=payload.get('maternal_surname') or '',
            phone=payload.get('phone') or '',
            roles=[guardian_role],
        )
    elif guardian_role not in user.roles:
        user.roles.append(guardian_role)

    guardian = db.query(Guardian).filter(Guardian.user_id == user.id).first()
    if guardian is None:
        guardian = Guardian(
            user_id=user.id,
            document_number=payload.get('document_number') or '',
            relationship_type=payload.get('relationship_type') or '',
            occupation=payload.get('occupation') or '',
        )
        db.add(guardian)
        db.flush()
    return guardian


def serialize_student(db: Session, student: Student, *, with_enrollments: bool = False) -> dict:
    links = db.query(StudentGuardian).filter(StudentGuardian.student_id == student.id).all()
    data = {
        'id': student.id,
        'registration_code': student.registration_code,
        'document_number': student.document_number,
        'date_of_birth': student.date_of_birth.isoformat() if student.date_of_birth else None,
        'gender': student.gender,
        'address': student.address,
        'emergency_contact_name': student.emergency_contact_name,
        'emergency_contact_phone': student.emergency_contact_phone,
        'is_active': student.is_active,
        'user': _person(student.user),
        'school': {'id': student.school.id, 'name': student.school.name} if student.school else None,
        'guardians': [
            {
                'id': link.guardian.id,
                'relationship_type': link.guardian.relationship_type,
                'is_primary': link.is_primary,
                'user': _person(link.guardian.user),
            }
            for link in links
        ],
    }
    if with_enrollments:
        data['enrollments'] = [
            {
                'id': enrollment.id,
                'status': enrollment.status,
                'enrollment_date': enrollment.enrollment_date.isoformat(),
                'group': {'id': enrollment.group.id, 'name': enrollment.group.name, 'code': enrollment.group.code},
                'course': enrollment.group.level.course.name,
                'level': enrollment.group.level.name,
                'agreed_price': enrollment.agreed_price,
            }
            for enrollment in sorted(student.enrollments, key=lambda item: item.enrollment_date, reverse=True)
        ]
    return data


def get_student(db: Session, student_id: int) -> Student:
    student = db.query(Student).filter(Student.id == student_id).first()
    if not student:
        raise NotFoundError('Student not found')
    return student


def list_students(db: Session) -> list[dict]:
    students = (
        db.query(Student)
        .filter(Student.is_active.is_(True))
        .order_by(Student.created_at.desc(), Student.id.desc())
        .all()
    )
    return [serialize_student(db, student) for student in students]


def create_student(
    db: Session,
    *,
    first_name: str,
    paternal_surname: str,
    date_of_birth: date,
    maternal_surname: str = '',
    email: str | None = None,
    password: str | None = None,
    phone: str = '',
    document_number: str = '',
    gender: str = '',
    address: str = '',
    school_id: int | None = None,
    emergency_contact_name: str = '',
    emergency_contact_phone: str = '',
    guardian: dict | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> dict:
    if not (first_name or '').strip() or not (paternal_surname or '').strip():
        raise ValidationError('First name and paternal surname are required')
    initial_password = password or document_number
    if not initial_password:
        raise ValidationError('Password or document number is required')
    if school_id is not None and not db.query(School.id).filter(School.id == school_id).first():
        raise NotFoundError('School not found')

    try:
        user = build_user(
            db,
            email=email,
            password=initial_password,
            first_name=first_name,
            paternal_surname=paternal_surname,
            maternal_surname=maternal_surname,
            phone=phone,
            roles=[role_by_name(db, RoleName.STUDENT.value)],
        )
        student = Student(
            user_id=user.id,
            registration_code=_registration_code(db, time_provider.today().year),
            document_number=document_number or '',
            date_of_birth=date_of_birth,
            gender=gender or '',
            address=address or '',
            school_id=school_id,
            emergency_contact_name=emergency_contact_name or '',
            emergency_contact_phone=emergency_contact_phone or '',
        )
        db.add(student)
        db.flush()
        if guardian:
            db.add(StudentGuardian(student_id=student.id, guardian_id=_guardian_for(db, guardian).id, is_primary=True))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(student)
    logger.info('student_created student_id=%s code=%s', student.id, student.registration_code)
    return serialize_student(db, student)


def update_student(db: Session, student_id: int, **changes) -> dict:
    student = get_student(db, student_id)
    if changes.get('school_id') is not None and not db.query(School.id).filter(School.id == changes['school_id']).first():
        raise NotFoundError('School not found')
    try:
        for field_name in _STUDENT_FIELDS:
            value = changes.get(field_name)
            if value is not None:
                setattr(student, field_name, value)
        _apply_user_changes(student.user, changes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(student)
    return serialize_student(db, student)


def deactivate_student(db: Session, student_id: int) -> dict:
    student = get_student(db, student_id)
    student.is_active = False
    student.user.is_active = False
    db.commit()
    logger.info('student_deactivated student_id=%s', student.id)
    return {'message': 'Student deleted successfully'}


def academic_history(db: Session, student_id: int) -> dict:
    student = get_student(db, student_id)
    enrollments = (
        db.query(Enrollment)
        .filter(Enrollment.student_id == student.id)
        .order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
        .all()
    )
    grades_by_enrollment: dict[int, list[Grade]] = {}
    if enrollments:
        for grade in db.query(Grade).filter(Grade.enrollment_id.in_([item.id for item in enrollments])).all():
            grades_by_enrollment.setdefault(grade.enrollment_id, []).append(grade)

    history = []
    for enrollment in enrollments:
        enrolled_on = enrollment.enrollment_date
        history.append(
            {
                'enrollment_id': enrollment.id,
                'enrollment_date': enrolled_on.isoformat(),
                'year': enrolled_on.year,
                'period': f'{academic_period_for(enrolled_on)}/{enrolled_on.year}',
                'course_name': enrollment.group.level.course.name,
                'course_code': enrollment.group.level.course.code,
                'level_name': enrollment.group.level.name,
                'group_code': enrollment.group.code,
                'final_grade': competency_average(grades_by_enrollment.get(enrollment.id, [])),
                'status': enrollment.status,
            }
        )
    return {'student': serialize_student(db, student), 'history': history}


def serialize_teacher(teacher: Teacher, *, with_groups: bool = False) -> dict:
    data = {
        'id': teacher.id,
        'document_number': teacher.document_number,
        'specialization': teacher.specialization,
        'hire_date': teacher.hire_date.isoformat() if teacher.hire_date else None,
        'contract_type': teacher.contract_type,
        'hourly_rate': teacher.hourly_rate,
        'is_active': teacher.is_active,
        'user': {**_person(teacher.user), 'username': teacher.user.username},
    }
    if with_groups:
        data['groups'] = [
            {'id': group.id, 'name': group.name, 'code': group.code, 'status': group.status}
            for group in teacher.groups
        ]
    return data


def get_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if not teacher:
        raise NotFoundError('Teacher not found')
    return teacher


def list_teachers(db: Session) -> list[dict]:
    teachers = (
        db.query(Teacher)
        .filter(Teacher.is_active.is_(True))
        .order_by(Teacher.created_at.desc(), Teacher.id.desc())
        .all()
    )
    return [serialize_teacher(teacher) for teacher in teachers]


def create_teacher(
    db: Session,
    *,
    email: str,
    first_name: str,
    paternal_surname: str,
    document_number: str,
    hire_date: date,
    contract_type: str,
    maternal_surname: str = '',
    phone: str = '',
    password: str | None = None,
    specialization: str = '',
    hourly_rate: float | None = None,
) -> dict:
    required = (email, first_name, paternal_surname, document_number, contract_type)
    if not all((value or '').strip() for value in required) or hire_date is None:
        raise ValidationError('Missing required fields')

    try:
        user = build_user(
            db,
            email=email,
            username=generate_username(db, first_name, paternal_surname),
            password=password or document_number,
            first_name=first_name,
            paternal_surname=paternal_surname,
            maternal_surname=maternal_surname,
            phone=phone,
            roles=[role_by_name(db, RoleName.TEACHER.value)],
        )
        teacher = Teacher(
            user_id=user.id,
            document_number=document_number.strip(),
            specialization=specialization or '',
            hire_date=hire_date,
            contract_type=contract_type.strip().upper(),
            hourly_rate=hourly_rate,
        )
        db.add(teacher)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(teacher)
    logger.info('teacher_created teacher_id=%s user_id=%s', teacher.id, teacher.user_id)
    return serialize_teacher(teacher)


def update_teacher(db: Session, teacher_id: int, **changes) -> dict:
    teacher = get_teacher(db, teacher_id)
    try:
        for field_name in _TEACHER_FIELDS:
            value = changes.get(field_name)
            if value is not None:
                setattr(teacher, field_name, value)
        _apply_user_changes(teacher.user, changes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(teacher)
    return serialize_teacher(teacher)


def deactivate_teacher(db: Session, teacher_id: int) -> dict:
    teacher = get_teacher(db, teacher_id)
    running = (
        db.query(Group.id)
        .filter(
            Group.teacher_id == teacher.id,
            Group.status.in_([GroupStatus.ACTIVE.value, GroupStatus.GRADES_SUBMITTED.value]),
        )
        .first()
    )
    if running:
        raise InvalidStateError('Teacher still has groups in progress')
    teacher.is_active = False
    teacher.user.is_active = False
    db.commit()
    logger.info('teacher_deactivated teacher_id=%s', teacher.id)
    return {'message': 'Teacher deleted successfully'}
