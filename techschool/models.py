from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from techschool.core.time_provider import utcnow_naive
from techschool.db import Base


class RoleName(str, Enum):
    ADMIN = 'ADMIN'
    TEACHER = 'TEACHER'
    STUDENT = 'STUDENT'
    LEGAL_GUARDIAN = 'LEGAL_GUARDIAN'


GUARDIAN_ROLE_NAMES = frozenset({RoleName.LEGAL_GUARDIAN.value, 'GUARDIAN'})


class GroupStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    GRADES_SUBMITTED = 'GRADES_SUBMITTED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class EnrollmentStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


class AttendanceStatus(str, Enum):
    PRESENT = 'PRESENT'
    ABSENT = 'ABSENT'
    LATE = 'LATE'
    EXCUSED = 'EXCUSED'


class EvaluationType(str, Enum):
    SPEAKING = 'SPEAKING'
    LISTENING = 'LISTENING'
    READING = 'READING'
    WRITING = 'WRITING'
    VOCABULARY = 'VOCABULARY'
    GRAMMAR = 'GRAMMAR'


class DiscountType(str, Enum):
    PERCENTAGE = 'PERCENTAGE'
    FIXED_AMOUNT = 'FIXED_AMOUNT'


class DayOfWeek(str, Enum):
    MONDAY = 'MONDAY'
    TUESDAY = 'TUESDAY'
    WEDNESDAY = 'WEDNESDAY'
    THURSDAY = 'THURSDAY'
    FRIDAY = 'FRIDAY'
    SATURDAY = 'SATURDAY'
    SUNDAY = 'SUNDAY'


class NotificationType(str, Enum):
    INFO = 'INFO'
    SUCCESS = 'SUCCESS'
    WARNING = 'WARNING'
    ERROR = 'ERROR'


user_roles = Table(
    'user_roles',
    Base.metadata,
    Column('user_id', ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
    Column('role_id', ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
)

school_agreements = Table(
    'school_agreements',
    Base.metadata,
    Column('school_id', ForeignKey('schools.id', ondelete='CASCADE'), primary_key=True),
    Column('agreement_id', ForeignKey('agreements.id', ondelete='CASCADE'), primary_key=True),
)


class Role(Base):
    __tablename__ = 'roles'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    description: Mapped[str] = mapped_column(String(255), default='')


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str | None] = mapped_column(String(160), unique=True, nullable=True, index=True)
    username: Mapped[str | None] = mapped_column(String(80), unique=True, nullable=True, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str] = mapped_column(String(120))
    paternal_surname: Mapped[str] = mapped_column(String(120), default='')
    maternal_surname: Mapped[str] = mapped_column(String(120), default='')
    phone: Mapped[str] = mapped_column(String(30), default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    roles: Mapped[list['Role']] = relationship('Role', secondary=user_roles, lazy='selectin')

    @property
    def role_names(self) -> list[str]:
        return sorted(role.name for role in self.roles)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.paternal_surname, self.maternal_surname]
        return ' '.join(part for part in parts if part)


class Teacher(Base):
    __tablename__ = 'teachers'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, index=True)
    document_number: Mapped[str] = mapped_column(String(40), default='')
    specialization: Mapped[str] = mapped_column(String(160), default='')
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    contract_type: Mapped[str] = mapped_column(String(40), default='')
    hourly_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    user: Mapped['User'] = relationship('User', lazy='joined')
    groups: Mapped[list['Group']] = relationship('Group', back_populates='teacher')


class School(Base):
    __tablename__ = 'schools'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180), index=True)
    code: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    sie_code: Mapped[str | None] = mapped_column(String(40), unique=True, nullable=True)
    director_name: Mapped[str] = mapped_column(String(160), default='')
    address: Mapped[str] = mapped_column(String(255), default='')
    district: Mapped[str] = mapped_column(String(120), default='')
    city: Mapped[str] = mapped_column(String(120), default='')
    phone: Mapped[str] = mapped_column(String(30), default='')
    email: Mapped[str] = mapped_column(String(160), default='')
    contact_person: Mapped[str] = mapped_column(String(160), default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    agreements: Mapped[list['Agreement']] = relationship(
        'Agreement', secondary=school_agreements, back_populates='schools'
    )


class Agreement(Base):
    __tablename__ = 'agreements'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    code: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    discount_type: Mapped[str] = mapped_column(String(20), default=DiscountType.PERCENTAGE.value)
    discount_value: Mapped[float] = mapped_column(Float, default=0.0)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    schools: Mapped[list['School']] = relationship(
        'School', secondary=school_agreements, back_populates='agreements', lazy='selectin'
    )


class Student(Base):
    __tablename__ = 'students'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, index=True)
    registration_code: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    document_number: Mapped[str] = mapped_column(String(40), default='')
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str] = mapped_column(String(20), default='')
    address: Mapped[str] = mapped_column(String(255), default='')
    school_id: Mapped[int | None] = mapped_column(ForeignKey('schools.id'), nullable=True, index=True)
    emergency_contact_name: Mapped[str] = mapped_column(String(160), default='')
    emergency_contact_phone: Mapped[str] = mapped_column(String(30), default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    user: Mapped['User'] = relationship('User', lazy='joined')
    school: Mapped['School'] = relationship('School')
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='student')


class Guardian(Base):
    __tablename__ = 'guardians'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, index=True)
    document_number: Mapped[str] = mapped_column(String(40), default='')
    relationship_type: Mapped[str] = mapped_column(String(40), default='')
    occupation: Mapped[str] = mapped_column(String(120), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)

    user: Mapped['User'] = relationship('User', lazy='joined')


class StudentGuardian(Base):
    __tablename__ = 'student_guardians'
    __table_args__ = (
        UniqueConstraint('student_id', 'guardian_id', name='uq_student_guardians_student_guardian'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    guardian_id: Mapped[int] = mapped_column(ForeignKey('guardians.id'), index=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=True)

    student: Mapped['Student'] = relationship('Student')
    guardian: Mapped['Guardian'] = relationship('Guardian')


class Classroom(Base):
    __tablename__ = 'classrooms'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), index=True)
    capacity: Mapped[int] = mapped_column(Integer, default=20)
    location: Mapped[str] = mapped_column(String(160), default='')
    description: Mapped[str] = mapped_column(Text, default='')
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)


class Course(Base):
    __tablename__ = 'courses'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(160))
    code: Mapped[str] = mapped_column(String(40), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, default='')
    min_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    levels: Mapped[list['Level']] = relationship(
        'Level', back_populates='course', order_by='Level.order_index'
    )


class Level(Base):
    __tablename__ = 'levels'
    __table_args__ = (
        UniqueConstraint('course_id', 'code', name='uq_levels_course_code'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey('courses.id'), index=True)
    name: Mapped[str] = mapped_column(String(120))
    code: Mapped[str] = mapped_column(String(40))
    description: Mapped[str] = mapped_column(Text, default='')
    order_index: Mapped[int] = mapped_column(Integer, default=1)
    duration_weeks: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    base_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    course: Mapped['Course'] = relationship('Course', back_populates='levels')
    groups: Mapped[list['Group']] = relationship('Group', back_populates='level')


class Group(Base):
    __tablename__ = 'groups'
    __table_args__ = (
        Index('ix_groups_level_status', 'level_id', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    level_id: Mapped[int] = mapped_column(ForeignKey('levels.id'), index=True)
    # Nullable; submit_grades reports a missing teacher as a data integrity error.
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey('teachers.id'), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    code: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    start_date: Mapped[date] = mapped_column(Date)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    max_capacity: Mapped[int] = mapped_column(Integer, default=20)
    min_capacity: Mapped[int] = mapped_column(Integer, default=5)
    classroom: Mapped[str] = mapped_column(String(120), default='')
    status: Mapped[str] = mapped_column(String(20), default=GroupStatus.ACTIVE.value, index=True)
    notes: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    level: Mapped['Level'] = relationship('Level', back_populates='groups')
    teacher: Mapped['Teacher'] = relationship('Teacher', back_populates='groups')
    enrollments: Mapped[list['Enrollment']] = relationship('Enrollment', back_populates='group')


class Enrollment(Base):
    __tablename__ = 'enrollments'
    __table_args__ = (
        Index('ix_enrollments_group_status', 'group_id', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    group_id: Mapped[int] = mapped_column(ForeignKey('groups.id'), index=True)
    agreement_id: Mapped[int | None] = mapped_column(ForeignKey('agreements.id'), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=EnrollmentStatus.ACTIVE.value, index=True)
    enrollment_date: Mapped[date] = mapped_column(Date, index=True)
    agreed_price: Mapped[float] = mapped_column(Float, default=0.0)
    discount_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey('users.id'), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)

    student: Mapped['Student'] = relationship('Student', back_populates='enrollments')
    group: Mapped['Group'] = relationship('Group', back_populates='enrollments')
    agreement: Mapped['Agreement'] = relationship('Agreement')


class Attendance(Base):
    __tablename__ = 'attendances'
    __table_args__ = (
        UniqueConstraint('enrollment_id', 'attendance_date', name='uq_attendances_enrollment_date'),
        Index('ix_attendances_date', 'attendance_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    enrollment_id: Mapped[int] = mapped_column(ForeignKey('enrollments.id'), index=True)
    attendance_date: Mapped[date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(20))
    # Time of day stored on 1970-01-01.
    arrival_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default='')
    recorded_by_id: Mapped[int | None] = mapped_column(ForeignKey('teachers.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    enrollment: Mapped['Enrollment'] = relationship('Enrollment')


class Grade(Base):
    __tablename__ = 'grades'
    __table_args__ = (
        UniqueConstraint('enrollment_id', 'evaluation_type', name='uq_grades_enrollment_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    enrollment_id: Mapped[int] = mapped_column(ForeignKey('enrollments.id'), index=True)
    evaluation_type: Mapped[str] = mapped_column(String(20))
    progress_test: Mapped[float | None] = mapped_column(Float, nullable=True)
    class_performance: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade_value: Mapped[float] = mapped_column(Float, default=0.0)
    max_grade: Mapped[float] = mapped_column(Float, default=100.0)
    comments: Mapped[str] = mapped_column(Text, default='')
    evaluation_date: Mapped[date] = mapped_column(Date)
    recorded_by_id: Mapped[int | None] = mapped_column(ForeignKey('teachers.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)

    enrollment: Mapped['Enrollment'] = relationship('Enrollment')


class Notification(Base):
    __tablename__ = 'notifications'
    __table_args__ = (
        Index('ix_notifications_user_read', 'user_id', 'is_read'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), index=True)
    title: Mapped[str] = mapped_column(String(200))
    message: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), default=NotificationType.INFO.value)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)


class SystemSetting(Base):
    __tablename__ = 'system_settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(80), unique=True, index=True)
    value: Mapped[str] = mapped_column(Text, default='')
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class SideEffectFailureLog(Base):
    __tablename__ = 'side_effect_failure_logs'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    task_name: Mapped[str] = mapped_column(String(80), index=True)
    entity_type: Mapped[str] = mapped_column(String(40), default='')
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_message: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, index=True)


class ScheduleTemplate(Base):
    __tablename__ = 'schedule_templates'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    description: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)

    items: Mapped[list['ScheduleTemplateItem']] = relationship(
        'ScheduleTemplateItem',
        back_populates='template',
        cascade='all, delete-orphan',
        order_by='ScheduleTemplateItem.id',
    )


class ScheduleTemplateItem(Base):
    __tablename__ = 'schedule_template_items'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    template_id: Mapped[int] = mapped_column(ForeignKey('schedule_templates.id', ondelete='CASCADE'), index=True)
    day_of_week: Mapped[str] = mapped_column(String(10))
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)

    template: Mapped['ScheduleTemplate'] = relationship('ScheduleTemplate', back_populates='items')
