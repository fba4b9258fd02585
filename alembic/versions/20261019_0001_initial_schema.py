"""initial school administration schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:01:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


INDEXES = (
    ('roles', 'name', True),
    ('users', 'email', True),
    ('users', 'username', True),
    ('users', 'is_active', False),
    ('users', 'created_at', False),
    ('teachers', 'user_id', True),
    ('teachers', 'is_active', False),
    ('schools', 'name', False),
    ('schools', 'code', True),
    ('schools', 'is_active', False),
    ('agreements', 'code', True),
    ('agreements', 'is_active', False),
    ('students', 'user_id', True),
    ('students', 'registration_code', True),
    ('students', 'school_id', False),
    ('students', 'is_active', False),
    ('guardians', 'user_id', True),
    ('student_guardians', 'student_id', False),
    ('student_guardians', 'guardian_id', False),
    ('classrooms', 'name', False),
    ('courses', 'code', True),
    ('courses', 'is_active', False),
    ('levels', 'course_id', False),
    ('groups', 'level_id', False),
    ('groups', 'teacher_id', False),
    ('groups', 'code', True),
    ('groups', 'status', False),
    ('enrollments', 'student_id', False),
    ('enrollments', 'group_id', False),
    ('enrollments', 'status', False),
    ('enrollments', 'enrollment_date', False),
    ('attendances', 'enrollment_id', False),
    ('grades', 'enrollment_id', False),
    ('notifications', 'user_id', False),
    ('notifications', 'created_at', False),
    ('system_settings', 'key', True),
    ('side_effect_failure_logs', 'task_name', False),
    ('side_effect_failure_logs', 'created_at', False),
)


def _timestamps(updated: bool = False) -> list[sa.Column]:
    columns = [sa.Column('created_at', sa.DateTime(), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), nullable=False))
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if 'roles' not in tables:
        op.create_table(
            'roles',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=40), nullable=False),
            sa.Column('description', sa.String(length=255), nullable=False, server_default=''),
        )

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('email', sa.String(length=160), nullable=True),
            sa.Column('username', sa.String(length=80), nullable=True),
            sa.Column('password_hash', sa.String(length=255), nullable=True),
            sa.Column('first_name', sa.String(length=120), nullable=False),
            sa.Column('paternal_surname', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('maternal_surname', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('phone', sa.String(length=30), nullable=False, server_default=''),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(updated=True),
        )

    if 'user_roles' not in tables:
        op.create_table(
            'user_roles',
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
            sa.Column('role_id', sa.Integer(), sa.ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
        )

    if 'teachers' not in tables:
        op.create_table(
            'teachers',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('document_number', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('specialization', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('hire_date', sa.Date(), nullable=True),
            sa.Column('contract_type', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('hourly_rate', sa.Float(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'schools' not in tables:
        op.create_table(
            'schools',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=180), nullable=False),
            sa.Column('code', sa.String(length=40), nullable=False),
            sa.Column('sie_code', sa.String(length=40), nullable=True, unique=True),
            sa.Column('director_name', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('address', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('district', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('city', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('phone', sa.String(length=30), nullable=False, server_default=''),
            sa.Column('email', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('contact_person', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'agreements' not in tables:
        op.create_table(
            'agreements',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=180), nullable=False),
            sa.Column('code', sa.String(length=40), nullable=False),
            sa.Column('discount_type', sa.String(length=20), nullable=False, server_default='PERCENTAGE'),
            sa.Column('discount_value', sa.Float(), nullable=False, server_default='0'),
            sa.Column('start_date', sa.Date(), nullable=False),
            sa.Column('end_date', sa.Date(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=False, server_default=''),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'school_agreements' not in tables:
        op.create_table(
            'school_agreements',
            sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id', ondelete='CASCADE'), primary_key=True),
            sa.Column(
                'agreement_id', sa.Integer(), sa.ForeignKey('agreements.id', ondelete='CASCADE'), primary_key=True
            ),
        )

    if 'students' not in tables:
        op.create_table(
            'students',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('registration_code', sa.String(length=40), nullable=False),
            sa.Column('document_number', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('date_of_birth', sa.Date(), nullable=True),
            sa.Column('gender', sa.String(length=20), nullable=False, server_default=''),
            sa.Column('address', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('school_id', sa.Integer(), sa.ForeignKey('schools.id'), nullable=True),
            sa.Column('emergency_contact_name', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('emergency_contact_phone', sa.String(length=30), nullable=False, server_default=''),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'guardians' not in tables:
        op.create_table(
            'guardians',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('document_number', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('relationship_type', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('occupation', sa.String(length=120), nullable=False, server_default=''),
            *_timestamps(),
        )

    if 'student_guardians' not in tables:
        op.create_table(
            'student_guardians',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
            sa.Column('guardian_id', sa.Integer(), sa.ForeignKey('guardians.id'), nullable=False),
            sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint('student_id', 'guardian_id', name='uq_student_guardians_student_guardian'),
        )

    if 'classrooms' not in tables:
        op.create_table(
            'classrooms',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('capacity', sa.Integer(), nullable=False, server_default='20'),
            sa.Column('location', sa.String(length=160), nullable=False, server_default=''),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'courses' not in tables:
        op.create_table(
            'courses',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=160), nullable=False),
            sa.Column('code', sa.String(length=40), nullable=False),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('min_age', sa.Integer(), nullable=True),
            sa.Column('max_age', sa.Integer(), nullable=True),
            sa.Column('duration_months', sa.Integer(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )

    if 'levels' not in tables:
        op.create_table(
            'levels',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id'), nullable=False),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('code', sa.String(length=40), nullable=False),
            sa.Column('description', sa.Text(), nullable=False, server_default=''),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('duration_weeks', sa.Integer(), nullable=True),
            sa.Column('total_hours', sa.Integer(), nullable=True),
            sa.Column('base_price', sa.Float(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.UniqueConstraint('course_id', 'code', name='uq_levels_course_code'),
        )

    if 'groups' not in tables:
        op.create_table(
            'groups',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('level_id', sa.Integer(), sa.ForeignKey('levels.id'), nullable=False),
            sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id'), nullable=True),
            sa.Column('name', sa.String(length=180), nullable=False),
            sa.Column('code', sa.String(length=80), nullable=False),
            sa.Column('start_date', sa.Date(), nullable=False),
            sa.Column('end_date', sa.Date(), nullable=True),
            sa.Column('max_capacity', sa.Integer(), nullable=False, server_default='20'),
            sa.Column('min_capacity', sa.Integer(), nullable=False, server_default='5'),
            sa.Column('classroom', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
            sa.Column('notes', sa.Text(), nullable=False, server_default=''),
            *_timestamps(updated=True),
        )
        op.create_index('ix_groups_level_status', 'groups', ['level_id', 'status'])

    if 'enrollments' not in tables:
        op.create_table(
            'enrollments',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
            sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=False),
            sa.Column('agreement_id', sa.Integer(), sa.ForeignKey('agreements.id'), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='ACTIVE'),
            sa.Column('enrollment_date', sa.Date(), nullable=False),
            sa.Column('agreed_price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('discount_percentage', sa.Float(), nullable=False, server_default='0'),
            sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('notes', sa.Text(), nullable=False, server_default=''),
            *_timestamps(),
        )
        op.create_index('ix_enrollments_group_status', 'enrollments', ['group_id', 'status'])

    if 'attendances' not in tables:
        op.create_table(
            'attendances',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollments.id'), nullable=False),
            sa.Column('attendance_date', sa.Date(), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('arrival_time', sa.DateTime(), nullable=True),
            sa.Column('notes', sa.Text(), nullable=False, server_default=''),
            sa.Column('recorded_by_id', sa.Integer(), sa.ForeignKey('teachers.id'), nullable=True),
            *_timestamps(updated=True),
            sa.UniqueConstraint('enrollment_id', 'attendance_date', name='uq_attendances_enrollment_date'),
        )
        op.create_index('ix_attendances_date', 'attendances', ['attendance_date'])

    if 'grades' not in tables:
        op.create_table(
            'grades',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('enrollment_id', sa.Integer(), sa.ForeignKey('enrollments.id'), nullable=False),
            sa.Column('evaluation_type', sa.String(length=20), nullable=False),
            sa.Column('progress_test', sa.Float(), nullable=True),
            sa.Column('class_performance', sa.Float(), nullable=True),
            sa.Column('grade_value', sa.Float(), nullable=False, server_default='0'),
            sa.Column('max_grade', sa.Float(), nullable=False, server_default='100'),
            sa.Column('comments', sa.Text(), nullable=False, server_default=''),
            sa.Column('evaluation_date', sa.Date(), nullable=False),
            sa.Column('recorded_by_id', sa.Integer(), sa.ForeignKey('teachers.id'), nullable=True),
            *_timestamps(updated=True),
            sa.UniqueConstraint('enrollment_id', 'evaluation_type', name='uq_grades_enrollment_type'),
        )

    if 'notifications' not in tables:
        op.create_table(
            'notifications',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('title', sa.String(length=200), nullable=False),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('type', sa.String(length=20), nullable=False, server_default='INFO'),
            sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
        )
        op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])

    if 'system_settings' not in tables:
        op.create_table(
            'system_settings',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('key', sa.String(length=80), nullable=False),
            sa.Column('value', sa.Text(), nullable=False, server_default=''),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )

    if 'side_effect_failure_logs' not in tables:
        op.create_table(
            'side_effect_failure_logs',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('task_name', sa.String(length=80), nullable=False),
            sa.Column('entity_type', sa.String(length=40), nullable=False, server_default=''),
            sa.Column('entity_id', sa.Integer(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=False, server_default=''),
            *_timestamps(),
        )

    inspector = inspect(bind)
    for table, column, unique in INDEXES:
        name = f'ix_{table}_{column}'
        existing = {idx['name'] for idx in inspector.get_indexes(table)}
        if name not in existing:
            op.create_index(name, table, [column], unique=unique)


def downgrade() -> None:
    bind = op.get_bind()
    tables = set(inspect(bind).get_table_names())
    for table in (
        'side_effect_failure_logs',
        'system_settings',
        'notifications',
        'grades',
        'attendances',
        'enrollments',
        'groups',
        'levels',
        'courses',
        'classrooms',
        'student_guardians',
        'guardians',
        'students',
        'school_agreements',
        'agreements',
        'schools',
        'teachers',
        'user_roles',
        'users',
        'roles',
    ):
        if table in tables:
            op.drop_table(table)
