import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from techschool.core.errors import ConflictError, InvalidStateError, ValidationError
from techschool.core.time_provider import FixedTimeProvider
from techschool.db import Base
from techschool.models import Course, Enrollment, Group, GroupStatus, Level, Role, Student, Teacher, User
from techschool.services.auth_service import verify_password
from techschool.services.enrollment_service import cancel_enrollment, create_enrollment, enrollment_report
from techschool.services.school_service import create_agreement, create_school
from techschool.services.stats_service import revenue_by_course


class EnrollmentServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_enrollment_service.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

    @classmethod
    def tearDownClass(cls):
        cls._engine.dispose()
        cls._tmpdir.cleanup()

    def setUp(self):
        db = self._session_factory()
        try:
            for table in reversed(Base.metadata.sorted_tables):
                db.execute(table.delete())
            db.commit()

            teacher_role = Role(name='TEACHER')
            db.add(teacher_role)
            db.flush()
            teacher_user = User(first_name='Maria', paternal_surname='Quispe')
            teacher_user.roles = [teacher_role]
            db.add(teacher_user)
            db.flush()
            teacher = Teacher(user_id=teacher_user.id)
            db.add(teacher)

            english = Course(name='Ingles', code='ENG')
            computing = Course(name='Computacion', code='CMP')
            db.add_all([english, computing])
            db.flush()
            priced = Level(course_id=english.id, name='Basico 1', code='B1', base_price=500.0)
            unpriced = Level(course_id=computing.id, name='Ofimatica', code='OF1')
            db.add_all([priced, unpriced])
            db.flush()
            small = Group(
                level_id=priced.id, teacher_id=teacher.id, name='Ingles - Basico 1', code='GRP-1',
                start_date=date(2026, 3, 1), max_capacity=2, min_capacity=1,
            )
            other = Group(
                level_id=unpriced.id, teacher_id=teacher.id, name='Computacion - Ofimatica', code='GRP-2',
                start_date=date(2026, 3, 1),
            )
            db.add_all([small, other])
            db.commit()
            self.small_group_id = small.id
            self.other_group_id = other.id
            self.english_id = english.id

            school = create_school(db, name='U.E. San Andres', sie_code='80730001')
            create_agreement(
                db,
                name='Convenio San Andres',
                discount_type='PERCENTAGE',
                discount_value=20,
                start_date=date(2026, 1, 1),
                end_date=date(2026, 12, 31),
                school_ids=[school.id],
            )
            self.fixed_agreement_id = create_agreement(
                db,
                name='Beca fija',
                discount_type='FIXED_AMOUNT',
                discount_value=100,
                start_date=date(2026, 1, 1),
            ).id

            self.student_ids = []
            for index, (first_name, surname, school_id) in enumerate(
                (('Ana', 'Condori', school.id), ('Luis', 'Flores', None), ('Sofia', 'Choque', None))
            ):
                user = User(first_name=first_name, paternal_surname=surname)
                db.add(user)
                db.flush()
                student = Student(user_id=user.id, registration_code=f'ST2026000{index}', school_id=school_id)
                db.add(student)
                db.flush()
                self.student_ids.append(student.id)
            db.commit()
        finally:
            db.close()

    def test_school_agreement_discounts_the_level_price_and_issues_credentials(self):
        db = self._session_factory()
        try:
            result = create_enrollment(
                db,
                student_id=self.student_ids[0],
                group_id=self.small_group_id,
                time_provider=FixedTimeProvider.on(date(2026, 3, 5)),
            )
            enrollment = result['enrollment']
            self.assertEqual(enrollment['agreed_price'], 400.0)
            self.assertEqual(enrollment['discount_percentage'], 20.0)
            self.assertEqual(enrollment['enrollment_date'], '2026-03-05')

            credentials = result['credentials']
            self.assertTrue(credentials['username'].startswith('ACONDORI'))
            self.assertEqual(len(credentials['password']), 8)
            user = db.query(Student).filter(Student.id == self.student_ids[0]).first().user
            self.assertTrue(verify_password(credentials['password'], user.password_hash))

            again = create_enrollment(db, student_id=self.student_ids[0], group_id=self.other_group_id)
            self.assertIsNone(again['credentials'])
        finally:
            db.close()

    def test_fixed_amount_agreement_and_default_price(self):
        db = self._session_factory()
        try:
            fixed = create_enrollment(
                db,
                student_id=self.student_ids[1],
                group_id=self.small_group_id,
                agreement_id=self.fixed_agreement_id,
                time_provider=FixedTimeProvider.on(date(2026, 3, 5)),
            )['enrollment']
            self.assertEqual(fixed['agreed_price'], 400.0)
            self.assertEqual(fixed['discount_percentage'], 20.0)

            default_priced = create_enrollment(db, student_id=self.student_ids[2], group_id=self.other_group_id)
            self.assertEqual(default_priced['enrollment']['agreed_price'], 450.0)
            self.assertEqual(default_priced['enrollment']['discount_percentage'], 0.0)
        finally:
            db.close()

    def test_agreement_outside_validity_is_rejected(self):
        db = self._session_factory()
        try:
            with self.assertRaises(ValidationError):
                create_enrollment(
                    db,
                    student_id=self.student_ids[1],
                    group_id=self.small_group_id,
                    agreement_id=self.fixed_agreement_id,
                    time_provider=FixedTimeProvider.on(date(2025, 12, 1)),
                )
            self.assertEqual(db.query(Enrollment).count(), 0)
        finally:
            db.close()

    def test_duplicates_capacity_and_group_state(self):
        db = self._session_factory()
        try:
            create_enrollment(db, student_id=self.student_ids[0], group_id=self.small_group_id)
            with self.assertRaises(ConflictError):
                create_enrollment(db, student_id=self.student_ids[0], group_id=self.small_group_id)
            create_enrollment(db, student_id=self.student_ids[1], group_id=self.small_group_id)
            with self.assertRaises(InvalidStateError) as ctx:
                create_enrollment(db, student_id=self.student_ids[2], group_id=self.small_group_id)
            self.assertEqual(str(ctx.exception), 'Group is full')

            group = db.query(Group).filter(Group.id == self.other_group_id).first()
            group.status = GroupStatus.GRADES_SUBMITTED.value
            db.commit()
            with self.assertRaises(InvalidStateError):
                create_enrollment(db, student_id=self.student_ids[2], group_id=self.other_group_id)
        finally:
            db.close()

    def test_cancelled_enrollment_frees_the_seat_and_leaves_revenue(self):
        db = self._session_factory()
        try:
            first = create_enrollment(db, student_id=self.student_ids[1], group_id=self.small_group_id)
            create_enrollment(db, student_id=self.student_ids[2], group_id=self.small_group_id)
            cancel_enrollment(db, first['enrollment']['id'])
            with self.assertRaises(InvalidStateError):
                cancel_enrollment(db, first['enrollment']['id'])
            create_enrollment(
                db, student_id=self.student_ids[0], group_id=self.small_group_id, time_provider=FixedTimeProvider.on(date(2026, 3, 5))
            )

            revenue = {row['name']: row for row in revenue_by_course(db)}
            self.assertEqual(revenue['Ingles']['total_students'], 2)
            self.assertEqual(revenue['Ingles']['total_revenue'], 500.0 + 400.0)
            self.assertEqual(revenue['Computacion']['total_revenue'], 0.0)
            self.assertEqual(revenue['Computacion']['total_students'], 0)
            self.assertEqual([row['name'] for row in revenue_by_course(db)], ['Ingles', 'Computacion'])
        finally:
            db.close()

    def test_report_filters_by_year_and_period(self):
        db = self._session_factory()
        try:
            create_enrollment(
                db, student_id=self.student_ids[0], group_id=self.small_group_id, time_provider=FixedTimeProvider.on(date(2026, 3, 5))
            )
            create_enrollment(
                db, student_id=self.student_ids[1], group_id=self.small_group_id, time_provider=FixedTimeProvider.on(date(2026, 8, 5))
            )
            first_half = enrollment_report(db, course_id=self.english_id, year=2026, academic_period=1)
            self.assertEqual(first_half['totals']['count'], 1)
            self.assertEqual(first_half['totals']['revenue'], 400.0)
            whole_year = enrollment_report(db, year=2026)
            self.assertEqual(whole_year['totals']['count'], 2)
            with self.assertRaises(ValidationError):
                enrollment_report(db, academic_period=3)
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
