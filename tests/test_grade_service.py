import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from techschool.core.errors import AccessDeniedError, InvalidStateError, ValidationError
from techschool.db import Base
from techschool.models import Course, Enrollment, Grade, Group, GroupStatus, Level, Role, Student, Teacher, User
from techschool.services.auth_service import Identity
from techschool.services.grade_service import list_group_grades, report_card, save_grades


class GradeServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_grade_service.db'
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
            student_role = Role(name='STUDENT')
            db.add_all([teacher_role, student_role])
            db.flush()
            teacher_user = User(first_name='Maria', paternal_surname='Quispe')
            teacher_user.roles = [teacher_role]
            outsider_user = User(first_name='Jorge', paternal_surname='Rojas')
            outsider_user.roles = [teacher_role]
            student_user = User(first_name='Ana', paternal_surname='Condori')
            student_user.roles = [student_role]
            other_student_user = User(first_name='Luis', paternal_surname='Flores')
            other_student_user.roles = [student_role]
            db.add_all([teacher_user, outsider_user, student_user, other_student_user])
            db.flush()

            teacher = Teacher(user_id=teacher_user.id)
            outsider = Teacher(user_id=outsider_user.id)
            course = Course(name='Ingles', code='ENG')
            db.add_all([teacher, outsider, course])
            db.flush()
            level = Level(course_id=course.id, name='Basico 1', code='B1')
            db.add(level)
            db.flush()
            group = Group(level_id=level.id, teacher_id=teacher.id, name='Ingles - Basico 1', code='GRP-1', start_date=date(2026, 3, 1))
            db.add(group)
            db.flush()
            student = Student(user_id=student_user.id, registration_code='ST20260001')
            other_student = Student(user_id=other_student_user.id, registration_code='ST20260002')
            db.add_all([student, other_student])
            db.flush()
            enrollment = Enrollment(student_id=student.id, group_id=group.id, enrollment_date=date(2026, 3, 1))
            db.add(enrollment)
            db.commit()

            self.group_id = group.id
            self.enrollment_id = enrollment.id
            self.teacher = Identity(user_id=teacher_user.id, email=None, roles=frozenset({'TEACHER'}))
            self.outsider = Identity(user_id=outsider_user.id, email=None, roles=frozenset({'TEACHER'}))
            self.student = Identity(user_id=student_user.id, email=None, roles=frozenset({'STUDENT'}))
            self.other_student = Identity(user_id=other_student_user.id, email=None, roles=frozenset({'STUDENT'}))
        finally:
            db.close()

    def _full_sheet(self, value):
        return [
            {'type': kind, 'score': value}
            for kind in ('SPEAKING', 'LISTENING', 'READING', 'WRITING', 'VOCABULARY', 'GRAMMAR')
        ]

    def test_sub_scores_are_averaged_and_unknown_types_skipped(self):
        db = self._session_factory()
        try:
            result = save_grades(
                db,
                enrollment_id=self.enrollment_id,
                grades=[
                    {'type': 'speaking', 'progress_test': 70, 'class_performance': 90},
                    {'type': 'LISTENING', 'score': 65, 'comments': 'Mejorar'},
                    {'type': 'ORAL_EXAM', 'score': 100},
                ],
                identity=self.teacher,
            )
            self.assertEqual(result, {'message': 'Grades saved successfully', 'saved': 2, 'skipped': 1})
            grades = {row.evaluation_type: row for row in db.query(Grade).all()}
            self.assertEqual(grades['SPEAKING'].grade_value, 80.0)
            self.assertEqual(grades['LISTENING'].comments, 'Mejorar')
            self.assertNotIn('ORAL_EXAM', grades)
        finally:
            db.close()

    def test_resaving_updates_in_place(self):
        db = self._session_factory()
        try:
            save_grades(db, enrollment_id=self.enrollment_id, grades=[{'type': 'READING', 'score': 40}], identity=self.teacher)
            save_grades(db, enrollment_id=self.enrollment_id, grades=[{'type': 'READING', 'score': 75}], identity=self.teacher)
            rows = db.query(Grade).all()
            self.assertEqual(len(rows), 1)
            self.assertEqual(rows[0].grade_value, 75.0)
        finally:
            db.close()

    def test_missing_score_rejects_the_sheet(self):
        db = self._session_factory()
        try:
            with self.assertRaises(ValidationError):
                save_grades(
                    db,
                    enrollment_id=self.enrollment_id,
                    grades=[{'type': 'READING', 'score': 40}, {'type': 'WRITING'}],
                    identity=self.teacher,
                )
            self.assertEqual(db.query(Grade).count(), 0)
        finally:
            db.close()

    def test_only_the_group_teacher_may_grade_an_active_group(self):
        db = self._session_factory()
        try:
            with self.assertRaises(AccessDeniedError):
                save_grades(db, enrollment_id=self.enrollment_id, grades=self._full_sheet(90), identity=self.outsider)
            group = db.query(Group).filter(Group.id == self.group_id).first()
            group.status = GroupStatus.GRADES_SUBMITTED.value
            db.commit()
            with self.assertRaises(InvalidStateError):
                save_grades(db, enrollment_id=self.enrollment_id, grades=self._full_sheet(90), identity=self.teacher)
        finally:
            db.close()

    def test_report_card_average_and_access(self):
        db = self._session_factory()
        try:
            sheet = self._full_sheet(50)
            sheet[0]['score'] = 56
            save_grades(db, enrollment_id=self.enrollment_id, grades=sheet, identity=self.teacher)

            card = report_card(db, enrollment_id=self.enrollment_id, identity=self.student)
            self.assertEqual(card['average'], 51.0)
            self.assertTrue(card['passed'])
            self.assertEqual(card['teacher'], 'Maria Quispe')
            self.assertEqual(len(card['grades']), 6)

            with self.assertRaises(AccessDeniedError):
                report_card(db, enrollment_id=self.enrollment_id, identity=self.other_student)
            with self.assertRaises(AccessDeniedError):
                report_card(db, enrollment_id=self.enrollment_id, identity=self.outsider)

            listing = list_group_grades(db, group_id=self.group_id, identity=self.teacher)
            self.assertEqual(listing['students'][0]['average'], 51.0)
            self.assertEqual(set(listing['students'][0]['grades']), {'SPEAKING', 'LISTENING', 'READING', 'WRITING', 'VOCABULARY', 'GRAMMAR'})
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
