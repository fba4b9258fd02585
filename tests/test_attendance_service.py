import tempfile
import unittest
from datetime import date
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from techschool.core.errors import AccessDeniedError, InvalidStateError, ValidationError
from techschool.db import Base
from techschool.models import (
    Attendance,
    Course,
    Enrollment,
    Group,
    GroupStatus,
    Level,
    Role,
    Student,
    Teacher,
    User,
)
from techschool.services.attendance_service import get_attendance, get_attendance_stats, save_attendance_batch
from techschool.services.auth_service import Identity, hash_password


class AttendanceServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_attendance_service.db'
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
            self._seed(db)
        finally:
            db.close()

    def _user(self, db, first_name, surname, role, maternal=''):
        user = User(
            first_name=first_name,
            paternal_surname=surname,
            maternal_surname=maternal,
            password_hash=hash_password('secret123', iterations=1000),
        )
        user.roles = [role]
        db.add(user)
        db.flush()
        return user

    def _seed(self, db):
        teacher_role = Role(name='TEACHER')
        student_role = Role(name='STUDENT')
        db.add_all([teacher_role, student_role])
        db.flush()

        owner = Teacher(user_id=self._user(db, 'Maria', 'Quispe', teacher_role).id)
        other = Teacher(user_id=self._user(db, 'Jorge', 'Rojas', teacher_role).id)
        db.add_all([owner, other])
        course = Course(name='Ingles', code='ENG')
        db.add(course)
        db.flush()
        level = Level(course_id=course.id, name='Basico 1', code='B1')
        db.add(level)
        db.flush()
        group = Group(level_id=level.id, teacher_id=owner.id, name='Ingles - Basico 1', code='GRP-1', start_date=date(2026, 3, 1))
        other_group = Group(level_id=level.id, teacher_id=other.id, name='Ingles - Basico 1 B', code='GRP-2', start_date=date(2026, 3, 1))
        db.add_all([group, other_group])
        db.flush()

        enrollments = []
        for index, (first_name, surname) in enumerate((('Luis', 'Flores'), ('Ana', 'Condori'))):
            student = Student(
                user_id=self._user(db, first_name, surname, student_role).id,
                registration_code=f'ST2026000{index}',
            )
            db.add(student)
            db.flush()
            enrollment = Enrollment(student_id=student.id, group_id=group.id, enrollment_date=date(2026, 3, 1))
            db.add(enrollment)
            enrollments.append(enrollment)
        stranger = Student(user_id=self._user(db, 'Rosa', 'Mamani', student_role).id, registration_code='ST20269999')
        db.add(stranger)
        db.flush()
        foreign = Enrollment(student_id=stranger.id, group_id=other_group.id, enrollment_date=date(2026, 3, 1))
        db.add(foreign)
        db.commit()

        self.group_id = group.id
        self.owner_identity = Identity(user_id=owner.user_id, email=None, roles=frozenset({'TEACHER'}))
        self.other_identity = Identity(user_id=other.user_id, email=None, roles=frozenset({'TEACHER'}))
        self.admin_identity = Identity(user_id=999, email='admin@escuelatecnica.com', roles=frozenset({'ADMIN'}))
        self.flores_id, self.condori_id = (item.id for item in enrollments)
        self.foreign_enrollment_id = foreign.id

    def test_batch_is_an_upsert_per_enrollment_and_date(self):
        db = self._session_factory()
        try:
            day = date(2026, 3, 10)
            first = save_attendance_batch(
                db,
                group_id=self.group_id,
                attendance_date=day,
                records=[
                    {'enrollment_id': self.flores_id, 'status': 'PRESENT', 'arrival_time': '08:05'},
                    {'enrollment_id': self.condori_id, 'status': 'ABSENT'},
                ],
                identity=self.owner_identity,
            )
            self.assertEqual(first['count'], 2)

            save_attendance_batch(
                db,
                group_id=self.group_id,
                attendance_date=day,
                records=[{'enrollment_id': self.condori_id, 'status': 'late', 'notes': 'bus'}],
                identity=self.owner_identity,
            )
            rows = db.query(Attendance).order_by(Attendance.enrollment_id.asc()).all()
            self.assertEqual(len(rows), 2)
            by_enrollment = {row.enrollment_id: row for row in rows}
            self.assertEqual(by_enrollment[self.condori_id].status, 'LATE')
            self.assertEqual(by_enrollment[self.condori_id].notes, 'bus')
            self.assertEqual(by_enrollment[self.flores_id].arrival_time.strftime('%H:%M'), '08:05')
        finally:
            db.close()

    def test_resave_without_notes_keeps_the_stored_note(self):
        db = self._session_factory()
        try:
            day = date(2026, 3, 11)
            for record in (
                {'enrollment_id': self.condori_id, 'status': 'LATE', 'notes': 'bus', 'arrival_time': '08:20'},
                {'enrollment_id': self.condori_id, 'status': 'PRESENT'},
            ):
                save_attendance_batch(db, group_id=self.group_id, attendance_date=day, records=[record], identity=self.owner_identity)
            row = db.query(Attendance).filter(Attendance.enrollment_id == self.condori_id).first()
            self.assertEqual((row.status, row.notes, row.arrival_time), ('PRESENT', 'bus', None))

            save_attendance_batch(
                db,
                group_id=self.group_id,
                attendance_date=day,
                records=[{'enrollment_id': self.condori_id, 'status': 'PRESENT', 'notes': ''}],
                identity=self.owner_identity,
            )
            db.refresh(row)
            self.assertEqual(row.notes, '')
        finally:
            db.close()

    def test_invalid_record_rejects_the_whole_batch(self):
        db = self._session_factory()
        try:
            with self.assertRaises(ValidationError):
                save_attendance_batch(
                    db,
                    group_id=self.group_id,
                    attendance_date=date(2026, 3, 10),
                    records=[
                        {'enrollment_id': self.flores_id, 'status': 'PRESENT'},
                        {'enrollment_id': self.condori_id, 'status': 'SICK'},
                    ],
                    identity=self.owner_identity,
                )
            with self.assertRaises(ValidationError):
                save_attendance_batch(
                    db,
                    group_id=self.group_id,
                    attendance_date=date(2026, 3, 10),
                    records=[{'enrollment_id': self.foreign_enrollment_id, 'status': 'PRESENT'}],
                    identity=self.owner_identity,
                )
            self.assertEqual(db.query(Attendance).count(), 0)
        finally:
            db.close()

    def test_teacher_cannot_touch_a_group_they_do_not_own(self):
        db = self._session_factory()
        try:
            with self.assertRaises(AccessDeniedError):
                save_attendance_batch(
                    db,
                    group_id=self.group_id,
                    attendance_date=date(2026, 3, 10),
                    records=[{'enrollment_id': self.flores_id, 'status': 'PRESENT'}],
                    identity=self.other_identity,
                )
            with self.assertRaises(AccessDeniedError):
                get_attendance(db, group_id=self.group_id, attendance_date=date(2026, 3, 10), identity=self.other_identity)
            result = get_attendance(
                db, group_id=self.group_id, attendance_date=date(2026, 3, 10), identity=self.admin_identity
            )
            self.assertEqual(len(result['students']), 2)
        finally:
            db.close()

    def test_attendance_sheet_lists_active_students_by_surname(self):
        db = self._session_factory()
        try:
            save_attendance_batch(
                db,
                group_id=self.group_id,
                attendance_date=date(2026, 3, 10),
                records=[{'enrollment_id': self.flores_id, 'status': 'PRESENT'}],
                identity=self.owner_identity,
            )
            sheet = get_attendance(db, group_id=self.group_id, attendance_date=date(2026, 3, 10), identity=self.owner_identity)
            self.assertEqual([row['student_name'] for row in sheet['students']], ['Condori Ana', 'Flores Luis'])
            self.assertIsNone(sheet['students'][0]['status'])
            self.assertEqual(sheet['students'][1]['status'], 'PRESENT')
        finally:
            db.close()

    def test_closed_group_rejects_attendance(self):
        db = self._session_factory()
        try:
            group = db.query(Group).filter(Group.id == self.group_id).first()
            group.status = GroupStatus.COMPLETED.value
            db.commit()
            with self.assertRaises(InvalidStateError):
                save_attendance_batch(
                    db,
                    group_id=self.group_id,
                    attendance_date=date(2026, 3, 10),
                    records=[{'enrollment_id': self.flores_id, 'status': 'PRESENT'}],
                    identity=self.admin_identity,
                )
        finally:
            db.close()

    def test_stats_count_distinct_class_days(self):
        db = self._session_factory()
        try:
            for day, flores, condori in (
                (date(2026, 3, 2), 'PRESENT', 'ABSENT'),
                (date(2026, 3, 3), 'LATE', 'ABSENT'),
                (date(2026, 3, 4), 'PRESENT', 'EXCUSED'),
            ):
                save_attendance_batch(
                    db,
                    group_id=self.group_id,
                    attendance_date=day,
                    records=[
                        {'enrollment_id': self.flores_id, 'status': flores},
                        {'enrollment_id': self.condori_id, 'status': condori},
                    ],
                    identity=self.owner_identity,
                )
            result = get_attendance_stats(
                db,
                group_id=self.group_id,
                start_date=date(2026, 3, 1),
                end_date=date(2026, 3, 31),
                identity=self.owner_identity,
            )
            self.assertEqual(result['period']['total_classes'], 3)
            stats = {row['enrollment_id']: row for row in result['stats']}
            self.assertEqual(stats[self.flores_id]['percentage'], '100.0')
            self.assertEqual(stats[self.flores_id]['late'], 1)
            self.assertEqual(stats[self.condori_id]['percentage'], '0.0')
            self.assertEqual(stats[self.condori_id]['excused'], 1)

            narrow = get_attendance_stats(
                db,
                group_id=self.group_id,
                start_date=date(2026, 3, 4),
                end_date=date(2026, 3, 4),
                identity=self.owner_identity,
            )
            self.assertEqual(narrow['period']['total_classes'], 1)
        finally:
            db.close()

    def test_stats_without_classes_and_inverted_range(self):
        db = self._session_factory()
        try:
            empty = get_attendance_stats(
                db,
                group_id=self.group_id,
                start_date=date(2026, 4, 1),
                end_date=date(2026, 4, 30),
                identity=self.owner_identity,
            )
            self.assertEqual(empty['period']['total_classes'], 0)
            self.assertTrue(all(row['percentage'] == '0.0' for row in empty['stats']))
            with self.assertRaises(ValidationError):
                get_attendance_stats(
                    db,
                    group_id=self.group_id,
                    start_date=date(2026, 4, 30),
                    end_date=date(2026, 4, 1),
                    identity=self.owner_identity,
                )
        finally:
            db.close()


if __name__ == '__main__':
    unittest.main()
