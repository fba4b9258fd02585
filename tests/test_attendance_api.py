import tempfile
import unittest
from datetime import date
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from techschool.core.errors import install_error_handlers
from techschool.db import Base, get_db
from techschool.models import Attendance, Course, Enrollment, Group, Level, Role, Student, Teacher, User
from techschool.routers import attendance, groups
from techschool.services.auth_service import issue_access_token


class AttendanceApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_attendance_api.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        install_error_handlers(app)
        app.include_router(attendance.router)
        app.include_router(groups.router)

        def override_get_db():
            db = cls._session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
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
            other_user = User(first_name='Jorge', paternal_surname='Rojas')
            other_user.roles = [teacher_role]
            student_user = User(first_name='Ana', paternal_surname='Condori')
            student_user.roles = [student_role]
            db.add_all([teacher_user, other_user, student_user])
            db.flush()

            teacher = Teacher(user_id=teacher_user.id)
            other = Teacher(user_id=other_user.id)
            db.add_all([teacher, other])
            course = Course(name='Ingles', code='ENG')
            db.add(course)
            db.flush()
            level = Level(course_id=course.id, name='Basico 1', code='B1')
            db.add(level)
            db.flush()
            group = Group(level_id=level.id, teacher_id=teacher.id, name='Ingles - Basico 1', code='GRP-1', start_date=date(2026, 3, 1))
            db.add(group)
            db.flush()
            student = Student(user_id=student_user.id, registration_code='ST20260001')
            db.add(student)
            db.flush()
            enrollment = Enrollment(student_id=student.id, group_id=group.id, enrollment_date=date(2026, 3, 1))
            db.add(enrollment)
            db.commit()

            self.group_id = group.id
            self.enrollment_id = enrollment.id
            self.teacher_headers = {'Authorization': f'Bearer {issue_access_token(teacher_user)}'}
            self.other_headers = {'Authorization': f'Bearer {issue_access_token(other_user)}'}
            self.student_headers = {'Authorization': f'Bearer {issue_access_token(student_user)}'}
        finally:
            db.close()

    def _batch(self, headers, status='PRESENT'):
        return self.client.post(
            '/attendance/batch',
            json={
                'group_id': self.group_id,
                'date': '2026-03-10',
                'records': [{'enrollment_id': self.enrollment_id, 'status': status, 'arrival_time': '08:01:30'}],
            },
            headers=headers,
        )

    def test_owner_records_and_reads_back_by_date(self):
        saved = self._batch(self.teacher_headers)
        self.assertEqual(saved.status_code, 200)
        self.assertEqual(saved.json(), {'message': 'Attendance saved successfully', 'count': 1})

        sheet = self.client.get(
            f'/attendance/{self.group_id}/date', params={'date': '2026-03-10'}, headers=self.teacher_headers
        )
        self.assertEqual(sheet.status_code, 200)
        student = sheet.json()['students'][0]
        self.assertEqual(student['status'], 'PRESENT')
        self.assertEqual(student['arrival_time'], '08:01:30')

    def test_batch_body_takes_date_or_attendance_date(self):
        for key, day in (('date', '2026-03-12'), ('attendance_date', '2026-03-13')):
            response = self.client.post(
                '/attendance/batch',
                json={'group_id': self.group_id, key: day, 'records': [{'enrollment_id': self.enrollment_id, 'status': 'ABSENT'}]},
                headers=self.teacher_headers,
            )
            self.assertEqual(response.status_code, 200, response.text)
        missing = self.client.post(
            '/attendance/batch',
            json={'group_id': self.group_id, 'records': [{'enrollment_id': self.enrollment_id, 'status': 'ABSENT'}]},
            headers=self.teacher_headers,
        )
        self.assertEqual(missing.status_code, 400)
        db = self._session_factory()
        try:
            self.assertEqual(db.query(Attendance).count(), 2)
        finally:
            db.close()

    def test_foreign_teacher_and_students_are_forbidden(self):
        self.assertEqual(self._batch(self.other_headers).status_code, 403)
        self.assertEqual(self._batch(self.student_headers).status_code, 403)
        db = self._session_factory()
        try:
            self.assertEqual(db.query(Attendance).count(), 0)
        finally:
            db.close()

    def test_bad_status_and_bad_dates_are_400(self):
        bad_status = self._batch(self.teacher_headers, status='HOLIDAY')
        self.assertEqual(bad_status.status_code, 400)
        self.assertIn('Invalid attendance status', bad_status.json()['message'])

        bad_date = self.client.get(
            f'/attendance/{self.group_id}/date', params={'date': 'yesterday'}, headers=self.teacher_headers
        )
        self.assertEqual(bad_date.status_code, 400)

        inverted = self.client.get(
            f'/attendance/{self.group_id}/stats',
            params={'start_date': '2026-03-31', 'end_date': '2026-03-01'},
            headers=self.teacher_headers,
        )
        self.assertEqual(inverted.status_code, 400)

    def test_stats_endpoint_and_missing_group(self):
        self._batch(self.teacher_headers, status='LATE')
        stats = self.client.get(
            f'/attendance/{self.group_id}/stats',
            params={'start_date': '2026-03-01', 'end_date': '2026-03-31'},
            headers=self.teacher_headers,
        )
        self.assertEqual(stats.status_code, 200)
        body = stats.json()
        self.assertEqual(body['period'], {'start': '2026-03-01', 'end': '2026-03-31', 'total_classes': 1})
        self.assertEqual(body['stats'][0]['percentage'], '100.0')

        missing = self.client.get('/attendance/9999/date', params={'date': '2026-03-10'}, headers=self.teacher_headers)
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {'message': 'Group not found'})

    def test_teacher_submits_grades_through_group_endpoint(self):
        denied = self.client.post(f'/groups/{self.group_id}/submit-grades', headers=self.other_headers)
        self.assertEqual(denied.status_code, 403)
        ok = self.client.post(f'/groups/{self.group_id}/submit-grades', headers=self.teacher_headers)
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(ok.json()['status'], 'GRADES_SUBMITTED')
        again = self.client.post(f'/groups/{self.group_id}/submit-grades', headers=self.teacher_headers)
        self.assertEqual(again.status_code, 400)

        listed = self.client.get('/groups', headers=self.other_headers)
        self.assertEqual(listed.json(), [])


if __name__ == '__main__':
    unittest.main()
