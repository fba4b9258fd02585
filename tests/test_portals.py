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
from techschool.models import Attendance, Course, Enrollment, Grade, Group, Level, Role, RoleName, Student, User
from techschool.routers import guardian_portal, student_portal
from techschool.services.auth_service import issue_access_token
from techschool.services.people_service import create_student


class PortalApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_portals.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        install_error_handlers(app)
        app.include_router(student_portal.router)
        app.include_router(guardian_portal.router)

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
            db.add_all([Role(name=item.value) for item in RoleName])
            course = Course(name='Ingles', code='ENG')
            db.add(course)
            db.flush()
            level = Level(course_id=course.id, name='Basico 1', code='B1')
            db.add(level)
            db.flush()
            group = Group(level_id=level.id, name='Ingles - Basico 1', code='GRP-1', start_date=date(2026, 3, 1))
            db.add(group)
            db.commit()

            ana = create_student(
                db,
                first_name='Ana',
                paternal_surname='Condori',
                document_number='7001001',
                date_of_birth=date(2011, 5, 4),
                guardian={
                    'email': 'tutor.condori@example.com',
                    'first_name': 'Pedro',
                    'paternal_surname': 'Condori',
                    'document_number': '3001001',
                    'relationship_type': 'PADRE',
                },
            )
            luis = create_student(
                db,
                first_name='Luis',
                paternal_surname='Flores',
                document_number='7001002',
                date_of_birth=date(2011, 8, 9),
            )
            ana_enrollment = Enrollment(student_id=ana['id'], group_id=group.id, enrollment_date=date(2026, 3, 1))
            luis_enrollment = Enrollment(student_id=luis['id'], group_id=group.id, enrollment_date=date(2026, 3, 1))
            db.add_all([ana_enrollment, luis_enrollment])
            db.flush()
            db.add_all(
                [
                    Grade(enrollment_id=ana_enrollment.id, evaluation_type='SPEAKING', grade_value=80.0, evaluation_date=date(2026, 4, 1)),
                    Grade(enrollment_id=ana_enrollment.id, evaluation_type='READING', grade_value=40.0, evaluation_date=date(2026, 4, 1)),
                    Attendance(enrollment_id=ana_enrollment.id, attendance_date=date(2026, 3, 2), status='PRESENT'),
                    Attendance(enrollment_id=ana_enrollment.id, attendance_date=date(2026, 3, 3), status='ABSENT'),
                ]
            )
            db.commit()

            def token_for(user_id):
                return {'Authorization': f'Bearer {issue_access_token(db.query(User).filter(User.id == user_id).first())}'}

            self.ana_student_id = ana['id']
            self.luis_student_id = luis['id']
            self.ana_enrollment_id = ana_enrollment.id
            self.luis_enrollment_id = luis_enrollment.id
            self.ana_headers = token_for(ana['user']['user_id'])
            self.guardian_headers = token_for(ana['guardians'][0]['user']['user_id'])
            self.guardian_roles = db.query(User).filter(User.id == ana['guardians'][0]['user']['user_id']).first().role_names
            self.ana_registration_code = db.query(Student).filter(Student.id == ana['id']).first().registration_code
        finally:
            db.close()

    def test_guardian_user_gets_legal_guardian_role(self):
        self.assertEqual(self.guardian_roles, ['LEGAL_GUARDIAN'])
        self.assertRegex(self.ana_registration_code, r'^ST\d{8}$')

    def test_student_sees_own_courses_grades_and_attendance(self):
        courses = self.client.get('/student-portal/my-courses', headers=self.ana_headers)
        self.assertEqual(courses.status_code, 200)
        self.assertEqual([row['id'] for row in courses.json()['enrollments']], [self.ana_enrollment_id])
        self.assertIsNone(courses.json()['enrollments'][0]['teacher'])

        grades = self.client.get(f'/student-portal/my-grades/{self.ana_enrollment_id}', headers=self.ana_headers)
        self.assertEqual(grades.status_code, 200)
        self.assertEqual(
            grades.json()['stats'],
            {'average_grade': 60.0, 'total_evaluations': 2, 'passed_evaluations': 1},
        )

        attendance = self.client.get(f'/student-portal/my-attendance/{self.ana_enrollment_id}', headers=self.ana_headers)
        self.assertEqual(attendance.status_code, 200)
        summary = attendance.json()['summary']
        self.assertEqual(summary['present'], 1)
        self.assertEqual(summary['absent'], 1)
        self.assertEqual(summary['attendance_rate'], '50.0')

        history = self.client.get('/student-portal/my-academic-history', headers=self.ana_headers)
        self.assertEqual(history.status_code, 200)

    def test_student_cannot_read_another_enrollment(self):
        response = self.client.get(f'/student-portal/my-grades/{self.luis_enrollment_id}', headers=self.ana_headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {'message': 'You do not have access to this enrollment'})

    def test_guardian_only_reaches_linked_students(self):
        students = self.client.get('/guardian-portal/my-students', headers=self.guardian_headers)
        self.assertEqual(students.status_code, 200)
        self.assertEqual([row['id'] for row in students.json()['students']], [self.ana_student_id])
        self.assertEqual(students.json()['students'][0]['active_enrollments'], 1)

        ok = self.client.get(
            f'/guardian-portal/student-grades/{self.ana_student_id}/{self.ana_enrollment_id}',
            headers=self.guardian_headers,
        )
        self.assertEqual(ok.status_code, 200)

        foreign_student = self.client.get(
            f'/guardian-portal/student-courses/{self.luis_student_id}', headers=self.guardian_headers
        )
        self.assertEqual(foreign_student.status_code, 403)
        mismatched = self.client.get(
            f'/guardian-portal/student-attendance/{self.ana_student_id}/{self.luis_enrollment_id}',
            headers=self.guardian_headers,
        )
        self.assertEqual(mismatched.status_code, 403)

    def test_roles_are_kept_apart(self):
        self.assertEqual(self.client.get('/guardian-portal/my-students', headers=self.ana_headers).status_code, 403)
        self.assertEqual(self.client.get('/student-portal/my-courses', headers=self.guardian_headers).status_code, 403)


if __name__ == '__main__':
    unittest.main()
