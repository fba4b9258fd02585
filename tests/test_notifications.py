import tempfile
import unittest
from pathlib import Path

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from techschool.core.errors import NotFoundError, ValidationError, install_error_handlers
from techschool.db import Base, get_db
from techschool.models import Notification, Role, User
from techschool.routers import notifications
from techschool.services.auth_service import issue_access_token
from techschool.services.notification_service import (
    broadcast_to_role,
    list_my_notifications,
    mark_all_as_read,
    mark_as_read,
    notify_user,
    notify_users,
)


class NotificationTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls._tmpdir = tempfile.TemporaryDirectory()
        db_path = Path(cls._tmpdir.name) / 'test_notifications.db'
        cls._engine = create_engine(f"sqlite:///{db_path}", connect_args={'check_same_thread': False})
        cls._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=cls._engine)
        Base.metadata.create_all(bind=cls._engine)

        app = FastAPI()
        install_error_handlers(app)
        app.include_router(notifications.router)

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

            admin_role = Role(name='ADMIN')
            teacher_role = Role(name='TEACHER')
            guardian_role = Role(name='LEGAL_GUARDIAN')
            db.add_all([admin_role, teacher_role, guardian_role])
            db.flush()
            admin = User(first_name='Admin', paternal_surname='Sistema', email='admin@escuelatecnica.com')
            admin.roles = [admin_role]
            teachers = []
            for name in ('Maria', 'Jorge'):
                user = User(first_name=name, paternal_surname='Docente')
                user.roles = [teacher_role]
                teachers.append(user)
            db.add_all([admin, *teachers])
            db.commit()

            self.admin_id = admin.id
            self.teacher_ids = [user.id for user in teachers]
            self.admin_token = issue_access_token(admin)
            self.teacher_token = issue_access_token(teachers[0])
        finally:
            db.close()

    def test_broadcast_reaches_every_member_of_the_role(self):
        db = self._session_factory()
        try:
            result = broadcast_to_role(db, role_name='teacher', title='Reunion', message='Viernes 10:00')
            self.assertEqual(result['count'], 2)
            recipients = sorted(row.user_id for row in db.query(Notification).all())
            self.assertEqual(recipients, sorted(self.teacher_ids))
        finally:
            db.close()

    def test_broadcast_to_empty_role_sends_nothing(self):
        db = self._session_factory()
        try:
            result = broadcast_to_role(db, role_name='LEGAL_GUARDIAN', title='Aviso', message='Hola')
            self.assertEqual(result['count'], 0)
            self.assertEqual(db.query(Notification).count(), 0)
            with self.assertRaises(NotFoundError):
                broadcast_to_role(db, role_name='JANITOR', title='Aviso', message='Hola')
        finally:
            db.close()

    def test_bulk_send_rejects_unknown_users_without_writing(self):
        db = self._session_factory()
        try:
            with self.assertRaises(NotFoundError):
                notify_users(db, user_ids=[self.admin_id, 4242], title='Aviso', message='Hola')
            self.assertEqual(db.query(Notification).count(), 0)
            result = notify_users(db, user_ids=[self.admin_id, self.admin_id], title='Aviso', message='Hola')
            self.assertEqual(result['count'], 1)
        finally:
            db.close()

    def test_content_and_type_are_validated(self):
        db = self._session_factory()
        try:
            with self.assertRaises(ValidationError):
                notify_user(db, user_id=self.admin_id, title='  ', message='Hola')
            with self.assertRaises(ValidationError):
                notify_user(db, user_id=self.admin_id, title='Aviso', message='Hola', notification_type='URGENT')
            row = notify_user(db, user_id=self.admin_id, title='Aviso', message='Hola', notification_type='warning')
            self.assertEqual(row.type, 'WARNING')
        finally:
            db.close()

    def test_read_marks_are_scoped_to_owner(self):
        db = self._session_factory()
        try:
            mine = notify_user(db, user_id=self.teacher_ids[0], title='Uno', message='a')
            notify_user(db, user_id=self.teacher_ids[0], title='Dos', message='b')
            theirs = notify_user(db, user_id=self.teacher_ids[1], title='Tres', message='c')

            with self.assertRaises(NotFoundError):
                mark_as_read(db, notification_id=theirs.id, user_id=self.teacher_ids[0])
            self.assertTrue(mark_as_read(db, notification_id=mine.id, user_id=self.teacher_ids[0]).is_read)
            self.assertEqual(list_my_notifications(db, user_id=self.teacher_ids[0])['unread_count'], 1)

            result = mark_all_as_read(db, user_id=self.teacher_ids[0])
            self.assertEqual(result['updated'], 1)
            self.assertEqual(list_my_notifications(db, user_id=self.teacher_ids[0])['unread_count'], 0)
            self.assertEqual(list_my_notifications(db, user_id=self.teacher_ids[1])['unread_count'], 1)
        finally:
            db.close()

    def test_api_send_requires_admin_and_lists_for_recipient(self):
        payload = {'user_id': self.teacher_ids[0], 'title': 'Aviso', 'message': 'Hola', 'type': 'SUCCESS'}
        denied = self.client.post(
            '/notifications/send', json=payload, headers={'Authorization': f'Bearer {self.teacher_token}'}
        )
        self.assertEqual(denied.status_code, 403)
        self.assertEqual(denied.json(), {'message': 'Insufficient permissions'})

        sent = self.client.post(
            '/notifications/send', json=payload, headers={'Authorization': f'Bearer {self.admin_token}'}
        )
        self.assertEqual(sent.status_code, 201)
        self.assertEqual(sent.json()['type'], 'SUCCESS')

        inbox = self.client.get('/notifications', headers={'Authorization': f'Bearer {self.teacher_token}'})
        self.assertEqual(inbox.status_code, 200)
        self.assertEqual(inbox.json()['unread_count'], 1)
        self.assertEqual(inbox.json()['notifications'][0]['title'], 'Aviso')

        missing = self.client.patch('/notifications/9999/read', headers={'Authorization': f'Bearer {self.teacher_token}'})
        self.assertEqual(missing.status_code, 404)


if __name__ == '__main__':
    unittest.main()
