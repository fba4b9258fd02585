from datetime import date, timedelta
from pathlib import Path
import sys


# Ensure imports work when running this file directly: `python scripts/init_db.py`.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from techschool.core.time_provider import default_time_provider
from techschool.db import Base, SessionLocal, engine
from techschool.models import Course
from techschool.services.bootstrap_service import run_bootstrap
from techschool.services.catalog_service import create_classroom, create_course, create_group, create_level
from techschool.services.enrollment_service import create_enrollment
from techschool.services.people_service import create_student, create_teacher
from techschool.services.school_service import create_agreement, create_school


Base.metadata.create_all(bind=engine)

db = SessionLocal()
try:
    run_bootstrap(db)
    if not db.query(Course).first():
        today = default_time_provider.today()
        create_classroom(db, name='Aula 1', capacity=20, location='Planta baja')

        course = create_course(db, name='Ingles', code='ENG', description='Ingles general', duration_months=12)
        basic = create_level(db, course_id=course.id, name='Basico 1', code='B1', order_index=1, base_price=450.0)
        create_level(db, course_id=course.id, name='Basico 2', code='B2', order_index=2, base_price=500.0)

        teacher = create_teacher(
            db,
            email='docente@escuelatecnica.com',
            first_name='Maria',
            paternal_surname='Quispe',
            maternal_surname='Mamani',
            document_number='4567890',
            hire_date=today,
            contract_type='FULL_TIME',
            specialization='Ingles',
        )
        group = create_group(
            db,
            level_id=basic.id,
            teacher_id=teacher['id'],
            start_date=today,
            end_date=today + timedelta(weeks=12),
            classroom='Aula 1',
        )

        school = create_school(db, name='Unidad Educativa San Andres', sie_code='80730001', city='La Paz')
        create_agreement(
            db,
            name='Convenio San Andres',
            discount_type='PERCENTAGE',
            discount_value=15,
            start_date=today,
            school_ids=[school.id],
        )

        students = [
            ('Ana', 'Condori', '7001001'),
            ('Luis', 'Flores', '7001002'),
            ('Sofia', 'Choque', '7001003'),
        ]
        for first_name, surname, document in students:
            student = create_student(
                db,
                first_name=first_name,
                paternal_surname=surname,
                document_number=document,
                date_of_birth=date(today.year - 15, 6, 1),
                school_id=school.id,
            )
            create_enrollment(db, student_id=student['id'], group_id=group.id)
finally:
    db.close()

print('DB initialized with sample data.')
