from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Request

from techschool.config import settings
from techschool.core.errors import install_error_handlers
from techschool.db import Base, SessionLocal, engine
from techschool.request_context import REQUEST_ID_HEADER
from techschool.route_logging import EndpointNameRoute
from techschool.routers import (
    academic,
    agreements,
    attendance,
    auth,
    classrooms,
    enrollments,
    grades,
    groups,
    guardian_portal,
    notifications,
    schedule_templates,
    schools,
    stats,
    student_portal,
    students,
    teachers,
    users,
)
from techschool.routers import settings as system_settings
from techschool.services.bootstrap_service import run_bootstrap

logging.basicConfig(
    level=getattr(logging, (settings.log_level or 'INFO').upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        run_bootstrap(db)
    finally:
        db.close()
    yield


app = FastAPI(title=settings.app_name, version='1.0.0', lifespan=lifespan)
app.router.route_class = EndpointNameRoute
install_error_handlers(app)


@app.middleware('http')
async def slow_request_logger(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000.0
    if duration_ms >= settings.request_slow_ms:
        logging.getLogger('techschool.request').info(
            'request_slow path=%s method=%s status_code=%s duration_ms=%.2f request_id=%s',
            request.url.path,
            request.method,
            response.status_code,
            duration_ms,
            response.headers.get(REQUEST_ID_HEADER, '-'),
        )
    return response


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(schools.router)
app.include_router(agreements.router)
app.include_router(classrooms.router)
app.include_router(schedule_templates.router)
app.include_router(academic.router)
app.include_router(groups.router)
app.include_router(students.router)
app.include_router(teachers.router)
app.include_router(enrollments.router)
app.include_router(attendance.router)
app.include_router(grades.router)
app.include_router(notifications.router)
app.include_router(system_settings.router)
app.include_router(stats.router)
app.include_router(student_portal.router)
app.include_router(guardian_portal.router)


@app.get('/')
def health():
    return {'app': settings.app_name, 'status': 'ok'}


@app.get('/health')
def healthcheck():
    return {'status': 'ok'}
