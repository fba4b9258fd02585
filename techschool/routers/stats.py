from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.router_guard import require_admin
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.services.auth_service import Identity
from techschool.services.stats_service import revenue_by_course


router = APIRouter(prefix='/stats', tags=['Stats'], route_class=EndpointNameRoute)


@router.get('/financial/revenue-by-course')
def revenue_by_course_api(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    return revenue_by_course(db)
