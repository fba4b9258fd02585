from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import ScheduleTemplateCreate
from techschool.services.auth_service import Identity
from techschool.services.schedule_template_service import create_template, delete_template, list_templates


router = APIRouter(prefix='/schedule-templates', tags=['Schedule Templates'], route_class=EndpointNameRoute)


@router.get('')
def list_templates_api(_: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return list_templates(db)


@router.post('', status_code=201)
def create_template_api(
    payload: ScheduleTemplateCreate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return create_template(
            db,
            name=payload.name,
            description=payload.description,
            items=[item.model_dump() for item in payload.items],
        )
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{template_id}')
def delete_template_api(template_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return delete_template(db, template_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
