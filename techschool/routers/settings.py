from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import SettingUpdate
from techschool.services.auth_service import Identity
from techschool.services.system_settings_service import get_setting, list_settings, update_setting


router = APIRouter(prefix='/settings', tags=['Settings'], route_class=EndpointNameRoute)


@router.get('')
def list_settings_api(_: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    return list_settings(db)


@router.get('/{key}')
def get_setting_api(key: str, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return get_setting(db, key.upper())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{key}')
def update_setting_api(
    key: str,
    payload: SettingUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_setting(db, key, payload.value)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
