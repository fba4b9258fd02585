from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from techschool.core.errors import SERVICE_ERRORS, http_error
from techschool.core.router_guard import require_admin, require_auth_user
from techschool.db import get_db
from techschool.route_logging import EndpointNameRoute
from techschool.schemas import AgreementCreate, AgreementRead, AgreementUpdate
from techschool.services.auth_service import Identity
from techschool.services.school_service import (
    create_agreement,
    deactivate_agreement,
    get_agreement,
    list_agreements,
    update_agreement,
)


router = APIRouter(prefix='/agreements', tags=['Agreements'], route_class=EndpointNameRoute)


@router.get('', response_model=list[AgreementRead])
def list_agreements_api(
    search: str | None = None,
    is_active: bool | None = None,
    _: Identity = Depends(require_auth_user),
    db: Session = Depends(get_db),
):
    return list_agreements(db, search=search, is_active=is_active)


@router.get('/{agreement_id}', response_model=AgreementRead)
def get_agreement_api(agreement_id: int, _: Identity = Depends(require_auth_user), db: Session = Depends(get_db)):
    try:
        return get_agreement(db, agreement_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.post('', response_model=AgreementRead, status_code=201)
def create_agreement_api(payload: AgreementCreate, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return create_agreement(db, **payload.model_dump())
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.put('/{agreement_id}', response_model=AgreementRead)
def update_agreement_api(
    agreement_id: int,
    payload: AgreementUpdate,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return update_agreement(db, agreement_id, **payload.model_dump(exclude_unset=True))
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc


@router.delete('/{agreement_id}')
def delete_agreement_api(agreement_id: int, _: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return deactivate_agreement(db, agreement_id)
    except SERVICE_ERRORS as exc:
        raise http_error(exc) from exc
