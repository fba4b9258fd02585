from __future__ import annotations

import logging
import secrets
from datetime import date

from sqlalchemy import or_
from sqlalchemy.orm import Session

from techschool.core.errors import ConflictError, NotFoundError, ValidationError
from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import Agreement, DiscountType, School


logger = logging.getLogger(__name__)

_SCHOOL_FIELDS = ('name', 'sie_code', 'director_name', 'address', 'district', 'city', 'phone', 'email', 'contact_person')
_AGREEMENT_FIELDS = ('name', 'discount_type', 'discount_value', 'start_date', 'end_date', 'notes', 'is_active')


def _unique_code(db: Session, model, prefix: str, digits: int) -> str:
    upper = 10 ** digits
    lower = 10 ** (digits - 1)
    for _ in range(20):
        candidate = f'{prefix}-{secrets.randbelow(upper - lower) + lower}'
        if not db.query(model.id).filter(model.code == candidate).first():
            return candidate
    raise ConflictError('Could not generate a unique code')


def _ensure_sie_code_free(db: Session, sie_code: str | None, exclude_id: int | None = None) -> None:
    if not sie_code:
        return
    query = db.query(School.id).filter(School.sie_code == sie_code)
    if exclude_id is not None:
        query = query.filter(School.id != exclude_id)
    if query.first():
        raise ConflictError('School with this SIE code already exists')


def list_schools(db: Session, *, search: str | None = None) -> list[School]:
    query = db.query(School).filter(School.is_active.is_(True))
    if search and search.strip():
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(School.name.ilike(pattern), School.code.ilike(pattern)))
    return query.order_by(School.name.asc()).all()


def get_school(db: Session, school_id: int) -> School:
    school = db.query(School).filter(School.id == school_id).first()
    if not school:
        raise NotFoundError('School not found')
    return school


def create_school(db: Session, *, time_provider: TimeProvider = default_time_provider, **fields) -> School:
    name = (fields.get('name') or '').strip()
    if not name:
        raise ValidationError('School name is required')
    sie_code = (fields.get('sie_code') or '').strip() or None
    _ensure_sie_code_free(db, sie_code)

    school = School(
        code=_unique_code(db, School, f'SCH-{time_provider.today().year}', 4),
        **{key: fields.get(key) or '' for key in _SCHOOL_FIELDS if key not in ('name', 'sie_code')},
    )
    school.name = name
    school.sie_code = sie_code
    db.add(school)
    db.commit()
    db.refresh(school)
    logger.info('school_created school_id=%s code=%s', school.id, school.code)
    return school


def update_school(db: Session, school_id: int, **changes) -> School:
    school = get_school(db, school_id)
    if changes.get('sie_code'):
        _ensure_sie_code_free(db, changes['sie_code'], exclude_id=school.id)
    for field_name in _SCHOOL_FIELDS:
        value = changes.get(field_name)
        if value is not None:
            setattr(school, field_name, value)
    db.commit()
    db.refresh(school)
    return school


def deactivate_school(db: Session, school_id: int) -> dict:
    school = get_school(db, school_id)
    school.is_active = False
    db.commit()
    logger.info('school_deactivated school_id=%s', school.id)
    return {'message': 'School deleted successfully'}


def _schools_by_ids(db: Session, school_ids: list[int]) -> list[School]:
    unique_ids = list(dict.fromkeys(int(school_id) for school_id in school_ids))
    if not unique_ids:
        return []
    schools = db.query(School).filter(School.id.in_(unique_ids)).all()
    if len(schools) != len(unique_ids):
        raise NotFoundError('One or more schools not found')
    return schools


def _check_agreement_terms(agreement: Agreement) -> None:
    if agreement.discount_type not in {item.value for item in DiscountType}:
        raise ValidationError(f'Invalid discount type: {agreement.discount_type}')
    if agreement.discount_value < 0:
        raise ValidationError('Discount value cannot be negative')
    if agreement.discount_type == DiscountType.PERCENTAGE.value and agreement.discount_value > 100:
        raise ValidationError('Percentage discount cannot exceed 100')
    if agreement.end_date and agreement.end_date < agreement.start_date:
        raise ValidationError('End date cannot be before start date')


def list_agreements(db: Session, *, search: str | None = None, is_active: bool | None = None) -> list[Agreement]:
    query = db.query(Agreement)
    if is_active is not None:
        query = query.filter(Agreement.is_active.is_(is_active))
    if search and search.strip():
        pattern = f'%{search.strip()}%'
        query = query.filter(or_(Agreement.name.ilike(pattern), Agreement.code.ilike(pattern)))
    return query.order_by(Agreement.created_at.desc(), Agreement.id.desc()).all()


def get_agreement(db: Session, agreement_id: int) -> Agreement:
    agreement = db.query(Agreement).filter(Agreement.id == agreement_id).first()
    if not agreement:
        raise NotFoundError('Agreement not found')
    return agreement


def create_agreement(
    db: Session,
    *,
    name: str,
    discount_type: str,
    discount_value: float,
    start_date: date,
    end_date: date | None = None,
    notes: str = '',
    school_ids: list[int] | None = None,
    time_provider: TimeProvider = default_time_provider,
) -> Agreement:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Agreement name is required')
    agreement = Agreement(
        name=clean_name,
        code=_unique_code(db, Agreement, f'AG-{time_provider.today().year}', 6),
        discount_type=discount_type,
        discount_value=float(discount_value),
        start_date=start_date,
        end_date=end_date,
        notes=notes or '',
        is_active=True,
    )
    _check_agreement_terms(agreement)
    agreement.schools = _schools_by_ids(db, school_ids or [])
    db.add(agreement)
    db.commit()
    db.refresh(agreement)
    logger.info('agreement_created agreement_id=%s code=%s schools=%s', agreement.id, agreement.code, len(agreement.schools))
    return agreement


def update_agreement(db: Session, agreement_id: int, *, school_ids: list[int] | None = None, **changes) -> Agreement:
    agreement = get_agreement(db, agreement_id)
    try:
        for field_name in _AGREEMENT_FIELDS:
            value = changes.get(field_name)
            if value is not None:
                setattr(agreement, field_name, value)
        _check_agreement_terms(agreement)
        if school_ids is not None:
            agreement.schools = _schools_by_ids(db, school_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(agreement)
    return agreement


def deactivate_agreement(db: Session, agreement_id: int) -> dict:
    agreement = get_agreement(db, agreement_id)
    agreement.is_active = False
    db.commit()
    logger.info('agreement_deactivated agreement_id=%s', agreement.id)
    return {'message': 'Agreement deleted successfully'}


def agreement_applies(agreement: Agreement | None, on_date: date) -> bool:
    if agreement is None or not agreement.is_active:
        return False
    if agreement.start_date and on_date < agreement.start_date:
        return False
    if agreement.end_date and on_date > agreement.end_date:
        return False
    return True


def apply_discount(base_price: float, agreement: Agreement | None, on_date: date) -> tuple[float, float]:
    """Returns (agreed_price, discount_percentage)."""
    if base_price <= 0 or not agreement_applies(agreement, on_date):
        return round(base_price, 2), 0.0
    value = float(agreement.discount_value or 0.0)
    if agreement.discount_type == DiscountType.FIXED_AMOUNT.value:
        price = max(0.0, base_price - value)
        percentage = min(100.0, value / base_price * 100)
    else:
        percentage = min(100.0, value)
        price = base_price * (1 - percentage / 100)
    return round(price, 2), round(percentage, 2)
