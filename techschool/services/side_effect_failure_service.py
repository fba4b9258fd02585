from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from techschool.core.time_provider import TimeProvider, default_time_provider
from techschool.models import SideEffectFailureLog


logger = logging.getLogger(__name__)


def log_side_effect_failure(
    db: Session,
    *,
    task_name: str,
    entity_type: str,
    entity_id: int | None,
    error_message: str,
    time_provider: TimeProvider = default_time_provider,
) -> None:
    row = SideEffectFailureLog(
        task_name=str(task_name or 'unknown'),
        entity_type=str(entity_type or ''),
        entity_id=int(entity_id) if entity_id is not None else None,
        error_message=str(error_message or '')[:2000],
        created_at=time_provider.utc_now().replace(tzinfo=None),
    )
    try:
        db.add(row)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            'side_effect_failure_log_write_failed',
            extra={'task': task_name, 'entity_type': entity_type, 'entity_id': entity_id},
        )


def run_best_effort(
    db: Session,
    task: Callable[[], object],
    *,
    task_name: str,
    entity_type: str,
    entity_id: int | None,
):
    """Run `task` after the primary commit. Failures are logged, never raised."""
    try:
        return task()
    except Exception as exc:
        db.rollback()
        logger.warning(
            'side_effect_failed task=%s entity_type=%s entity_id=%s error=%s',
            task_name,
            entity_type,
            entity_id,
            exc,
        )
        log_side_effect_failure(
            db,
            task_name=task_name,
            entity_type=entity_type,
            entity_id=entity_id,
            error_message=str(exc),
        )
        return None
