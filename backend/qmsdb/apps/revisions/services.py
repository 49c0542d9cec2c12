# backend/qmsdb/apps/revisions/services.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def next_revision_number(db: Session, *, entity_type: str, entity_id: str) -> int:
    """
    1 + the highest number already written for the entity.

    Only meaningful inside the transaction that also holds the entity's
    status row (the workflow engine's conditional update), which serialises
    writers on the same entity.
    """
    current = db.execute(
        select(func.max(models.Revision.revision_number)).where(
            models.Revision.entity_type == entity_type,
            models.Revision.entity_id == entity_id,
        )
    ).scalar()
    return (current or 0) + 1


def append(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    change_type: str,
    status_before: Optional[str],
    status_after: str,
    author_id: str,
    description: Optional[str] = None,
    reason: Optional[str] = None,
) -> models.Revision:
    """
    Write one ledger row. Does not commit: the caller's transaction decides
    whether the row and the status change it documents become visible.
    """
    revision = models.Revision(
        entity_type=entity_type,
        entity_id=str(entity_id),
        revision_number=next_revision_number(db, entity_type=entity_type, entity_id=str(entity_id)),
        change_type=change_type,
        change_description=description,
        change_reason=reason,
        status_before=status_before,
        status_after=status_after,
        author_id=author_id,
    )
    db.add(revision)
    db.flush()
    logger.debug(
        "Ledger row appended",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "revision_number": revision.revision_number,
            "change_type": change_type,
        },
    )
    return revision


def history(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    change_type: Optional[str] = None,
) -> List[models.Revision]:
    """Ledger rows for one entity, oldest first."""
    query = db.query(models.Revision).filter(
        models.Revision.entity_type == entity_type,
        models.Revision.entity_id == str(entity_id),
    )
    if change_type:
        query = query.filter(models.Revision.change_type == change_type)
    return query.order_by(models.Revision.revision_number.asc()).all()


def replay_status(revisions: Iterable[models.Revision], initial_status: str) -> str:
    """Fold `status_after` over the ledger; the result must equal the stored status."""
    status = initial_status
    for revision in revisions:
        status = revision.status_after
    return status
