from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from qmsdb.apps.accounts import services as account_services
from qmsdb.apps.revisions import services as revision_services
from qmsdb.apps.revisions.models import Revision
from qmsdb.apps.workflow import engine
from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.engine import TransitionResult
from qmsdb.apps.workflow.errors import InternalError, ValidationError, missing_field, not_found
from qmsdb.apps.workflow.registry import AUDIT_WORKFLOW
from qmsdb.database import atomic

from . import schemas
from .models import Audit, AuditStatus

logger = logging.getLogger(__name__)

ENTITY_TYPE = AUDIT_WORKFLOW.entity_type

_NOT_NULL_FIELDS = ("title", "scope", "scheduled_date")


def _duplicate_number(audit_number: str) -> ValidationError:
    return ValidationError(
        code="validation_error",
        detail=[{"field": "audit_number", "reason": f"Audit number {audit_number} already exists"}],
    )


def create_audit(db: Session, *, actor: Actor, data: schemas.AuditCreate) -> Audit:
    engine.authorize(actor, AUDIT_WORKFLOW.edit_roles, "create")
    audit_number = data.audit_number.strip()
    if db.query(Audit.id).filter(Audit.audit_number == audit_number).first() is not None:
        raise _duplicate_number(audit_number)

    try:
        with atomic(db):
            lead_auditor_id = (
                account_services.require_user_id(db, data.lead_auditor_id, "lead_auditor_id")
                if data.lead_auditor_id
                else actor.id
            )
            audit = Audit(
                audit_number=audit_number,
                title=data.title.strip(),
                description=data.description,
                audit_type=data.audit_type.strip(),
                scope=data.scope,
                status=AUDIT_WORKFLOW.initial_status,
                lead_auditor_id=lead_auditor_id,
                created_by_id=actor.id,
            )
            if data.scheduled_date is not None:
                audit.scheduled_date = data.scheduled_date
            db.add(audit)
            db.flush()
    except IntegrityError as exc:
        raise _duplicate_number(audit_number) from exc
    except SQLAlchemyError as exc:
        logger.exception("Failed to create audit", extra={"actor_user_id": actor.id, "audit_number": audit_number})
        raise InternalError(code="internal_error", detail=[]) from exc

    logger.info("Audit created", extra={"audit_id": audit.id, "audit_number": audit_number, "actor_user_id": actor.id})
    return audit


def get_audit(db: Session, audit_id: str) -> Audit:
    audit = db.get(Audit, audit_id)
    if audit is None:
        raise not_found("Audit", audit_id)
    return audit


def list_pending_review(db: Session) -> List[Audit]:
    return (
        db.query(Audit)
        .filter(Audit.status == AuditStatus.PENDING_REVIEW.value)
        .order_by(Audit.updated_at.asc())
        .all()
    )


def update_audit(db: Session, *, audit_id: str, actor: Actor, data: schemas.AuditUpdate) -> TransitionResult:
    changes = data.model_dump(exclude_unset=True)
    for name in _NOT_NULL_FIELDS:
        if name in changes and changes[name] is None:
            raise missing_field(name, "must not be null")
    return engine.edit(db, entity_type=ENTITY_TYPE, entity_id=audit_id, actor=actor, changes=changes)


def audit_history(db: Session, audit_id: str) -> List[Revision]:
    get_audit(db, audit_id)
    return revision_services.history(db, entity_type=ENTITY_TYPE, entity_id=audit_id)


def start(db: Session, *, audit_id: str, actor: Actor) -> TransitionResult:
    return engine.start(db, entity_type=ENTITY_TYPE, entity_id=audit_id, actor=actor)


def complete(db: Session, *, audit_id: str, actor: Actor) -> TransitionResult:
    return engine.complete(db, entity_type=ENTITY_TYPE, entity_id=audit_id, actor=actor)


def submit_for_review(db: Session, *, audit_id: str, actor: Actor) -> TransitionResult:
    return engine.submit_for_review(db, entity_type=ENTITY_TYPE, entity_id=audit_id, actor=actor)


def approve(db: Session, *, audit_id: str, actor: Actor, comments: Optional[str] = None) -> TransitionResult:
    return engine.approve(db, entity_type=ENTITY_TYPE, entity_id=audit_id, actor=actor, comments=comments)


def reject(db: Session, *, audit_id: str, actor: Actor, comments: Optional[str]) -> TransitionResult:
    """Rejection comments are mandatory and reported as `comments` when missing."""
    return engine.reject(
        db,
        entity_type=ENTITY_TYPE,
        entity_id=audit_id,
        actor=actor,
        reason=comments,
        field_name="comments",
    )
