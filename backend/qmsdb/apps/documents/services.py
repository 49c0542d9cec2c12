from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qmsdb.apps.accounts import services as account_services
from qmsdb.apps.revisions import services as revision_services
from qmsdb.apps.revisions.models import Revision
from qmsdb.apps.workflow import engine
from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.engine import TransitionResult
from qmsdb.apps.workflow.errors import InternalError, missing_field, not_found
from qmsdb.apps.workflow.registry import APPROVERS, DOCUMENT_WORKFLOW
from qmsdb.database import atomic

from . import roster, schemas, versioning
from .models import Document, DocumentGroup, DocumentStatus

logger = logging.getLogger(__name__)

ENTITY_TYPE = DOCUMENT_WORKFLOW.entity_type

# Columns that cannot be cleared by a draft edit.
_NOT_NULL_FIELDS = ("title", "document_type", "category", "owner_id")


def create_document(db: Session, *, actor: Actor, data: schemas.DocumentCreate) -> Document:
    """
    New version-chain root in `draft`. Creation is not a transition, so no
    ledger row is written; the first row is the first workflow action.
    """
    engine.authorize(actor, DOCUMENT_WORKFLOW.edit_roles, "create")
    if data.compliance_required:
        engine.authorize(actor, APPROVERS, "compliance_required")
    version = (data.version or "").strip()
    versioning.parse_version(version)

    try:
        with atomic(db):
            group_ids = roster.validate_group_ids(db, data.group_ids)
            owner_id = account_services.require_user_id(db, data.owner_id, "owner_id") if data.owner_id else actor.id
            document = Document(
                title=data.title.strip(),
                description=data.description,
                document_type=data.document_type.strip(),
                category=data.category.strip(),
                version=version,
                status=DOCUMENT_WORKFLOW.initial_status,
                compliance_required=data.compliance_required,
                owner_id=owner_id,
                creator_id=actor.id,
            )
            for group_id in group_ids:
                document.groups.append(DocumentGroup(group_id=group_id))
            db.add(document)
            db.flush()
    except SQLAlchemyError as exc:
        logger.exception("Failed to create document", extra={"actor_user_id": actor.id, "title": data.title})
        raise InternalError(code="internal_error", detail=[]) from exc

    logger.info(
        "Document created",
        extra={"document_id": document.id, "version": document.version, "actor_user_id": actor.id},
    )
    return document


def get_document(db: Session, document_id: str) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise not_found("Document", document_id)
    return document


def list_documents(
    db: Session,
    *,
    status: Optional[str] = None,
    category: Optional[str] = None,
    document_type: Optional[str] = None,
) -> List[Document]:
    query = db.query(Document)
    if status:
        query = query.filter(Document.status == status)
    if category:
        query = query.filter(Document.category == category)
    if document_type:
        query = query.filter(Document.document_type == document_type)
    return query.order_by(Document.updated_at.desc()).all()


def list_pending_review(db: Session) -> List[Document]:
    """Pending changes: documents currently in `review`, oldest submission first."""
    return (
        db.query(Document)
        .filter(Document.status == DocumentStatus.REVIEW.value)
        .order_by(Document.updated_at.asc())
        .all()
    )


def update_document(db: Session, *, document_id: str, actor: Actor, data: schemas.DocumentUpdate) -> TransitionResult:
    changes = data.model_dump(exclude_unset=True)
    for name in _NOT_NULL_FIELDS:
        if name in changes and changes[name] is None:
            raise missing_field(name, "must not be null")
    for name in ("title", "document_type", "category"):
        if name in changes:
            changes[name] = changes[name].strip()
    if changes.get("owner_id") is not None:
        account_services.require_user_id(db, changes["owner_id"], "owner_id")
    return engine.edit(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, changes=changes)


def document_history(db: Session, document_id: str, *, change_type: Optional[str] = None) -> List[Revision]:
    get_document(db, document_id)
    return revision_services.history(db, entity_type=ENTITY_TYPE, entity_id=document_id, change_type=change_type)


# ---------------------------------------------------------------------------
# Workflow actions
# ---------------------------------------------------------------------------


def submit_for_review(db: Session, *, document_id: str, actor: Actor, note: Optional[str] = None) -> TransitionResult:
    return engine.submit_for_review(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, note=note)


def approve(db: Session, *, document_id: str, actor: Actor, comments: Optional[str] = None) -> TransitionResult:
    return engine.approve(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, comments=comments)


def reject(db: Session, *, document_id: str, actor: Actor, reason: Optional[str]) -> TransitionResult:
    return engine.reject(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, reason=reason)


def request_changes(db: Session, *, document_id: str, actor: Actor, changes: Optional[str]) -> TransitionResult:
    return engine.request_changes(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, changes=changes)


def obsolete(db: Session, *, document_id: str, actor: Actor, note: Optional[str] = None) -> TransitionResult:
    return engine.obsolete(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor, note=note)


def create_new_version(db: Session, *, document_id: str, actor: Actor) -> TransitionResult:
    return engine.create_new_version(db, entity_type=ENTITY_TYPE, entity_id=document_id, actor=actor)
