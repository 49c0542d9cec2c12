"""
Compliance tracker.

One acknowledgement row per (document, user). The row remembers which
version the user confirmed; whether that still counts is decided at read
time against the document's current version, so a new version needs no
write fan-out to invalidate older acknowledgements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.engine import TransitionResult, edit
from qmsdb.apps.workflow.errors import (
    Forbidden,
    InternalError,
    InvalidTransition,
    ValidationError,
    not_found,
)
from qmsdb.apps.workflow.registry import APPROVERS
from qmsdb.database import atomic

from . import roster, versioning
from .models import ComplianceAcknowledgement, Document, DocumentGroup, DocumentStatus

logger = logging.getLogger(__name__)


@dataclass
class ComplianceStatus:
    document_id: str
    user_id: str
    is_compliant: bool
    requires_acknowledgement: bool
    current_version: str
    acknowledged_version: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


@dataclass
class ComplianceUser:
    user_id: str
    acknowledged_version: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


@dataclass
class ComplianceReport:
    document_id: str
    current_version: str
    acknowledged_users: List[ComplianceUser] = field(default_factory=list)
    pending_users: List[ComplianceUser] = field(default_factory=list)

    @property
    def total_users_required(self) -> int:
        return len(self.acknowledged_users) + len(self.pending_users)

    @property
    def acknowledged_count(self) -> int:
        return len(self.acknowledged_users)

    @property
    def pending_count(self) -> int:
        return len(self.pending_users)


@dataclass
class ComplianceDocument:
    document: Document
    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_document(db: Session, document_id: str) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise not_found("Document", document_id)
    return document


def is_current(ack: Optional[ComplianceAcknowledgement], document: Document) -> bool:
    return ack is not None and ack.acknowledged_version == document.version


def _acknowledge_once(
    db: Session,
    *,
    document_id: str,
    user_id: str,
    ip_address: Optional[str],
    user_agent: Optional[str],
) -> ComplianceAcknowledgement:
    with atomic(db):
        document = _get_document(db, document_id)
        if not document.compliance_required:
            raise ValidationError(
                code="validation_error",
                detail=[{"field": "compliance_required", "reason": "Document does not require compliance acknowledgement"}],
            )
        if not versioning.is_head(db, document):
            raise InvalidTransition(
                code="not_chain_head",
                detail=[{"field": "id", "reason": "Only the current version of a document can be acknowledged"}],
            )
        if document.groups and user_id not in roster.document_roster(db, document_id):
            raise Forbidden(
                code="forbidden",
                detail=[{"field": "user_id", "reason": "User is not in a group assigned to this document"}],
            )

        ack = db.get(ComplianceAcknowledgement, (document_id, user_id))
        if ack is None:
            ack = ComplianceAcknowledgement(document_id=document_id, user_id=user_id)
            db.add(ack)
        ack.acknowledged_version = document.version
        ack.acknowledged_at = _utcnow()
        ack.ip_address = ip_address
        ack.user_agent = user_agent
        db.flush()
    return ack


def acknowledge(
    db: Session,
    *,
    document_id: str,
    user_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ComplianceAcknowledgement:
    """
    Upsert the user's acknowledgement against the document's current
    version. Repeating it overwrites the same row.
    """
    try:
        try:
            ack = _acknowledge_once(
                db, document_id=document_id, user_id=user_id, ip_address=ip_address, user_agent=user_agent
            )
        except IntegrityError:
            # A concurrent first acknowledgement for the same pair inserted
            # the row; the second pass updates it.
            ack = _acknowledge_once(
                db, document_id=document_id, user_id=user_id, ip_address=ip_address, user_agent=user_agent
            )
    except SQLAlchemyError as exc:
        logger.exception(
            "Compliance acknowledgement failed in storage",
            extra={"document_id": document_id, "user_id": user_id},
        )
        raise InternalError(code="internal_error", detail=[]) from exc

    logger.info(
        "Document acknowledged",
        extra={"document_id": document_id, "user_id": user_id, "version": ack.acknowledged_version},
    )
    return ack


def status_for(db: Session, *, document_id: str, user_id: str) -> ComplianceStatus:
    document = _get_document(db, document_id)
    ack = db.get(ComplianceAcknowledgement, (document_id, user_id))
    return ComplianceStatus(
        document_id=document.id,
        user_id=user_id,
        is_compliant=is_current(ack, document),
        requires_acknowledgement=bool(document.compliance_required),
        current_version=document.version,
        acknowledged_version=ack.acknowledged_version if ack else None,
        acknowledged_at=ack.acknowledged_at if ack else None,
    )


def report(db: Session, *, document_id: str, roster_user_ids: Iterable[str]) -> ComplianceReport:
    """
    Split the roster into users holding a current-version acknowledgement
    and everyone else. Stale acknowledgements land in `pending_users` with
    the version they last confirmed.
    """
    document = _get_document(db, document_id)
    required = sorted(set(roster_user_ids))
    acks: Dict[str, ComplianceAcknowledgement] = {}
    if required:
        acks = {
            ack.user_id: ack
            for ack in db.query(ComplianceAcknowledgement)
            .filter(
                ComplianceAcknowledgement.document_id == document.id,
                ComplianceAcknowledgement.user_id.in_(required),
            )
            .all()
        }

    result = ComplianceReport(document_id=document.id, current_version=document.version)
    for user_id in required:
        ack = acks.get(user_id)
        entry = ComplianceUser(
            user_id=user_id,
            acknowledged_version=ack.acknowledged_version if ack else None,
            acknowledged_at=ack.acknowledged_at if ack else None,
        )
        if is_current(ack, document):
            result.acknowledged_users.append(entry)
        else:
            result.pending_users.append(entry)
    return result


def documents_for_user(db: Session, *, user_id: str) -> List[ComplianceDocument]:
    """
    Approved, compliance-required chain heads in the user's groups, each
    flagged with whether the user holds a current-version acknowledgement.
    Pending documents come first, newest first within each half.
    """
    group_ids = roster.user_group_ids(db, user_id)
    if not group_ids:
        return []

    candidates = (
        db.query(Document)
        .join(DocumentGroup, DocumentGroup.document_id == Document.id)
        .filter(
            DocumentGroup.group_id.in_(group_ids),
            Document.compliance_required.is_(True),
            Document.status == DocumentStatus.APPROVED.value,
        )
        .distinct()
        .order_by(Document.created_at.desc())
        .all()
    )
    entries = []
    for document in candidates:
        if not versioning.is_head(db, document):
            continue
        ack = db.get(ComplianceAcknowledgement, (document.id, user_id))
        current = is_current(ack, document)
        entries.append(
            ComplianceDocument(
                document=document,
                is_acknowledged=current,
                acknowledged_at=ack.acknowledged_at if current else None,
            )
        )
    return sorted(entries, key=lambda entry: entry.is_acknowledged)


def pending_for_user(db: Session, *, user_id: str) -> List[Document]:
    return [entry.document for entry in documents_for_user(db, user_id=user_id) if not entry.is_acknowledged]


def set_compliance_required(db: Session, *, document_id: str, actor: Actor, required: bool) -> TransitionResult:
    return edit(
        db,
        entity_type="document",
        entity_id=document_id,
        actor=actor,
        changes={"compliance_required": required},
        roles=APPROVERS,
        allowed_statuses=(
            DocumentStatus.DRAFT.value,
            DocumentStatus.REVIEW.value,
            DocumentStatus.APPROVED.value,
        ),
        description="Compliance acknowledgement " + ("required" if required else "no longer required"),
    )
