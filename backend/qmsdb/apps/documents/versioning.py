# backend/qmsdb/apps/documents/versioning.py
"""
Version chain over `documents.previous_version_id`.

A chain is linear: every version has at most one successor (unique index),
so walking forward from any version reaches exactly one head, and walking
backward reaches exactly one root.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from qmsdb.apps.workflow.actions import ActionPayload, Actor
from qmsdb.apps.workflow.errors import InternalError, missing_field, not_found
from qmsdb.apps.workflow.guards import GuardResult

from .models import Document, DocumentGroup, DocumentStatus

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?$")

OPEN_STATUSES = (DocumentStatus.DRAFT.value, DocumentStatus.REVIEW.value)


def parse_version(version: str) -> Tuple[int, int]:
    """
    "1.0" -> (1, 0), "2" -> (2, 0). Anything else is rejected so that
    `next_version` always produces a strictly greater value.
    """
    match = _VERSION_RE.fullmatch((version or "").strip())
    if not match:
        raise missing_field("version", f"unsupported version format: {version!r}")
    return int(match.group(1)), int(match.group(2) or 0)


def next_version(current: str) -> str:
    """Bump the minor component: "1.0" -> "1.1", "1.9" -> "1.10", "2" -> "2.1"."""
    major, minor = parse_version(current)
    return f"{major}.{minor + 1}"


def successor_of(db: Session, document_id: str) -> Optional[Document]:
    return db.query(Document).filter(Document.previous_version_id == document_id).first()


def is_head(db: Session, document: Document) -> bool:
    return successor_of(db, document.id) is None


def _corrupt_chain(document_id: str) -> InternalError:
    logger.error("Version chain cycle detected", extra={"document_id": document_id})
    return InternalError(code="internal_error", detail=[{"field": "previous_version_id", "reason": "corrupt version chain"}])


def head_of(db: Session, document_id: str) -> Document:
    """Current head of the chain containing `document_id`."""
    document = db.get(Document, document_id)
    if document is None:
        raise not_found("Document", document_id)

    seen = {document.id}
    while True:
        nxt = successor_of(db, document.id)
        if nxt is None:
            return document
        if nxt.id in seen:
            raise _corrupt_chain(document_id)
        seen.add(nxt.id)
        document = nxt


def root_of(db: Session, document_id: str) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise not_found("Document", document_id)

    seen = {document.id}
    while document.previous_version_id is not None:
        prev = db.get(Document, document.previous_version_id)
        if prev is None:
            break
        if prev.id in seen:
            raise _corrupt_chain(document_id)
        seen.add(prev.id)
        document = prev
    return document


def chain(db: Session, document_id: str) -> List[Document]:
    """Every version in the chain containing `document_id`, oldest first."""
    document = root_of(db, document_id)
    versions = [document]
    seen = {document.id}
    while True:
        nxt = successor_of(db, document.id)
        if nxt is None:
            return versions
        if nxt.id in seen:
            raise _corrupt_chain(document_id)
        seen.add(nxt.id)
        versions.append(nxt)
        document = nxt


# ---------------------------------------------------------------------------
# Guards used by the document workflow
# ---------------------------------------------------------------------------


def guard_chain_head(
    db: Session,
    *,
    entity: Any,
    actor: Actor,
    payload: ActionPayload,
    from_state: str,
    to_state: str,
) -> GuardResult:
    nxt = successor_of(db, entity.id)
    if nxt is not None:
        return [{"field": "id", "reason": f"superseded by version {nxt.version} ({nxt.id})"}]
    return []


def guard_single_review_per_chain(
    db: Session,
    *,
    entity: Any,
    actor: Actor,
    payload: ActionPayload,
    from_state: str,
    to_state: str,
) -> GuardResult:
    for version in chain(db, entity.id):
        if version.id != entity.id and version.status == DocumentStatus.REVIEW.value:
            return [{"field": "status", "reason": f"version {version.version} ({version.id}) is already in review"}]
    return []


def guard_no_open_version_in_chain(
    db: Session,
    *,
    entity: Any,
    actor: Actor,
    payload: ActionPayload,
    from_state: str,
    to_state: str,
) -> GuardResult:
    for version in chain(db, entity.id):
        if version.id != entity.id and version.status in OPEN_STATUSES:
            return [{"field": "status", "reason": f"version {version.version} ({version.id}) is still {version.status}"}]
    return []


# ---------------------------------------------------------------------------
# Spawn hook for `create_new_version`
# ---------------------------------------------------------------------------


def spawn_next_version(
    db: Session,
    *,
    entity: Document,
    actor: Actor,
    payload: ActionPayload,
    now: datetime,
) -> Document:
    """New draft chained to `entity`. Flushed, not committed."""
    successor = Document(
        title=entity.title,
        description=entity.description,
        document_type=entity.document_type,
        category=entity.category,
        version=next_version(entity.version),
        status=DocumentStatus.DRAFT.value,
        compliance_required=entity.compliance_required,
        owner_id=entity.owner_id,
        creator_id=actor.id,
        previous_version_id=entity.id,
        created_at=now,
        updated_at=now,
    )
    db.add(successor)
    for assignment in entity.groups:
        successor.groups.append(DocumentGroup(group_id=assignment.group_id))
    db.flush()
    return successor
