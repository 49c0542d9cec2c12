"""
Compliance roster: the users expected to acknowledge a document are the
active members of the user groups assigned to it.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qmsdb.apps.accounts import models as account_models
from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.engine import authorize
from qmsdb.apps.workflow.errors import InternalError, InvalidTransition, ValidationError, not_found
from qmsdb.apps.workflow.registry import APPROVERS
from qmsdb.database import atomic

from .models import Document, DocumentGroup, DocumentStatus

logger = logging.getLogger(__name__)


def group_ids_for(db: Session, document_id: str) -> List[str]:
    rows = (
        db.query(DocumentGroup.group_id)
        .filter(DocumentGroup.document_id == document_id)
        .order_by(DocumentGroup.group_id.asc())
        .all()
    )
    return [row.group_id for row in rows]


def document_roster(db: Session, document_id: str) -> List[str]:
    """Active users in any group assigned to the document, sorted by id."""
    rows = (
        db.query(account_models.User.id)
        .join(account_models.UserGroupMember, account_models.UserGroupMember.user_id == account_models.User.id)
        .join(DocumentGroup, DocumentGroup.group_id == account_models.UserGroupMember.group_id)
        .filter(
            DocumentGroup.document_id == document_id,
            account_models.User.is_active.is_(True),
        )
        .distinct()
        .order_by(account_models.User.id.asc())
        .all()
    )
    return [row.id for row in rows]


def user_group_ids(db: Session, user_id: str) -> List[str]:
    rows = (
        db.query(account_models.UserGroupMember.group_id)
        .filter(account_models.UserGroupMember.user_id == user_id)
        .all()
    )
    return [row.group_id for row in rows]


def validate_group_ids(db: Session, group_ids: Iterable[str]) -> List[str]:
    wanted = sorted(set(group_ids))
    if not wanted:
        return []
    found = {
        row.id
        for row in db.query(account_models.UserGroup.id).filter(account_models.UserGroup.id.in_(wanted)).all()
    }
    missing = [group_id for group_id in wanted if group_id not in found]
    if missing:
        raise ValidationError(
            code="validation_error",
            detail=[{"field": "group_ids", "reason": f"unknown group {group_id}"} for group_id in missing],
        )
    return wanted


def assign_groups(db: Session, *, document_id: str, actor: Actor, group_ids: Iterable[str]) -> List[str]:
    """
    Replace the document's group assignments. Obsolete documents keep the
    roster they had when they were retired.
    """
    authorize(actor, APPROVERS, "assign_groups")
    try:
        with atomic(db):
            document = db.get(Document, document_id)
            if document is None:
                raise not_found("Document", document_id)
            if document.status == DocumentStatus.OBSOLETE.value:
                raise InvalidTransition(
                    code="invalid_transition",
                    detail=[{"field": "status", "reason": "Cannot change groups of an obsolete document"}],
                )

            wanted = validate_group_ids(db, group_ids)
            current = {assignment.group_id: assignment for assignment in document.groups}
            for group_id, assignment in current.items():
                if group_id not in wanted:
                    document.groups.remove(assignment)
            for group_id in wanted:
                if group_id not in current:
                    document.groups.append(DocumentGroup(group_id=group_id))
    except SQLAlchemyError as exc:
        logger.exception(
            "Failed to assign document groups",
            extra={"document_id": document_id, "actor_user_id": actor.id},
        )
        raise InternalError(code="internal_error", detail=[]) from exc

    logger.info(
        "Document groups assigned",
        extra={"document_id": document_id, "group_ids": wanted, "actor_user_id": actor.id},
    )
    return wanted
