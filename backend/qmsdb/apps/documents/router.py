# backend/qmsdb/apps/documents/router.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from qmsdb.apps.revisions.schemas import RevisionRead
from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.engine import TransitionResult
from qmsdb.apps.workflow.enums import ChangeType
from qmsdb.database import get_db, get_read_db
from qmsdb.security import get_current_actor

from . import roster, schemas, services, versioning
from .models import DocumentStatus

router = APIRouter(prefix="/documents", tags=["documents"])


def _id_out(result: TransitionResult) -> schemas.DocumentIdOut:
    return schemas.DocumentIdOut(
        document_id=result.entity.id,
        status=result.entity.status,
        version=result.entity.version,
    )


@router.post("/", response_model=schemas.DocumentIdOut, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: schemas.DocumentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    document = services.create_document(db, actor=actor, data=payload)
    return schemas.DocumentIdOut(document_id=document.id, status=document.status, version=document.version)


@router.get("/", response_model=List[schemas.DocumentOut])
def list_documents(
    status: Optional[DocumentStatus] = None,
    category: Optional[str] = None,
    document_type: Optional[str] = None,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.list_documents(
        db,
        status=status.value if status else None,
        category=category,
        document_type=document_type,
    )


@router.get("/pending", response_model=List[schemas.DocumentOut])
def list_pending_review(
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.list_pending_review(db)


@router.get("/{document_id}", response_model=schemas.DocumentOut)
def get_document(
    document_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.get_document(db, document_id)


@router.patch("/{document_id}", response_model=schemas.DocumentOut)
def update_document(
    document_id: str,
    payload: schemas.DocumentUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.update_document(db, document_id=document_id, actor=actor, data=payload).entity


@router.get("/{document_id}/chain", response_model=List[schemas.DocumentOut])
def get_chain(
    document_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return versioning.chain(db, document_id)


@router.get("/{document_id}/head", response_model=schemas.DocumentOut)
def get_head(
    document_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return versioning.head_of(db, document_id)


@router.get("/{document_id}/revisions", response_model=List[RevisionRead])
def list_revisions(
    document_id: str,
    change_type: Optional[ChangeType] = None,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.document_history(
        db,
        document_id,
        change_type=change_type.value if change_type else None,
    )


@router.put("/{document_id}/groups", response_model=schemas.GroupAssignmentIn)
def assign_groups(
    document_id: str,
    payload: schemas.GroupAssignmentIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    group_ids = roster.assign_groups(db, document_id=document_id, actor=actor, group_ids=payload.group_ids)
    return schemas.GroupAssignmentIn(group_ids=group_ids)


# ---------------------------------------------------------------------------
# Workflow actions
# ---------------------------------------------------------------------------


@router.post("/{document_id}/submit", response_model=schemas.DocumentIdOut)
def submit_for_review(
    document_id: str,
    payload: Optional[schemas.SubmitForReviewIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    note = payload.note if payload else None
    return _id_out(services.submit_for_review(db, document_id=document_id, actor=actor, note=note))


@router.post("/{document_id}/approve", response_model=schemas.DocumentIdOut)
def approve(
    document_id: str,
    payload: Optional[schemas.ApproveIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    comments = payload.comments if payload else None
    return _id_out(services.approve(db, document_id=document_id, actor=actor, comments=comments))


@router.post("/{document_id}/reject", response_model=schemas.DocumentIdOut)
def reject(
    document_id: str,
    payload: Optional[schemas.RejectIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    reason = payload.reason if payload else None
    return _id_out(services.reject(db, document_id=document_id, actor=actor, reason=reason))


@router.post("/{document_id}/request-changes", response_model=schemas.DocumentIdOut)
def request_changes(
    document_id: str,
    payload: Optional[schemas.RequestChangesIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    changes = payload.changes if payload else None
    return _id_out(services.request_changes(db, document_id=document_id, actor=actor, changes=changes))


@router.post("/{document_id}/obsolete", response_model=schemas.DocumentIdOut)
def obsolete(
    document_id: str,
    payload: Optional[schemas.ObsoleteIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    note = payload.note if payload else None
    return _id_out(services.obsolete(db, document_id=document_id, actor=actor, note=note))


@router.post("/{document_id}/version", response_model=schemas.DocumentIdOut)
def create_new_version(
    document_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return _id_out(services.create_new_version(db, document_id=document_id, actor=actor))
