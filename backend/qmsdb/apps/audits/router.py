# backend/qmsdb/apps/audits/router.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from qmsdb.apps.revisions.schemas import RevisionRead
from qmsdb.apps.workflow.actions import Actor
from qmsdb.database import get_db, get_read_db
from qmsdb.security import get_current_actor

from . import schemas, services

router = APIRouter(prefix="/audits", tags=["audits"])


@router.post("/", response_model=schemas.AuditOut, status_code=status.HTTP_201_CREATED)
def create_audit(
    payload: schemas.AuditCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.create_audit(db, actor=actor, data=payload)


@router.get("/pending-review", response_model=List[schemas.AuditOut])
def list_pending_review(
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.list_pending_review(db)


@router.get("/{audit_id}", response_model=schemas.AuditOut)
def get_audit(
    audit_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.get_audit(db, audit_id)


@router.patch("/{audit_id}", response_model=schemas.AuditOut)
def update_audit(
    audit_id: str,
    payload: schemas.AuditUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.update_audit(db, audit_id=audit_id, actor=actor, data=payload).entity


@router.get("/{audit_id}/revisions", response_model=List[RevisionRead])
def list_revisions(
    audit_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.audit_history(db, audit_id)


@router.post("/{audit_id}/start", response_model=schemas.AuditOut)
def start(
    audit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.start(db, audit_id=audit_id, actor=actor).entity


@router.post("/{audit_id}/complete", response_model=schemas.AuditOut)
def complete(
    audit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.complete(db, audit_id=audit_id, actor=actor).entity


@router.post("/{audit_id}/submit-for-review", response_model=schemas.AuditOut)
def submit_for_review(
    audit_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return services.submit_for_review(db, audit_id=audit_id, actor=actor).entity


@router.post("/{audit_id}/approve", response_model=schemas.AuditOut)
def approve(
    audit_id: str,
    payload: Optional[schemas.AuditApproveIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    comments = payload.comments if payload else None
    return services.approve(db, audit_id=audit_id, actor=actor, comments=comments).entity


@router.post("/{audit_id}/reject", response_model=schemas.AuditOut)
def reject(
    audit_id: str,
    payload: Optional[schemas.AuditRejectIn] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    comments = payload.comments if payload else None
    return services.reject(db, audit_id=audit_id, actor=actor, comments=comments).entity
