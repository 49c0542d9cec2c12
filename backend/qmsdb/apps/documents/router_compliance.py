# backend/qmsdb/apps/documents/router_compliance.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from qmsdb.apps.accounts.models import AccountRole
from qmsdb.apps.workflow.actions import Actor
from qmsdb.database import get_db, get_read_db
from qmsdb.security import get_current_actor, require_roles

from . import compliance, roster, schemas

router = APIRouter(prefix="/documents/compliance", tags=["documents", "compliance"])


def _status_out(result: compliance.ComplianceStatus) -> schemas.ComplianceStatusOut:
    return schemas.ComplianceStatusOut(
        document_id=result.document_id,
        user_id=result.user_id,
        is_compliant=result.is_compliant,
        requires_acknowledgement=result.requires_acknowledgement,
        current_version=result.current_version,
        acknowledged_version=result.acknowledged_version,
        acknowledged_at=result.acknowledged_at,
    )


@router.get("/pending", response_model=List[schemas.DocumentOut])
def list_pending_acknowledgements(
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return compliance.pending_for_user(db, user_id=actor.id)


@router.get("/all", response_model=List[schemas.ComplianceDocumentOut])
def list_compliance_documents(
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return [
        schemas.ComplianceDocumentOut(
            **schemas.DocumentOut.model_validate(entry.document).model_dump(),
            is_acknowledged=entry.is_acknowledged,
            acknowledged_at=entry.acknowledged_at,
        )
        for entry in compliance.documents_for_user(db, user_id=actor.id)
    ]


@router.post("/{document_id}/acknowledge", response_model=schemas.AcknowledgementOut)
def acknowledge(
    document_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return compliance.acknowledge(
        db,
        document_id=document_id,
        user_id=actor.id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/{document_id}/status", response_model=schemas.ComplianceStatusOut)
def get_status(
    document_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(get_current_actor),
):
    return _status_out(compliance.status_for(db, document_id=document_id, user_id=actor.id))


@router.get("/{document_id}/report", response_model=schemas.ComplianceReportOut)
def get_report(
    document_id: str,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(require_roles(AccountRole.ADMIN, AccountRole.MANAGER)),
):
    result = compliance.report(
        db,
        document_id=document_id,
        roster_user_ids=roster.document_roster(db, document_id),
    )
    return schemas.ComplianceReportOut(
        document_id=result.document_id,
        current_version=result.current_version,
        total_users_required=result.total_users_required,
        acknowledged_count=result.acknowledged_count,
        pending_count=result.pending_count,
        acknowledged_users=[schemas.ComplianceUserOut(**vars(user)) for user in result.acknowledged_users],
        pending_users=[schemas.ComplianceUserOut(**vars(user)) for user in result.pending_users],
    )


@router.put("/{document_id}/required", response_model=schemas.ComplianceStatusOut)
def set_required(
    document_id: str,
    payload: schemas.ComplianceRequiredIn,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    compliance.set_compliance_required(
        db,
        document_id=document_id,
        actor=actor,
        required=payload.compliance_required,
    )
    return _status_out(compliance.status_for(db, document_id=document_id, user_id=actor.id))
