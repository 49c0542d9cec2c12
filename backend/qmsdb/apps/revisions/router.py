# backend/qmsdb/apps/revisions/router.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qmsdb.apps.accounts.models import AccountRole
from qmsdb.apps.workflow.actions import Actor
from qmsdb.apps.workflow.enums import ChangeType
from qmsdb.database import get_read_db
from qmsdb.security import require_roles

from . import schemas, services

router = APIRouter(prefix="/revisions", tags=["revisions"])


@router.get("/", response_model=List[schemas.RevisionRead])
def list_revisions(
    entity_type: str,
    entity_id: str,
    change_type: Optional[ChangeType] = None,
    db: Session = Depends(get_read_db),
    actor: Actor = Depends(
        require_roles(
            AccountRole.ADMIN,
            AccountRole.MANAGER,
            AccountRole.AUDITOR,
        )
    ),
):
    return services.history(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        change_type=change_type.value if change_type else None,
    )
