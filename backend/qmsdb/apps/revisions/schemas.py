# backend/qmsdb/apps/revisions/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RevisionRead(BaseModel):
    id: str
    entity_type: str
    entity_id: str
    revision_number: int
    change_type: str
    change_description: Optional[str] = None
    change_reason: Optional[str] = None
    status_before: Optional[str] = None
    status_after: str
    author_id: str
    created_at: datetime

    class Config:
        from_attributes = True
