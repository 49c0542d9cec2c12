from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class AuditCreate(BaseModel):
    audit_number: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    audit_type: str = Field(..., min_length=1, max_length=64)
    scope: str = Field(..., min_length=1)
    scheduled_date: Optional[date] = None
    lead_auditor_id: Optional[str] = None


class AuditUpdate(BaseModel):
    """Fieldwork edits, allowed while the audit is planned or in progress."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    scope: Optional[str] = Field(default=None, min_length=1)
    scheduled_date: Optional[date] = None
    conclusions: Optional[str] = None


class AuditOut(BaseModel):
    id: str
    audit_number: str
    title: str
    description: Optional[str] = None
    audit_type: str
    scope: str
    status: str
    scheduled_date: date
    completed_at: Optional[datetime] = None
    conclusions: Optional[str] = None
    lead_auditor_id: str
    created_by_id: str
    reviewer_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AuditApproveIn(BaseModel):
    comments: Optional[str] = None


class AuditRejectIn(BaseModel):
    comments: Optional[str] = None
