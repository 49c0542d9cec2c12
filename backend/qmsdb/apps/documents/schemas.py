from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    document_type: str = Field(..., min_length=1, max_length=64)
    category: str = Field(..., min_length=1, max_length=128)
    version: str = "1.0"
    compliance_required: bool = False
    owner_id: Optional[str] = None
    group_ids: List[str] = Field(default_factory=list)


class DocumentUpdate(BaseModel):
    """Draft edits. Only the fields present in the request are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    document_type: Optional[str] = Field(default=None, min_length=1, max_length=64)
    category: Optional[str] = Field(default=None, min_length=1, max_length=128)
    owner_id: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class DocumentOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    document_type: str
    category: str
    version: str
    status: str
    compliance_required: bool
    owner_id: str
    creator_id: str
    approved_by_id: Optional[str] = None
    approved_at: Optional[datetime] = None
    previous_version_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentIdOut(BaseModel):
    document_id: str
    status: str
    version: str


# Text fields are optional here so a missing value reaches the workflow
# payload and comes back as a 400 naming the field.


class SubmitForReviewIn(BaseModel):
    note: Optional[str] = None


class ApproveIn(BaseModel):
    comments: Optional[str] = None


class RejectIn(BaseModel):
    reason: Optional[str] = None


class RequestChangesIn(BaseModel):
    changes: Optional[str] = None


class ObsoleteIn(BaseModel):
    note: Optional[str] = None


class GroupAssignmentIn(BaseModel):
    group_ids: List[str] = Field(default_factory=list)


class ComplianceRequiredIn(BaseModel):
    compliance_required: bool


class ComplianceStatusOut(BaseModel):
    document_id: str
    user_id: str
    is_compliant: bool
    requires_acknowledgement: bool
    current_version: str
    acknowledged_version: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


class AcknowledgementOut(BaseModel):
    document_id: str
    user_id: str
    acknowledged_version: str
    acknowledged_at: datetime

    class Config:
        from_attributes = True


class ComplianceUserOut(BaseModel):
    user_id: str
    acknowledged_version: Optional[str] = None
    acknowledged_at: Optional[datetime] = None


class ComplianceReportOut(BaseModel):
    document_id: str
    current_version: str
    total_users_required: int
    acknowledged_count: int
    pending_count: int
    acknowledged_users: List[ComplianceUserOut] = Field(default_factory=list)
    pending_users: List[ComplianceUserOut] = Field(default_factory=list)


class ComplianceDocumentOut(DocumentOut):
    is_acknowledged: bool
    acknowledged_at: Optional[datetime] = None
