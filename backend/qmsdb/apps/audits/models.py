# backend/qmsdb/apps/audits/models.py
from __future__ import annotations

import enum
from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text

from qmsdb.database import Base
from qmsdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditStatus(str, enum.Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class Audit(Base):
    """
    Internal / external audit. After fieldwork the report is submitted for
    sign-off; a manager approves it or rejects it with comments.
    """

    __tablename__ = "audits"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    audit_number = Column(String(64), nullable=False, unique=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    audit_type = Column(String(64), nullable=False)
    scope = Column(Text, nullable=False)
    status = Column(String(32), nullable=False, default=AuditStatus.PLANNED.value, index=True)

    scheduled_date = Column(Date, nullable=False, default=date.today)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    conclusions = Column(Text, nullable=True)

    lead_auditor_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_by_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    reviewer_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_comments = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    def __repr__(self) -> str:
        return f"<Audit id={self.id} number={self.audit_number} status={self.status}>"
