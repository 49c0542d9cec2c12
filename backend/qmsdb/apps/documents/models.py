# backend/qmsdb/apps/documents/models.py
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from qmsdb.database import Base
from qmsdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    OBSOLETE = "obsolete"


class Document(Base):
    """
    Controlled document. Each version is its own row; `previous_version_id`
    links a version to the one it supersedes. A row in `review` status is
    the pending change for its chain.
    """

    __tablename__ = "documents"
    __table_args__ = (
        # At most one successor per version keeps every chain linear.
        Index("uq_documents_previous_version_id", "previous_version_id", unique=True),
        Index("ix_documents_status_updated", "status", "updated_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    document_type = Column(String(64), nullable=False)
    category = Column(String(128), nullable=False)
    version = Column(String(32), nullable=False, default="1.0")
    status = Column(String(32), nullable=False, default=DocumentStatus.DRAFT.value, index=True)
    compliance_required = Column(Boolean, nullable=False, default=False, index=True)

    owner_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    approved_by_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    previous_version_id = Column(
        String(36),
        ForeignKey("documents.id", ondelete="RESTRICT"),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    groups = relationship(
        "DocumentGroup",
        back_populates="document",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Document id={self.id} version={self.version} status={self.status}>"


class DocumentGroup(Base):
    """Assignment of a user group to a document (its compliance audience)."""

    __tablename__ = "document_groups"
    __table_args__ = (
        UniqueConstraint("document_id", "group_id", name="uq_document_groups_document_group"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    group_id = Column(String(36), ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    document = relationship("Document", back_populates="groups")


class ComplianceAcknowledgement(Base):
    """
    A user's read-and-understood confirmation. One row per (document, user);
    acknowledging again overwrites the version and timestamp. Staleness is
    derived at read time by comparing `acknowledged_version` to the
    document's current version.
    """

    __tablename__ = "compliance_acknowledgements"

    document_id = Column(String(36), ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    acknowledged_version = Column(String(32), nullable=False)
    acknowledged_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ComplianceAcknowledgement document={self.document_id} "
            f"user={self.user_id} version={self.acknowledged_version}>"
        )
