# backend/qmsdb/apps/revisions/models.py
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, event

from qmsdb.database import Base
from qmsdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImmutableRevisionError(RuntimeError):
    pass


class Revision(Base):
    """
    Append-only ledger of state-changing actions on workflow-governed
    entities. `revision_number` runs 1..N per (entity_type, entity_id) with
    no gaps; the unique constraint rejects a duplicate number from a racing
    writer.
    """

    __tablename__ = "revisions"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "revision_number", name="uq_revisions_entity_number"),
        Index("ix_revisions_entity", "entity_type", "entity_id"),
        Index("ix_revisions_change_type", "change_type"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=False)
    revision_number = Column(Integer, nullable=False)
    change_type = Column(String(32), nullable=False)
    change_description = Column(Text, nullable=True)
    change_reason = Column(Text, nullable=True)
    status_before = Column(String(32), nullable=True)
    status_after = Column(String(32), nullable=False)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self) -> str:
        return (
            f"<Revision {self.entity_type}:{self.entity_id} #{self.revision_number} "
            f"{self.change_type} {self.status_before}->{self.status_after}>"
        )


@event.listens_for(Revision, "before_update")
def _refuse_update(mapper, connection, target):  # type: ignore[no-redef]
    raise ImmutableRevisionError(f"Revision {target.id} is immutable")


@event.listens_for(Revision, "before_delete")
def _refuse_delete(mapper, connection, target):  # type: ignore[no-redef]
    raise ImmutableRevisionError(f"Revision {target.id} cannot be deleted")
