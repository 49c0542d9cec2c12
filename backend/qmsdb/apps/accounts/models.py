# backend/qmsdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from qmsdb.database import Base
from qmsdb.utils.identifiers import generate_user_id, generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Roles used by the approval policies.

    Values are the lowercase names stored by the legacy QMS, so actor role
    sets can be compared with plain strings.
    """

    SUPERUSER = "superuser"   # Full system access
    ADMIN = "admin"
    MANAGER = "manager"       # Approves documents, signs off audits
    AUDITOR = "auditor"       # Conducts audits
    USER = "user"             # Creates and edits documents
    VIEWER = "viewer"         # Read-only


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Portal user. Authentication lives outside this service; the row is
    what a token's `sub` claim resolves to.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_user_id)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)

    role = Column(
        Enum(AccountRole, name="account_role_enum", native_enum=False),
        nullable=False,
        default=AccountRole.USER,
        index=True,
    )

    is_active = Column(Boolean, nullable=False, default=True)
    is_superuser = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    memberships = relationship(
        "UserGroupMember",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} role={self.role}>"


class UserGroup(Base):
    """
    Named group of users. Documents are assigned to groups; the members of
    those groups form the document's compliance roster.
    """

    __tablename__ = "user_groups"

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    name = Column(String(128), nullable=False, unique=True)
    description = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    members = relationship(
        "UserGroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class UserGroupMember(Base):
    __tablename__ = "user_group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_user_group_members_group_user"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    group_id = Column(String(36), ForeignKey("user_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    added_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    group = relationship("UserGroup", back_populates="members")
    user = relationship("User", back_populates="memberships")
