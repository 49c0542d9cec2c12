# backend/qmsdb/apps/accounts/services.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from qmsdb.apps.workflow.errors import missing_field

from . import models


def get_user_by_id(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def require_user_id(db: Session, user_id: str, field: str) -> str:
    """Return `user_id` if it names a user, else a 400 naming `field`."""
    if get_user_by_id(db, user_id) is None:
        raise missing_field(field, "unknown user")
    return user_id
