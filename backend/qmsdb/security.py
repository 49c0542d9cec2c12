# backend/qmsdb/security.py

"""
Session interface for the workflow backend.

Responsibilities:
- JWT access token creation (dev tooling) and decoding
- FastAPI dependencies for the current user and the current `Actor`
- Role-based access helper for router dependencies

Login itself is handled by the identity provider in front of this service;
all this module needs is a signed token whose `sub` is a `users.id`.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Set, Union

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from qmsdb.apps.accounts import models as account_models
from qmsdb.apps.accounts.models import AccountRole
from qmsdb.apps.workflow.actions import Actor

# Tokens are issued by the identity provider with the same key; the default is for local use only.
SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

_raw_expiry = os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60").strip()
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(_raw_expiry) if _raw_expiry.isdigit() else 60

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(
    *,
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign `data` (which carries `sub`) with an `exp` claim. Used by dev tooling and tests."""
    lifetime = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    """Return the `sub` claim of a valid token, or None."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    return str(subject) if subject is not None else None


def get_user_by_id(
    db: Session,
    user_id: Union[str, int, None],
) -> Optional[account_models.User]:
    if user_id is None:
        return None
    return (
        db.query(account_models.User)
        .filter(account_models.User.id == str(user_id).strip())
        .first()
    )


def actor_from_user(user: account_models.User) -> Actor:
    """
    Snapshot the user's identity and roles. Superusers carry the superuser
    role so every role gate lets them through.
    """
    roles: Set[str] = set()
    if user.role is not None:
        roles.add(AccountRole(user.role).value)
    if getattr(user, "is_superuser", False):
        roles.add(AccountRole.SUPERUSER.value)
    return Actor(id=user.id, roles=frozenset(roles))


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    user_id = decode_subject(token)
    if user_id is None:
        raise _credentials_exception()

    user = get_user_by_id(db, user_id)
    if user is None:
        raise _credentials_exception()
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    """Deactivated accounts keep their ledger history but can no longer act."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    return current_user


def get_current_actor(
    current_user: account_models.User = Depends(get_current_active_user),
) -> Actor:
    return actor_from_user(current_user)


def require_roles(
    *allowed_roles: Union[AccountRole, str],
) -> Callable[[Actor], Actor]:
    """
    Router dependency that yields the current `Actor` when it holds one of
    `allowed_roles` (superusers always pass) and answers 403 otherwise.
    Unknown role names fail at import time.
    """
    wanted: Set[str] = set()
    for role in allowed_roles:
        try:
            wanted.add(AccountRole(role).value)
        except ValueError:
            raise ValueError(f"require_roles() got unknown role {role!r}") from None

    def dependency(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not actor.has_any_role(wanted):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Requires one of roles: " + ", ".join(sorted(wanted)),
            )
        return actor

    return dependency
