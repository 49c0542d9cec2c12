from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Dict

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"

from qmsdb.database import Base  # noqa: E402
from qmsdb.apps.accounts import models as account_models  # noqa: E402
from qmsdb.apps.documents import models as document_models  # noqa: E402
from qmsdb.apps.audits import models as audit_models  # noqa: E402
from qmsdb.apps.revisions import models as revision_models  # noqa: E402
from qmsdb.apps.workflow.actions import Actor  # noqa: E402
from qmsdb.security import actor_from_user  # noqa: E402

TABLES = [
    account_models.User.__table__,
    account_models.UserGroup.__table__,
    account_models.UserGroupMember.__table__,
    document_models.Document.__table__,
    document_models.DocumentGroup.__table__,
    document_models.ComplianceAcknowledgement.__table__,
    audit_models.Audit.__table__,
    revision_models.Revision.__table__,
]


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine, tables=TABLES)
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def session_factory(tmp_path):
    """
    Sessions on a shared file-backed database, for tests that need more than
    one connection (stale reads, concurrent writers).
    """
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'workflow.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    factory = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        engine.dispose()


def make_user(db, *, email: str, role: account_models.AccountRole, is_superuser: bool = False) -> account_models.User:
    user = account_models.User(
        email=email,
        full_name=email.split("@")[0].title(),
        role=role,
        is_active=True,
        is_superuser=is_superuser,
    )
    db.add(user)
    db.commit()
    return user


def seed_users(db) -> Dict[str, Actor]:
    roles = account_models.AccountRole
    users = {
        "admin": make_user(db, email="admin@example.com", role=roles.ADMIN),
        "manager": make_user(db, email="manager@example.com", role=roles.MANAGER),
        "auditor": make_user(db, email="auditor@example.com", role=roles.AUDITOR),
        "author": make_user(db, email="author@example.com", role=roles.USER),
        "reader": make_user(db, email="reader@example.com", role=roles.USER),
        "viewer": make_user(db, email="viewer@example.com", role=roles.VIEWER),
        "root": make_user(db, email="root@example.com", role=roles.VIEWER, is_superuser=True),
    }
    return {name: actor_from_user(user) for name, user in users.items()}


@pytest.fixture()
def actors(db_session) -> Dict[str, Actor]:
    return seed_users(db_session)


@pytest.fixture()
def factory_actors(session_factory) -> Dict[str, Actor]:
    db = session_factory()
    try:
        return seed_users(db)
    finally:
        db.close()
