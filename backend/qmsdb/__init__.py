# backend/qmsdb/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- Foreign keys between apps (documents -> users, revisions -> users)
  resolve regardless of which app is imported first.

The actual model classes are kept in qmsdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users / roles / groups
from .apps.documents import models as documents_models        # documents, groups, acknowledgements
from .apps.audits import models as audits_models              # audit sign-off
from .apps.revisions import models as revisions_models        # append-only ledger

__all__ = [
    "accounts_models",
    "documents_models",
    "audits_models",
    "revisions_models",
]
