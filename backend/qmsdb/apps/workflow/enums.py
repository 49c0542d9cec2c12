# backend/qmsdb/apps/workflow/enums.py
from __future__ import annotations

import enum


class WorkflowAction(str, enum.Enum):
    SUBMIT_FOR_REVIEW = "submit_for_review"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    OBSOLETE = "obsolete"
    CREATE_NEW_VERSION = "create_new_version"
    # Audit fieldwork steps
    START = "start"
    COMPLETE = "complete"


class ChangeType(str, enum.Enum):
    """Ledger change types. Stored as their lowercase value."""

    CREATE = "create"
    UPDATE = "update"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    OBSOLETE = "obsolete"
    VERSION = "version"
