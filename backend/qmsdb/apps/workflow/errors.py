# backend/qmsdb/apps/workflow/errors.py
"""
Typed failures raised by the workflow engine and the services built on it.

Every error carries a machine-readable `code` and a list of
`{"field": ..., "reason": ...}` items. The HTTP layer maps the class to a
status code in one place (see `qmsdb.apps.workflow.http`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(eq=False)
class WorkflowError(Exception):
    code: str
    detail: List[Dict[str, str]] = field(default_factory=list)

    def __str__(self) -> str:
        reasons = "; ".join(f"{item.get('field')}: {item.get('reason')}" for item in self.detail)
        return f"{self.code} ({reasons})" if reasons else self.code


class ValidationError(WorkflowError):
    """A required field is missing or malformed."""


class NotFoundError(WorkflowError):
    """The entity id does not exist."""


class InvalidTransition(WorkflowError):
    """The entity's current state does not permit the action."""


class Forbidden(WorkflowError):
    """The actor lacks a role the action requires."""


class InternalError(WorkflowError):
    """Storage or transaction failure. Detail is never shown to callers."""


def missing_field(name: str, reason: str = "is required") -> ValidationError:
    return ValidationError(code="validation_error", detail=[{"field": name, "reason": reason}])


def not_found(label: str, entity_id: str) -> NotFoundError:
    return NotFoundError(code="not_found", detail=[{"field": "id", "reason": f"{label} {entity_id} not found"}])
