# backend/qmsdb/apps/workflow/actions.py
"""
Who is acting, and what they asked for.

`Actor` is passed explicitly into every engine call. The action payloads are
a closed set of small frozen dataclasses; the engine looks up the transition
by the payload's `action` and reads ledger text from `description` / `reason`.
Payloads that need text validate it on construction, so a blank rejection
reason never reaches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, FrozenSet, Iterable, Optional, Union

from .enums import WorkflowAction
from .errors import missing_field

SUPERUSER_ROLE = "superuser"


@dataclass(frozen=True)
class Actor:
    id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def of(cls, user_id: str, *roles: str) -> "Actor":
        return cls(id=user_id, roles=frozenset(roles))

    @property
    def is_superuser(self) -> bool:
        return SUPERUSER_ROLE in self.roles

    def has_any_role(self, allowed: Iterable[str]) -> bool:
        if self.is_superuser:
            return True
        return bool(self.roles.intersection(allowed))


def _require_text(value: Optional[str], name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise missing_field(name, "must not be blank")
    return text


@dataclass(frozen=True)
class SubmitForReview:
    action: ClassVar[WorkflowAction] = WorkflowAction.SUBMIT_FOR_REVIEW
    note: Optional[str] = None

    @property
    def description(self) -> Optional[str]:
        return self.note or "Submitted for review"

    @property
    def reason(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Approve:
    action: ClassVar[WorkflowAction] = WorkflowAction.APPROVE
    comments: Optional[str] = None

    @property
    def description(self) -> Optional[str]:
        return (self.comments or "").strip() or "Approved"

    @property
    def reason(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Reject:
    action: ClassVar[WorkflowAction] = WorkflowAction.REJECT
    reason: str = ""
    field_name: str = field(default="reason", compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "reason", _require_text(self.reason, self.field_name))

    @property
    def description(self) -> Optional[str]:
        return "Rejected"


@dataclass(frozen=True)
class RequestChanges:
    action: ClassVar[WorkflowAction] = WorkflowAction.REQUEST_CHANGES
    changes: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "changes", _require_text(self.changes, "changes"))

    @property
    def description(self) -> Optional[str]:
        return "Changes requested"

    @property
    def reason(self) -> Optional[str]:
        return self.changes


@dataclass(frozen=True)
class Obsolete:
    action: ClassVar[WorkflowAction] = WorkflowAction.OBSOLETE
    note: Optional[str] = None

    @property
    def description(self) -> Optional[str]:
        return self.note or "Marked obsolete"

    @property
    def reason(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class CreateNewVersion:
    action: ClassVar[WorkflowAction] = WorkflowAction.CREATE_NEW_VERSION

    @property
    def description(self) -> Optional[str]:
        return None

    @property
    def reason(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Start:
    action: ClassVar[WorkflowAction] = WorkflowAction.START

    @property
    def description(self) -> Optional[str]:
        return "Fieldwork started"

    @property
    def reason(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Complete:
    action: ClassVar[WorkflowAction] = WorkflowAction.COMPLETE

    @property
    def description(self) -> Optional[str]:
        return "Fieldwork completed"

    @property
    def reason(self) -> Optional[str]:
        return None


ActionPayload = Union[
    SubmitForReview,
    Approve,
    Reject,
    RequestChanges,
    Obsolete,
    CreateNewVersion,
    Start,
    Complete,
]
