from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple

from qmsdb.apps.audits.models import Audit, AuditStatus
from qmsdb.apps.documents.models import Document, DocumentStatus
from qmsdb.apps.documents.versioning import (
    guard_chain_head,
    guard_no_open_version_in_chain,
    guard_single_review_per_chain,
    spawn_next_version,
)

from .enums import ChangeType, WorkflowAction
from .guards import Effect, Guard, guard_required_fields, stamp_review, stamp_time

# Role names match `AccountRole` values; kept as strings so the workflow
# package does not import the accounts app.
AUTHORS = frozenset({"admin", "manager", "auditor", "user"})
APPROVERS = frozenset({"admin", "manager"})
AUDITORS = frozenset({"admin", "manager", "auditor"})


@dataclass(frozen=True)
class Transition:
    to_state: str
    change_type: ChangeType
    roles: FrozenSet[str]
    guards: Tuple[Guard, ...] = ()
    effects: Tuple[Effect, ...] = ()
    # When set, the transition leaves the source row's status alone and
    # creates a new entity in the successor state instead.
    spawn: Optional[Callable[..., Any]] = None


@dataclass(frozen=True)
class WorkflowDefinition:
    entity_type: str
    model: Any
    label: str
    initial_status: str
    terminal_statuses: FrozenSet[str]
    editable_statuses: FrozenSet[str]
    edit_roles: FrozenSet[str]
    transitions: Dict[str, Dict[WorkflowAction, Transition]] = field(default_factory=dict)

    def allowed_actions(self, status: str) -> Tuple[WorkflowAction, ...]:
        return tuple(self.transitions.get(status, {}).keys())


_D = DocumentStatus
_A = AuditStatus

DOCUMENT_WORKFLOW = WorkflowDefinition(
    entity_type="document",
    model=Document,
    label="Document",
    initial_status=_D.DRAFT.value,
    terminal_statuses=frozenset({_D.OBSOLETE.value}),
    editable_statuses=frozenset({_D.DRAFT.value}),
    edit_roles=AUTHORS,
    transitions={
        _D.DRAFT.value: {
            WorkflowAction.SUBMIT_FOR_REVIEW: Transition(
                to_state=_D.REVIEW.value,
                change_type=ChangeType.UPDATE,
                roles=AUTHORS,
                guards=(guard_chain_head, guard_single_review_per_chain),
            ),
        },
        _D.REVIEW.value: {
            WorkflowAction.APPROVE: Transition(
                to_state=_D.APPROVED.value,
                change_type=ChangeType.APPROVE,
                roles=APPROVERS,
                guards=(guard_chain_head,),
                effects=(stamp_review("approved_by_id", "approved_at"),),
            ),
            WorkflowAction.REJECT: Transition(
                to_state=_D.DRAFT.value,
                change_type=ChangeType.REJECT,
                roles=APPROVERS,
                guards=(guard_chain_head,),
            ),
            WorkflowAction.REQUEST_CHANGES: Transition(
                to_state=_D.DRAFT.value,
                change_type=ChangeType.REQUEST_CHANGES,
                roles=APPROVERS,
                guards=(guard_chain_head,),
            ),
        },
        _D.APPROVED.value: {
            WorkflowAction.OBSOLETE: Transition(
                to_state=_D.OBSOLETE.value,
                change_type=ChangeType.OBSOLETE,
                roles=APPROVERS,
                guards=(guard_chain_head,),
            ),
            WorkflowAction.CREATE_NEW_VERSION: Transition(
                to_state=_D.DRAFT.value,
                change_type=ChangeType.VERSION,
                roles=AUTHORS,
                guards=(guard_chain_head, guard_no_open_version_in_chain),
                spawn=spawn_next_version,
            ),
        },
        _D.OBSOLETE.value: {},
    },
)

AUDIT_WORKFLOW = WorkflowDefinition(
    entity_type="audit",
    model=Audit,
    label="Audit",
    initial_status=_A.PLANNED.value,
    terminal_statuses=frozenset({_A.APPROVED.value}),
    editable_statuses=frozenset({_A.PLANNED.value, _A.IN_PROGRESS.value}),
    edit_roles=AUDITORS,
    transitions={
        _A.PLANNED.value: {
            WorkflowAction.START: Transition(
                to_state=_A.IN_PROGRESS.value,
                change_type=ChangeType.UPDATE,
                roles=AUDITORS,
            ),
        },
        _A.IN_PROGRESS.value: {
            WorkflowAction.COMPLETE: Transition(
                to_state=_A.COMPLETED.value,
                change_type=ChangeType.UPDATE,
                roles=AUDITORS,
                guards=(guard_required_fields("conclusions"),),
                effects=(stamp_time("completed_at"),),
            ),
        },
        _A.COMPLETED.value: {
            WorkflowAction.SUBMIT_FOR_REVIEW: Transition(
                to_state=_A.PENDING_REVIEW.value,
                change_type=ChangeType.UPDATE,
                roles=AUDITORS,
            ),
        },
        _A.PENDING_REVIEW.value: {
            WorkflowAction.APPROVE: Transition(
                to_state=_A.APPROVED.value,
                change_type=ChangeType.APPROVE,
                roles=APPROVERS,
                effects=(stamp_review("reviewer_id", "reviewed_at", "review_comments"),),
            ),
            WorkflowAction.REJECT: Transition(
                to_state=_A.REJECTED.value,
                change_type=ChangeType.REJECT,
                roles=APPROVERS,
                effects=(stamp_review("reviewer_id", "reviewed_at", "review_comments"),),
            ),
        },
        _A.REJECTED.value: {
            WorkflowAction.SUBMIT_FOR_REVIEW: Transition(
                to_state=_A.PENDING_REVIEW.value,
                change_type=ChangeType.UPDATE,
                roles=AUDITORS,
            ),
        },
        _A.APPROVED.value: {},
    },
)

WORKFLOWS: Dict[str, WorkflowDefinition] = {
    DOCUMENT_WORKFLOW.entity_type: DOCUMENT_WORKFLOW,
    AUDIT_WORKFLOW.entity_type: AUDIT_WORKFLOW,
}
