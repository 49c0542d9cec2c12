from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from qmsdb.apps.revisions import services as revision_services
from qmsdb.apps.revisions.models import Revision
from qmsdb.database import atomic

from .actions import (
    ActionPayload,
    Actor,
    Approve,
    Complete,
    CreateNewVersion,
    Obsolete,
    Reject,
    RequestChanges,
    Start,
    SubmitForReview,
)
from .enums import ChangeType, WorkflowAction
from .errors import (
    Forbidden,
    InternalError,
    InvalidTransition,
    ValidationError,
    WorkflowError,
    not_found,
)
from .registry import WORKFLOWS, Transition, WorkflowDefinition

logger = logging.getLogger(__name__)

# Columns only the engine writes.
PROTECTED_FIELDS = frozenset({"id", "status", "created_at", "updated_at"})


@dataclass
class TransitionResult:
    """
    Outcome of a committed workflow action.

    `entity` is the row that now carries `to_state`: the source entity for
    ordinary transitions, the newly created successor for spawn transitions.
    """

    entity_type: str
    source_id: str
    entity: Any
    from_state: str
    to_state: str
    revision: Optional[Revision]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_workflow(entity_type: str) -> WorkflowDefinition:
    workflow = WORKFLOWS.get(entity_type)
    if workflow is None:
        raise ValidationError(
            code="validation_error",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )
    return workflow


def load_entity(db: Session, workflow: WorkflowDefinition, entity_id: str) -> Any:
    entity = db.get(workflow.model, entity_id) if entity_id else None
    if entity is None:
        raise not_found(workflow.label, entity_id)
    return entity


def resolve_transition(workflow: WorkflowDefinition, from_state: str, action: WorkflowAction) -> Transition:
    transition = workflow.transitions.get(from_state, {}).get(action)
    if transition is None:
        raise InvalidTransition(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot {action.value} a {workflow.label.lower()} in status {from_state}"}],
        )
    return transition


def authorize(actor: Actor, roles: Iterable[str], action: str) -> None:
    """Pure role check: raises `Forbidden` unless the actor holds one of `roles`."""
    allowed = frozenset(roles)
    if not actor.has_any_role(allowed):
        raise Forbidden(
            code="forbidden",
            detail=[{"field": "role", "reason": f"{action} requires one of roles: {', '.join(sorted(allowed))}"}],
        )


def _action_of(payload: ActionPayload) -> WorkflowAction:
    action = getattr(payload, "action", None)
    if not isinstance(action, WorkflowAction):
        raise ValidationError(
            code="validation_error",
            detail=[{"field": "action", "reason": f"Unsupported action payload {type(payload).__name__}"}],
        )
    return action


def _run_guards(
    db: Session,
    transition: Transition,
    *,
    entity: Any,
    actor: Actor,
    payload: Any,
    from_state: str,
) -> None:
    failures: List[Dict[str, str]] = []
    for guard in transition.guards:
        failures.extend(
            guard(
                db,
                entity=entity,
                actor=actor,
                payload=payload,
                from_state=from_state,
                to_state=transition.to_state,
            )
        )
    if failures:
        raise InvalidTransition(code="missing_requirements", detail=failures)


def _compare_and_swap(
    db: Session,
    workflow: WorkflowDefinition,
    entity: Any,
    expected_status: str,
    values: Dict[str, Any],
) -> None:
    """
    UPDATE ... WHERE id = :id AND status = :expected. Zero rows means another
    writer moved the entity first.
    """
    model = workflow.model
    result = db.execute(
        update(model)
        .where(model.id == entity.id, model.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition(
            code="stale_status",
            detail=[{"field": "status", "reason": f"{workflow.label} {entity.id} is no longer {expected_status}"}],
        )
    for key, value in values.items():
        set_committed_value(entity, key, value)


def _storage_failure(exc: Exception, *, entity_type: str, entity_id: str, action: str, actor: Actor) -> WorkflowError:
    if isinstance(exc, IntegrityError):
        logger.info(
            "Workflow action lost a write race",
            extra={"entity_type": entity_type, "entity_id": entity_id, "action": action, "actor_user_id": actor.id},
        )
        return InvalidTransition(
            code="conflict",
            detail=[{"field": "id", "reason": "A concurrent change was committed first; reload and retry"}],
        )
    logger.exception(
        "Workflow action failed in storage",
        extra={"entity_type": entity_type, "entity_id": entity_id, "action": action, "actor_user_id": actor.id},
    )
    return InternalError(code="internal_error", detail=[])


def perform(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    actor: Actor,
    payload: ActionPayload,
) -> TransitionResult:
    """
    Apply one action as a single unit of work: load, resolve the transition,
    check roles and guards, conditionally update the status, append the
    ledger row, commit. Any failure leaves nothing behind.
    """
    workflow = get_workflow(entity_type)
    action = _action_of(payload)

    try:
        with atomic(db):
            entity = load_entity(db, workflow, entity_id)
            from_state = entity.status
            transition = resolve_transition(workflow, from_state, action)
            authorize(actor, transition.roles, action.value)
            _run_guards(db, transition, entity=entity, actor=actor, payload=payload, from_state=from_state)

            now = _utcnow()
            if transition.spawn is None:
                values: Dict[str, Any] = {"status": transition.to_state, "updated_at": now}
                for effect in transition.effects:
                    values.update(effect(entity, actor=actor, payload=payload, now=now))
                _compare_and_swap(db, workflow, entity, from_state, values)
                target = entity
                revision = revision_services.append(
                    db,
                    entity_type=workflow.entity_type,
                    entity_id=entity.id,
                    change_type=transition.change_type.value,
                    status_before=from_state,
                    status_after=transition.to_state,
                    author_id=actor.id,
                    description=payload.description,
                    reason=payload.reason,
                )
            else:
                # Touch the source under the same status condition so a
                # concurrent transition on it loses the race.
                _compare_and_swap(db, workflow, entity, from_state, {"updated_at": now})
                target = transition.spawn(db, entity=entity, actor=actor, payload=payload, now=now)
                revision = revision_services.append(
                    db,
                    entity_type=workflow.entity_type,
                    entity_id=target.id,
                    change_type=transition.change_type.value,
                    status_before=None,
                    status_after=transition.to_state,
                    author_id=actor.id,
                    description=f"Version {target.version} created from {entity.id} (version {entity.version})",
                    reason=payload.reason,
                )
    except WorkflowError as exc:
        logger.info(
            "Workflow action refused",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action.value,
                "actor_user_id": actor.id,
                "code": exc.code,
            },
        )
        raise
    except SQLAlchemyError as exc:
        raise _storage_failure(exc, entity_type=entity_type, entity_id=entity_id, action=action.value, actor=actor) from exc

    logger.info(
        "Workflow transition applied",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "target_id": target.id,
            "action": action.value,
            "from_state": from_state,
            "to_state": transition.to_state,
            "revision_number": revision.revision_number,
            "actor_user_id": actor.id,
        },
    )
    return TransitionResult(
        entity_type=entity_type,
        source_id=entity_id,
        entity=target,
        from_state=from_state,
        to_state=transition.to_state,
        revision=revision,
    )


def edit(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    actor: Actor,
    changes: Dict[str, Any],
    roles: Optional[Iterable[str]] = None,
    allowed_statuses: Optional[Iterable[str]] = None,
    description: Optional[str] = None,
) -> TransitionResult:
    """
    Change non-status fields of an entity.

    Only allowed while the entity is in one of `allowed_statuses` (defaults
    to the workflow's editable statuses). The write is conditioned on the
    status seen at load time and, when anything actually changed, records an
    `update` ledger row whose before and after status are equal.
    """
    workflow = get_workflow(entity_type)
    for key in changes:
        if key in PROTECTED_FIELDS or not hasattr(workflow.model, key):
            raise ValidationError(
                code="validation_error",
                detail=[{"field": key, "reason": "cannot be changed directly"}],
            )

    statuses = frozenset(allowed_statuses) if allowed_statuses is not None else workflow.editable_statuses
    try:
        with atomic(db):
            entity = load_entity(db, workflow, entity_id)
            from_state = entity.status
            if from_state not in statuses:
                raise InvalidTransition(
                    code="not_editable",
                    detail=[{"field": "status", "reason": f"{workflow.label} cannot be edited in status {from_state}"}],
                )
            authorize(actor, roles if roles is not None else workflow.edit_roles, "edit")

            changed = {key: value for key, value in changes.items() if getattr(entity, key) != value}
            if not changed:
                return TransitionResult(
                    entity_type=entity_type,
                    source_id=entity.id,
                    entity=entity,
                    from_state=from_state,
                    to_state=from_state,
                    revision=None,
                )

            values = dict(changed)
            values["updated_at"] = _utcnow()
            _compare_and_swap(db, workflow, entity, from_state, values)
            revision = revision_services.append(
                db,
                entity_type=workflow.entity_type,
                entity_id=entity.id,
                change_type=ChangeType.UPDATE.value,
                status_before=from_state,
                status_after=from_state,
                author_id=actor.id,
                description=description or "Updated " + ", ".join(sorted(changed)),
            )
    except WorkflowError as exc:
        logger.info(
            "Workflow edit refused",
            extra={"entity_type": entity_type, "entity_id": entity_id, "actor_user_id": actor.id, "code": exc.code},
        )
        raise
    except SQLAlchemyError as exc:
        raise _storage_failure(exc, entity_type=entity_type, entity_id=entity_id, action="edit", actor=actor) from exc

    logger.info(
        "Workflow entity edited",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "fields": sorted(changed),
            "revision_number": revision.revision_number,
            "actor_user_id": actor.id,
        },
    )
    return TransitionResult(
        entity_type=entity_type,
        source_id=entity.id,
        entity=entity,
        from_state=from_state,
        to_state=from_state,
        revision=revision,
    )


# ---------------------------------------------------------------------------
# Named operations
# ---------------------------------------------------------------------------


def submit_for_review(db: Session, *, entity_type: str, entity_id: str, actor: Actor, note: Optional[str] = None) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=SubmitForReview(note=note))


def approve(db: Session, *, entity_type: str, entity_id: str, actor: Actor, comments: Optional[str] = None) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=Approve(comments=comments))


def reject(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    actor: Actor,
    reason: Optional[str],
    field_name: str = "reason",
) -> TransitionResult:
    payload = Reject(reason=reason or "", field_name=field_name)
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=payload)


def request_changes(db: Session, *, entity_type: str, entity_id: str, actor: Actor, changes: Optional[str]) -> TransitionResult:
    payload = RequestChanges(changes=changes or "")
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=payload)


def obsolete(db: Session, *, entity_type: str, entity_id: str, actor: Actor, note: Optional[str] = None) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=Obsolete(note=note))


def create_new_version(db: Session, *, entity_type: str, entity_id: str, actor: Actor) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=CreateNewVersion())


def start(db: Session, *, entity_type: str, entity_id: str, actor: Actor) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=Start())


def complete(db: Session, *, entity_type: str, entity_id: str, actor: Actor) -> TransitionResult:
    return perform(db, entity_type=entity_type, entity_id=entity_id, actor=actor, payload=Complete())
