# backend/qmsdb/apps/workflow/guards.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from .actions import ActionPayload, Actor

GuardResult = List[Dict[str, str]]

# guard(db, *, entity, actor, payload, from_state, to_state) -> GuardResult
Guard = Callable[..., GuardResult]

# effect(entity, *, actor, payload, now) -> column values written with the status
Effect = Callable[..., Dict[str, Any]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def guard_required_fields(*names: str) -> Guard:
    """
    Build a guard that refuses the transition while any of `names` is empty
    on the entity.
    """

    def guard(
        db: Session,
        *,
        entity: Any,
        actor: Actor,
        payload: ActionPayload,
        from_state: str,
        to_state: str,
    ) -> GuardResult:
        missing = []
        for name in names:
            value = _get_value(entity, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append({"field": name, "reason": f"required before moving to {to_state}"})
        return missing

    return guard


def stamp_review(
    reviewer_column: str,
    reviewed_at_column: str,
    comments_column: Optional[str] = None,
) -> Effect:
    """
    Build an effect that records who signed off and when, in the same
    conditional update that moves the status.
    """

    def effect(entity: Any, *, actor: Actor, payload: ActionPayload, now: datetime) -> Dict[str, Any]:
        values: Dict[str, Any] = {reviewer_column: actor.id, reviewed_at_column: now}
        if comments_column:
            values[comments_column] = _get_value(payload, "comments") or _get_value(payload, "reason")
        return values

    return effect


def stamp_time(column: str) -> Effect:
    def effect(entity: Any, *, actor: Actor, payload: ActionPayload, now: datetime) -> Dict[str, Any]:
        return {column: now}

    return effect
