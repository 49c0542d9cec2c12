from __future__ import annotations

import pytest

from qmsdb.apps.documents import services as document_services
from qmsdb.apps.documents.models import Document, DocumentStatus
from qmsdb.apps.documents.schemas import DocumentCreate
from qmsdb.apps.revisions import services as revision_services
from qmsdb.apps.revisions.models import Revision
from qmsdb.apps.workflow import engine
from qmsdb.apps.workflow.actions import Actor, Approve, Reject, RequestChanges
from qmsdb.apps.workflow.enums import WorkflowAction
from qmsdb.apps.workflow.errors import Forbidden, InvalidTransition, NotFoundError, ValidationError
from qmsdb.apps.workflow.registry import AUDIT_WORKFLOW, DOCUMENT_WORKFLOW, WORKFLOWS


def _create_document(db_session, actor: Actor, **overrides) -> Document:
    data = {"title": "Quality Manual", "document_type": "manual", "category": "QMS"}
    data.update(overrides)
    return document_services.create_document(db_session, actor=actor, data=DocumentCreate(**data))


def _ledger(db_session, document_id: str):
    return revision_services.history(db_session, entity_type="document", entity_id=document_id)


def test_registry_declares_document_and_audit_workflows():
    assert set(WORKFLOWS) == {"document", "audit"}
    assert DOCUMENT_WORKFLOW.allowed_actions("draft") == (WorkflowAction.SUBMIT_FOR_REVIEW,)
    assert set(DOCUMENT_WORKFLOW.allowed_actions("review")) == {
        WorkflowAction.APPROVE,
        WorkflowAction.REJECT,
        WorkflowAction.REQUEST_CHANGES,
    }
    assert set(DOCUMENT_WORKFLOW.allowed_actions("approved")) == {
        WorkflowAction.OBSOLETE,
        WorkflowAction.CREATE_NEW_VERSION,
    }
    assert DOCUMENT_WORKFLOW.allowed_actions("obsolete") == ()
    assert AUDIT_WORKFLOW.allowed_actions("approved") == ()


def test_submit_for_review_moves_draft_to_review(db_session, actors):
    document = _create_document(db_session, actors["author"])

    result = engine.submit_for_review(
        db_session, entity_type="document", entity_id=document.id, actor=actors["author"]
    )

    assert result.from_state == "draft"
    assert result.to_state == "review"
    assert db_session.get(Document, document.id).status == "review"
    revisions = _ledger(db_session, document.id)
    assert [(r.revision_number, r.change_type, r.status_before, r.status_after) for r in revisions] == [
        (1, "update", "draft", "review"),
    ]
    assert revisions[0].author_id == actors["author"].id


def test_approve_from_draft_is_invalid_transition(db_session, actors):
    document = _create_document(db_session, actors["author"])

    with pytest.raises(InvalidTransition) as excinfo:
        engine.approve(db_session, entity_type="document", entity_id=document.id, actor=actors["manager"])

    assert excinfo.value.code == "invalid_transition"
    assert excinfo.value.detail[0]["field"] == "status"
    assert db_session.get(Document, document.id).status == "draft"
    assert _ledger(db_session, document.id) == []


def test_approve_stamps_reviewer(db_session, actors):
    document = _create_document(db_session, actors["author"])
    engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])

    result = engine.approve(
        db_session,
        entity_type="document",
        entity_id=document.id,
        actor=actors["manager"],
        comments="looks good",
    )

    assert result.entity.status == "approved"
    assert result.entity.approved_by_id == actors["manager"].id
    assert result.entity.approved_at is not None
    assert result.revision.change_type == "approve"
    assert result.revision.change_description == "looks good"


def test_viewer_cannot_submit(db_session, actors):
    document = _create_document(db_session, actors["author"])

    with pytest.raises(Forbidden) as excinfo:
        engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["viewer"])

    assert excinfo.value.code == "forbidden"
    assert "submit_for_review" in excinfo.value.detail[0]["reason"]
    assert db_session.get(Document, document.id).status == "draft"


def test_author_cannot_approve_but_superuser_can(db_session, actors):
    document = _create_document(db_session, actors["author"])
    engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])

    with pytest.raises(Forbidden):
        engine.approve(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])

    result = engine.approve(db_session, entity_type="document", entity_id=document.id, actor=actors["root"])
    assert result.to_state == "approved"


def test_blank_rejection_reason_fails_before_lookup(db_session, actors):
    with pytest.raises(ValidationError) as excinfo:
        engine.reject(db_session, entity_type="document", entity_id="missing", actor=actors["manager"], reason="  ")

    assert excinfo.value.detail == [{"field": "reason", "reason": "must not be blank"}]


def test_payload_construction_validates_text():
    with pytest.raises(ValidationError):
        Reject(reason="")
    with pytest.raises(ValidationError) as excinfo:
        RequestChanges(changes=None)
    assert excinfo.value.detail[0]["field"] == "changes"
    assert Reject(reason="  out of date  ").reason == "out of date"
    assert Approve().description == "Approved"


def test_unknown_entity_raises_not_found(db_session, actors):
    with pytest.raises(NotFoundError) as excinfo:
        engine.submit_for_review(db_session, entity_type="document", entity_id="nope", actor=actors["author"])

    assert excinfo.value.code == "not_found"


def test_unknown_entity_type_is_rejected(db_session, actors):
    with pytest.raises(ValidationError) as excinfo:
        engine.submit_for_review(db_session, entity_type="supplier", entity_id="x", actor=actors["author"])

    assert excinfo.value.detail[0]["field"] == "entity_type"


def test_obsolete_is_terminal(db_session, actors):
    document = _create_document(db_session, actors["author"])
    engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])
    engine.approve(db_session, entity_type="document", entity_id=document.id, actor=actors["manager"])
    engine.obsolete(db_session, entity_type="document", entity_id=document.id, actor=actors["admin"])

    for call in (
        lambda: engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["admin"]),
        lambda: engine.approve(db_session, entity_type="document", entity_id=document.id, actor=actors["admin"]),
        lambda: engine.obsolete(db_session, entity_type="document", entity_id=document.id, actor=actors["admin"]),
        lambda: engine.create_new_version(db_session, entity_type="document", entity_id=document.id, actor=actors["admin"]),
    ):
        with pytest.raises(InvalidTransition):
            call()

    assert db_session.get(Document, document.id).status == DocumentStatus.OBSOLETE.value
    assert [r.change_type for r in _ledger(db_session, document.id)] == ["update", "approve", "obsolete"]


def test_request_changes_returns_to_draft_with_reason(db_session, actors):
    document = _create_document(db_session, actors["author"])
    engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])

    result = engine.request_changes(
        db_session,
        entity_type="document",
        entity_id=document.id,
        actor=actors["manager"],
        changes="Add the calibration interval table",
    )

    assert result.to_state == "draft"
    assert result.revision.change_type == "request_changes"
    assert result.revision.change_reason == "Add the calibration interval table"


def test_edit_only_in_draft(db_session, actors):
    document = _create_document(db_session, actors["author"])

    result = engine.edit(
        db_session,
        entity_type="document",
        entity_id=document.id,
        actor=actors["author"],
        changes={"title": "Quality Manual rev A", "category": "QMS"},
    )
    assert result.entity.title == "Quality Manual rev A"
    assert result.revision.change_type == "update"
    assert result.revision.status_before == result.revision.status_after == "draft"
    assert result.revision.change_description == "Updated title"

    engine.submit_for_review(db_session, entity_type="document", entity_id=document.id, actor=actors["author"])
    with pytest.raises(InvalidTransition) as excinfo:
        engine.edit(
            db_session,
            entity_type="document",
            entity_id=document.id,
            actor=actors["author"],
            changes={"title": "Sneaky"},
        )
    assert excinfo.value.code == "not_editable"
    assert db_session.get(Document, document.id).title == "Quality Manual rev A"


def test_edit_without_changes_writes_nothing(db_session, actors):
    document = _create_document(db_session, actors["author"])

    result = engine.edit(
        db_session,
        entity_type="document",
        entity_id=document.id,
        actor=actors["author"],
        changes={"title": "Quality Manual"},
    )

    assert result.revision is None
    assert db_session.query(Revision).count() == 0


def test_edit_refuses_status_field(db_session, actors):
    document = _create_document(db_session, actors["author"])

    with pytest.raises(ValidationError) as excinfo:
        engine.edit(
            db_session,
            entity_type="document",
            entity_id=document.id,
            actor=actors["author"],
            changes={"status": "approved"},
        )

    assert excinfo.value.detail[0]["field"] == "status"
    assert db_session.get(Document, document.id).status == "draft"
