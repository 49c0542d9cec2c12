from __future__ import annotations

import pytest
from pydantic import ValidationError as SchemaValidationError

from qmsdb.apps.documents import router as document_router
from qmsdb.apps.documents import services
from qmsdb.apps.documents.models import Document
from qmsdb.apps.documents.schemas import (
    ApproveIn,
    DocumentCreate,
    DocumentUpdate,
    RejectIn,
    RequestChangesIn,
)
from qmsdb.apps.revisions.models import Revision
from qmsdb.apps.workflow.errors import Forbidden, InvalidTransition, NotFoundError, ValidationError


def _create(db_session, actor, **overrides) -> Document:
    data = {"title": "Control of Nonconforming Product", "document_type": "procedure", "category": "QMS"}
    data.update(overrides)
    return services.create_document(db_session, actor=actor, data=DocumentCreate(**data))


def test_create_document_starts_in_draft_without_ledger_entry(db_session, actors):
    document = _create(db_session, actors["author"])

    assert document.status == "draft"
    assert document.version == "1.0"
    assert document.previous_version_id is None
    assert document.owner_id == document.creator_id == actors["author"].id
    assert db_session.query(Revision).count() == 0


def test_create_document_rejects_bad_version_and_viewer(db_session, actors):
    with pytest.raises(ValidationError) as excinfo:
        _create(db_session, actors["author"], version="draft-one")
    assert excinfo.value.detail[0]["field"] == "version"

    with pytest.raises(Forbidden):
        _create(db_session, actors["viewer"])

    assert db_session.query(Document).count() == 0


def test_scenario_submit_then_approve(db_session, actors):
    document = _create(db_session, actors["author"])

    services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])
    assert db_session.get(Document, document.id).status == "review"

    services.approve(db_session, document_id=document.id, actor=actors["manager"], comments="looks good")
    assert db_session.get(Document, document.id).status == "approved"

    revisions = services.document_history(db_session, document.id)
    assert [(r.change_type, r.status_before, r.status_after) for r in revisions] == [
        ("update", "draft", "review"),
        ("approve", "review", "approved"),
    ]


def test_scenario_blank_rejection_keeps_review(db_session, actors):
    document = _create(db_session, actors["author"])
    services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])

    with pytest.raises(ValidationError) as excinfo:
        services.reject(db_session, document_id=document.id, actor=actors["manager"], reason="")

    assert excinfo.value.detail[0]["field"] == "reason"
    assert db_session.get(Document, document.id).status == "review"
    assert len(services.document_history(db_session, document.id)) == 1


def test_scenario_rejection_with_reason_returns_to_draft(db_session, actors):
    document = _create(db_session, actors["author"])
    services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])

    services.reject(
        db_session,
        document_id=document.id,
        actor=actors["manager"],
        reason="missing clause 8.2 reference",
    )

    assert db_session.get(Document, document.id).status == "draft"
    last = services.document_history(db_session, document.id)[-1]
    assert last.change_type == "reject"
    assert last.status_before == "review"
    assert last.status_after == "draft"
    assert last.change_reason == "missing clause 8.2 reference"


def test_pending_review_lists_documents_in_review(db_session, actors):
    in_review = _create(db_session, actors["author"], title="Document A")
    _create(db_session, actors["author"], title="Document B")
    services.submit_for_review(db_session, document_id=in_review.id, actor=actors["author"])

    assert [d.id for d in services.list_pending_review(db_session)] == [in_review.id]


def test_list_documents_filters(db_session, actors):
    _create(db_session, actors["author"], title="Manual", document_type="manual", category="QMS")
    procedure = _create(db_session, actors["author"], title="Procedure", document_type="procedure", category="HR")
    services.submit_for_review(db_session, document_id=procedure.id, actor=actors["author"])

    assert [d.title for d in services.list_documents(db_session, category="HR")] == ["Procedure"]
    assert [d.title for d in services.list_documents(db_session, document_type="manual")] == ["Manual"]
    assert [d.title for d in services.list_documents(db_session, status="review")] == ["Procedure"]
    assert len(services.list_documents(db_session)) == 2


def test_update_document_in_draft(db_session, actors):
    document = _create(db_session, actors["author"])

    result = services.update_document(
        db_session,
        document_id=document.id,
        actor=actors["author"],
        data=DocumentUpdate(title="  Control of NC Product  ", description="Scope widened"),
    )

    assert result.entity.title == "Control of NC Product"
    assert result.revision.change_description == "Updated description, title"

    with pytest.raises(ValidationError) as excinfo:
        services.update_document(
            db_session,
            document_id=document.id,
            actor=actors["author"],
            data=DocumentUpdate(title=None),
        )
    assert excinfo.value.detail[0]["field"] == "title"


def test_history_of_unknown_document_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        services.document_history(db_session, "missing")


def test_router_functions_map_bodies_to_actions(db_session, actors):
    created = document_router.create_document(
        DocumentCreate(title="Equipment Register", document_type="register", category="Maintenance"),
        db=db_session,
        actor=actors["author"],
    )
    document_id = created.document_id

    document_router.submit_for_review(document_id, payload=None, db=db_session, actor=actors["author"])

    with pytest.raises(ValidationError) as excinfo:
        document_router.request_changes(document_id, payload=RequestChangesIn(), db=db_session, actor=actors["manager"])
    assert excinfo.value.detail[0]["field"] == "changes"

    with pytest.raises(ValidationError):
        document_router.reject(document_id, payload=None, db=db_session, actor=actors["manager"])

    approved = document_router.approve(
        document_id, payload=ApproveIn(comments="fine"), db=db_session, actor=actors["manager"]
    )
    assert approved.status == "approved"

    with pytest.raises(InvalidTransition):
        document_router.reject(
            document_id, payload=RejectIn(reason="too late"), db=db_session, actor=actors["manager"]
        )

    revisions = document_router.list_revisions(document_id, change_type=None, db=db_session, actor=actors["author"])
    assert [r.revision_number for r in revisions] == [1, 2]


def test_draft_edit_cannot_touch_compliance_flag(db_session, actors):
    document = _create(db_session, actors["author"])

    with pytest.raises(SchemaValidationError):
        DocumentUpdate(compliance_required=True)

    assert db_session.get(Document, document.id).compliance_required is False
    assert services.document_history(db_session, document.id) == []


def test_unknown_owner_is_a_validation_error(db_session, actors):
    with pytest.raises(ValidationError) as excinfo:
        _create(db_session, actors["author"], owner_id="USR-NOBODY01")
    assert excinfo.value.detail == [{"field": "owner_id", "reason": "unknown user"}]
    assert db_session.query(Document).count() == 0

    document = _create(db_session, actors["author"], owner_id=actors["reader"].id)
    assert document.owner_id == actors["reader"].id

    with pytest.raises(ValidationError) as excinfo:
        services.update_document(
            db_session,
            document_id=document.id,
            actor=actors["author"],
            data=DocumentUpdate(owner_id="USR-NOBODY01"),
        )
    assert excinfo.value.detail[0]["field"] == "owner_id"
    assert db_session.get(Document, document.id).owner_id == actors["reader"].id
    assert services.document_history(db_session, document.id) == []
