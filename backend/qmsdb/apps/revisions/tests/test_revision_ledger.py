from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from qmsdb.apps.documents import services as document_services
from qmsdb.apps.documents.models import Document
from qmsdb.apps.documents.schemas import DocumentCreate
from qmsdb.apps.revisions import services
from qmsdb.apps.revisions.models import ImmutableRevisionError, Revision
from qmsdb.apps.workflow.errors import InvalidTransition, ValidationError


def _cycle_document(db_session, actors) -> Document:
    """draft -> review -> draft (reject) -> review -> draft (changes) -> review -> approved."""
    document = document_services.create_document(
        db_session,
        actor=actors["author"],
        data=DocumentCreate(title="Supplier Evaluation", document_type="procedure", category="Purchasing"),
    )
    document_services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])
    document_services.reject(db_session, document_id=document.id, actor=actors["manager"], reason="Wrong template")
    document_services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])
    document_services.request_changes(
        db_session, document_id=document.id, actor=actors["manager"], changes="Add scoring criteria"
    )
    document_services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])
    document_services.approve(db_session, document_id=document.id, actor=actors["admin"])
    return document


def test_revision_numbers_are_gapless_and_chained(db_session, actors):
    document = _cycle_document(db_session, actors)

    revisions = services.history(db_session, entity_type="document", entity_id=document.id)

    assert [r.revision_number for r in revisions] == list(range(1, 7))
    for previous, current in zip(revisions, revisions[1:]):
        assert previous.status_after == current.status_before
    assert [r.change_type for r in revisions] == [
        "update",
        "reject",
        "update",
        "request_changes",
        "update",
        "approve",
    ]
    assert revisions[1].change_reason == "Wrong template"
    assert revisions[3].change_reason == "Add scoring criteria"


def test_replay_reconstructs_stored_status(db_session, actors):
    document = _cycle_document(db_session, actors)

    revisions = services.history(db_session, entity_type="document", entity_id=document.id)

    assert services.replay_status(revisions, "draft") == db_session.get(Document, document.id).status
    assert services.replay_status([], "draft") == "draft"


def test_history_filters_by_change_type(db_session, actors):
    document = _cycle_document(db_session, actors)

    updates = services.history(db_session, entity_type="document", entity_id=document.id, change_type="update")

    assert [r.revision_number for r in updates] == [1, 3, 5]


def test_failed_transition_does_not_consume_a_number(db_session, actors):
    document = document_services.create_document(
        db_session,
        actor=actors["author"],
        data=DocumentCreate(title="Training Matrix", document_type="form", category="HR"),
    )
    with pytest.raises(InvalidTransition):
        document_services.approve(db_session, document_id=document.id, actor=actors["manager"])
    with pytest.raises(ValidationError):
        document_services.reject(db_session, document_id=document.id, actor=actors["manager"], reason="")

    document_services.submit_for_review(db_session, document_id=document.id, actor=actors["author"])

    assert services.next_revision_number(db_session, entity_type="document", entity_id=document.id) == 2


def test_revisions_cannot_be_changed_or_deleted(db_session, actors):
    document = _cycle_document(db_session, actors)
    revision = services.history(db_session, entity_type="document", entity_id=document.id)[0]

    revision.change_description = "rewritten history"
    with pytest.raises(ImmutableRevisionError):
        db_session.commit()
    db_session.rollback()

    db_session.delete(revision)
    with pytest.raises(ImmutableRevisionError):
        db_session.commit()
    db_session.rollback()

    assert db_session.query(Revision).filter(Revision.entity_id == document.id).count() == 6


def test_duplicate_revision_number_is_rejected(db_session, actors):
    services.append(
        db_session,
        entity_type="audit",
        entity_id="AUD-1",
        change_type="update",
        status_before="planned",
        status_after="in_progress",
        author_id=actors["auditor"].id,
    )
    db_session.commit()

    db_session.add(
        Revision(
            entity_type="audit",
            entity_id="AUD-1",
            revision_number=1,
            change_type="update",
            status_before="in_progress",
            status_after="completed",
            author_id=actors["auditor"].id,
        )
    )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_numbering_is_per_entity(db_session, actors):
    for entity_id in ("AUD-1", "AUD-2", "AUD-1"):
        services.append(
            db_session,
            entity_type="audit",
            entity_id=entity_id,
            change_type="update",
            status_before="planned",
            status_after="in_progress",
            author_id=actors["auditor"].id,
        )
    db_session.commit()

    assert [r.revision_number for r in services.history(db_session, entity_type="audit", entity_id="AUD-1")] == [1, 2]
    assert [r.revision_number for r in services.history(db_session, entity_type="audit", entity_id="AUD-2")] == [1]
