from __future__ import annotations

import threading

import pytest

from qmsdb.apps.documents import services as document_services
from qmsdb.apps.documents.models import Document
from qmsdb.apps.documents.schemas import DocumentCreate
from qmsdb.apps.revisions import services as revision_services
from qmsdb.apps.workflow.errors import InvalidTransition


def _document_in_review(session_factory, actors) -> str:
    db = session_factory()
    try:
        document = document_services.create_document(
            db,
            actor=actors["author"],
            data=DocumentCreate(title="Calibration Procedure", document_type="procedure", category="Metrology"),
        )
        document_services.submit_for_review(db, document_id=document.id, actor=actors["author"])
        return document.id
    finally:
        db.close()


def test_stale_read_loses_compare_and_swap(session_factory, factory_actors):
    document_id = _document_in_review(session_factory, factory_actors)

    first = session_factory()
    second = session_factory()
    try:
        # `first` keeps the document cached in `review`.
        cached = first.get(Document, document_id)
        assert cached.status == "review"

        document_services.approve(second, document_id=document_id, actor=factory_actors["manager"])

        with pytest.raises(InvalidTransition) as excinfo:
            document_services.reject(
                first,
                document_id=document_id,
                actor=factory_actors["admin"],
                reason="Superseded by the metrology rewrite",
            )
        assert excinfo.value.code == "stale_status"
    finally:
        first.close()
        second.close()

    check = session_factory()
    try:
        assert check.get(Document, document_id).status == "approved"
        revisions = revision_services.history(check, entity_type="document", entity_id=document_id)
        assert [(r.revision_number, r.change_type) for r in revisions] == [(1, "update"), (2, "approve")]
    finally:
        check.close()


@pytest.mark.parametrize("writers", [2, 4])
def test_concurrent_approvals_have_one_winner(session_factory, factory_actors, writers):
    document_id = _document_in_review(session_factory, factory_actors)
    approvers = [factory_actors[name] for name in ("manager", "admin", "root")]
    barrier = threading.Barrier(writers)
    outcomes = []
    lock = threading.Lock()

    def approve(actor):
        db = session_factory()
        try:
            cached = db.get(Document, document_id)
            assert cached.status == "review"
            barrier.wait(timeout=10)
            try:
                document_services.approve(db, document_id=document_id, actor=actor, comments="ok")
                result = "approved"
            except InvalidTransition as exc:
                result = exc.code
            with lock:
                outcomes.append(result)
        finally:
            db.close()

    threads = [
        threading.Thread(target=approve, args=(approvers[i % len(approvers)],))
        for i in range(writers)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(outcomes) == ["approved"] + ["stale_status"] * (writers - 1)

    check = session_factory()
    try:
        revisions = revision_services.history(check, entity_type="document", entity_id=document_id)
        assert [r.change_type for r in revisions].count("approve") == 1
        assert [r.revision_number for r in revisions] == [1, 2]
        assert revisions[-1].status_after == check.get(Document, document_id).status == "approved"
    finally:
        check.close()
