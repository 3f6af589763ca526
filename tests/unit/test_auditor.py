"""Tests for UpdateAuditor — scan, approve, reject, drain, rehash."""

from __future__ import annotations

import pytest

from trustfetch.audit.approvers import CallbackApprover
from trustfetch.audit.auditor import unified_diff
from trustfetch.audit.documents import SourceDocument, StaleRecordError, TrustRecordStore
from trustfetch.core.fetcher import LocationNotFoundError
from trustfetch.core.hasher import sha256_hex
from trustfetch.core.loader import ChecksumMismatchError
from trustfetch.core.validator import NotSourceFormatError
from trustfetch.models.policy import AuditPolicy
from trustfetch.models.records import AUDIT_FAILED_DIGEST, OLD_MARKER, TrustRecord
from trustfetch.models.results import UpdateOutcome
from trustfetch.session import TrustSession

from tests.sources import GOOD_SOURCE, NEWER_SOURCE, OTHER_SOURCE

U1 = "https://example.org/v1/lib.py"
U2 = "https://example.org/v2/lib.py"
V1 = "https://example.org/v1/extra.py"
V2 = "https://example.org/v2/extra.py"
D1 = sha256_hex(GOOD_SOURCE)
D2 = sha256_hex(NEWER_SOURCE)


class StaticIdentity:
    """Resolver answering from a fixed primary -> location map."""

    def __init__(self, mapping: dict[str, str]) -> None:
        self.mapping = mapping

    def resolve(self, trusted):
        return self.mapping.get(trusted.record.primary)


@pytest.fixture
def identity() -> StaticIdentity:
    return StaticIdentity({U1: U2})


@pytest.fixture
def audit_session(tmp_dir, http_client, identity) -> TrustSession:
    with TrustSession(cache_dir=tmp_dir / "cache", client=http_client, identity=identity) as s:
        yield s


@pytest.fixture
def document(tmp_dir, web) -> SourceDocument:
    web[U1] = GOOD_SOURCE
    web[U2] = NEWER_SOURCE
    path = tmp_dir / "consumer.py"
    path.write_text(
        "from trustfetch import require_trusted\n\n"
        f'lib = require_trusted("sha256", "{D1}", "{U1}")\n'
    )
    return SourceDocument(path)


def approve_all(diff: str) -> bool:
    return True


def reject_all(diff: str) -> bool:
    return False


class TestScan:
    def test_pending_when_identity_moved(self, audit_session, document):
        report = audit_session.auditor.scan(document)
        assert len(report.pending) == 1
        pending = report.pending[0]
        assert pending.new_location == U2
        assert pending.old_content == GOOD_SOURCE
        assert pending.algorithm == "sha256"
        assert audit_session.auditor.pending(document.document_id) == report.pending

    def test_up_to_date(self, audit_session, document, identity):
        identity.mapping[U1] = U1
        report = audit_session.auditor.scan(document)
        assert report.pending == []
        assert report.up_to_date == ["site-0"]

    def test_no_identity_is_skipped(self, audit_session, document, identity):
        identity.mapping.clear()
        report = audit_session.auditor.scan(document)
        assert report.skipped == {"site-0": "no immutable identity available"}
        assert audit_session.auditor.pending(document.document_id) == []

    def test_unverifiable_record_does_not_stop_scan(self, audit_session, tmp_dir, web, identity):
        web[U1] = GOOD_SOURCE
        web[U2] = NEWER_SOURCE
        web[V1] = OTHER_SOURCE
        identity.mapping[V1] = V2
        path = tmp_dir / "two.py"
        path.write_text(
            f'a = require_trusted("sha256", "{D2}", "{V1}")\n'
            f'b = require_trusted("sha256", "{D1}", "{U1}")\n'
        )
        report = audit_session.auditor.scan(SourceDocument(path))
        assert "site-0" in report.errors
        assert [p.site_id for p in report.pending] == ["site-1"]


class TestApprove:
    def test_approval_rewrites_record(self, audit_session, document):
        pending = audit_session.auditor.scan(document).pending[0]
        result = audit_session.auditor.approve(document, pending, CallbackApprover(approve_all))

        assert result.outcome == UpdateOutcome.REWRITTEN
        expected = TrustRecord(
            algorithm="sha256", expected_digest=D2, primary=U2, alternates=(OLD_MARKER, U1)
        )
        assert result.new_record == expected
        assert document.sites()[0].record == expected
        assert "-VALUE = 42" in result.diff and "+VALUE = 43" in result.diff

    def test_approved_content_loads_from_cache(self, audit_session, document, web):
        pending = audit_session.auditor.scan(document).pending[0]
        audit_session.auditor.approve(document, pending, CallbackApprover(approve_all))
        web[U2] = 404
        record = document.sites()[0].record
        trusted = audit_session.loader.load_record(record)
        assert trusted.from_cache is True
        assert trusted.content == NEWER_SOURCE

    def test_rejection_marks_failed(self, audit_session, document):
        pending = audit_session.auditor.scan(document).pending[0]
        result = audit_session.auditor.approve(document, pending, CallbackApprover(reject_all))

        assert result.outcome == UpdateOutcome.MARKED_FAILED
        record = document.sites()[0].record
        assert record.expected_digest == AUDIT_FAILED_DIGEST
        assert record.primary == U2
        assert record.alternates == (OLD_MARKER, U1)
        with pytest.raises(ChecksumMismatchError):
            audit_session.loader.load_record(record)

    def test_non_true_answer_is_rejection(self, audit_session, document):
        pending = audit_session.auditor.scan(document).pending[0]
        result = audit_session.auditor.approve(
            document, pending, CallbackApprover(lambda diff: "yes")  # type: ignore[arg-type, return-value]
        )
        assert result.outcome == UpdateOutcome.MARKED_FAILED

    def test_failing_approver_is_rejection(self, audit_session, document):
        def broken(diff: str) -> bool:
            raise RuntimeError("dialog crashed")

        pending = audit_session.auditor.scan(document).pending[0]
        result = audit_session.auditor.approve(document, pending, CallbackApprover(broken))
        assert result.outcome == UpdateOutcome.MARKED_FAILED

    def test_malformed_new_content(self, audit_session, document, web):
        pending = audit_session.auditor.scan(document).pending[0]
        web[U2] = b"<html>moved</html>"
        before = document.path.read_text()
        with pytest.raises(NotSourceFormatError):
            audit_session.auditor.approve(document, pending, CallbackApprover(approve_all))
        assert document.path.read_text() == before

    def test_stale_document(self, audit_session, document):
        pending = audit_session.auditor.scan(document).pending[0]
        document.path.write_text(
            f'lib = require_trusted("sha256", "{D2}", "{U1}")\n'
        )
        with pytest.raises(StaleRecordError):
            audit_session.auditor.approve(document, pending, CallbackApprover(approve_all))


class TestDrain:
    def test_drain_consumes_queue_in_order(self, audit_session, tmp_dir, web, identity):
        web[U1] = GOOD_SOURCE
        web[U2] = NEWER_SOURCE
        web[V1] = OTHER_SOURCE
        web[V2] = b"VALUE = 8\n"
        identity.mapping[V1] = V2
        path = tmp_dir / "two.py"
        path.write_text(
            f'a = require_trusted("sha256", "{D1}", "{U1}")\n'
            f'b = require_trusted("sha256", "{sha256_hex(OTHER_SOURCE)}", "{V1}")\n'
        )
        doc = SourceDocument(path)
        audit_session.auditor.scan(doc)

        answers = iter([True, False])
        policy = AuditPolicy.require_callback(lambda diff: next(answers))
        results = audit_session.auditor.drain(doc, policy)

        assert [r.outcome for r in results] == [
            UpdateOutcome.REWRITTEN,
            UpdateOutcome.MARKED_FAILED,
        ]
        assert audit_session.auditor.pending(doc.document_id) == []
        records = [s.record for s in doc.sites()]
        assert records[0].primary == U2 and records[0].expected_digest == D2
        assert records[1].primary == V2 and records[1].expected_digest == AUDIT_FAILED_DIGEST

    def test_skip_policy_leaves_queue(self, audit_session, document):
        audit_session.auditor.scan(document)
        before = document.path.read_text()
        assert audit_session.auditor.drain(document, AuditPolicy.skip()) == []
        assert len(audit_session.auditor.pending(document.document_id)) == 1
        assert document.path.read_text() == before

    def test_cancellation_leaves_queue_and_document(self, audit_session, document):
        def interrupted(diff: str) -> bool:
            raise KeyboardInterrupt

        audit_session.auditor.scan(document)
        before = document.path.read_text()
        with pytest.raises(KeyboardInterrupt):
            audit_session.auditor.drain(document, AuditPolicy.require_callback(interrupted))
        assert len(audit_session.auditor.pending(document.document_id)) == 1
        assert document.path.read_text() == before

    def test_fetch_failure_leaves_item_queued(self, audit_session, document, web):
        audit_session.auditor.scan(document)
        web[U2] = 404
        with pytest.raises(LocationNotFoundError):
            audit_session.auditor.drain(document, AuditPolicy.require_callback(approve_all))
        assert len(audit_session.auditor.pending(document.document_id)) == 1

    def test_drain_empty_queue(self, audit_session, document):
        assert audit_session.auditor.drain(
            document, AuditPolicy.require_callback(approve_all)
        ) == []


class TestRecordStoreDocument:
    def test_scan_and_drain_json_store(self, audit_session, tmp_dir, web):
        web[U1] = GOOD_SOURCE
        web[U2] = NEWER_SOURCE
        store = TrustRecordStore(tmp_dir / "trust.json")
        store.put("vendor.lib", TrustRecord(algorithm="sha256", expected_digest=D1, primary=U1))

        audit_session.auditor.scan(store)
        audit_session.auditor.drain(store, AuditPolicy.require_callback(approve_all))

        assert store.get("vendor.lib") == TrustRecord(
            algorithm="sha256", expected_digest=D2, primary=U2, alternates=(OLD_MARKER, U1)
        )


class TestRehash:
    def test_fills_unset_digest(self, audit_session, tmp_dir, web):
        web[U1] = GOOD_SOURCE
        path = tmp_dir / "new.py"
        path.write_text(f'lib = require_trusted("sha256", "UNSET", "{U1}")\n')
        doc = SourceDocument(path)

        results = audit_session.auditor.rehash(doc, CallbackApprover(approve_all))

        assert len(results) == 1
        assert doc.sites()[0].record.expected_digest == D1
        assert "+VALUE = 42" in results[0].diff

    def test_rejected_rehash_leaves_sentinel(self, audit_session, tmp_dir, web):
        web[U1] = GOOD_SOURCE
        path = tmp_dir / "new.py"
        path.write_text(f'lib = require_trusted("sha256", "UNSET", "{U1}")\n')
        doc = SourceDocument(path)

        assert audit_session.auditor.rehash(doc, CallbackApprover(reject_all)) == []
        assert doc.sites()[0].record.expected_digest == "UNSET"

    def test_real_digests_untouched(self, audit_session, document):
        assert audit_session.auditor.rehash(document, CallbackApprover(approve_all)) == []


class TestUnifiedDiff:
    def test_missing_final_newline_keeps_lines_apart(self):
        diff = unified_diff(b"VALUE = 42", b"VALUE = 43\nimport os", "old.py", "new.py")
        lines = diff.splitlines()
        assert "-VALUE = 42" in lines
        assert "+VALUE = 43" in lines
        assert "+import os" in lines
        assert diff.endswith("\n")

    def test_identical_without_newline_is_empty(self):
        assert unified_diff(b"x = 1", b"x = 1", "a.py", "b.py") == ""

    def test_from_empty_lists_every_line(self):
        diff = unified_diff(b"", b"a = 1\nb = 2", "/dev/null", "lib.py")
        assert diff.splitlines()[-2:] == ["+a = 1", "+b = 2"]

    def test_carriage_return_stays_in_its_line(self):
        diff = unified_diff(b"a = 1\r\n", b"a = 2\r\n", "a.py", "b.py")
        assert "-a = 1\r\n" in diff
        assert "+a = 2\r\n" in diff
