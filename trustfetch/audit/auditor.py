"""Update Auditor — scan, review, and rewrite trust records.

Per record the states are::

    Scanned(no-op)
    PendingReview --approve--> Rewritten
                  --reject---> MarkedFailed

``PendingReview`` is the only non-terminal state.  Pending updates are
queued per document and consumed one at a time; an item leaves the queue
only once its document edit has been written, so an interrupted review
(or a failed fetch of the new content) leaves both queue and document as
they were.
"""

from __future__ import annotations

import difflib
import logging
import threading
from collections import deque

from trustfetch.audit.approvers import Approver
from trustfetch.audit.documents import RecordSite, StaleRecordError, TrustDocument
from trustfetch.audit.identity import IdentityResolutionError, IdentityResolver
from trustfetch.config import config
from trustfetch.core.content_store import ContentStore
from trustfetch.core.fetcher import Fetcher
from trustfetch.core.hasher import digest
from trustfetch.core.loader import VerifiedLoader
from trustfetch.core.validator import validate
from trustfetch.errors import TrustfetchError
from trustfetch.models.policy import AuditPolicy
from trustfetch.models.records import AUDIT_FAILED_DIGEST, parse_location
from trustfetch.models.results import (
    PendingUpdate,
    ScanReport,
    UpdateOutcome,
    UpdateResult,
)

logger = logging.getLogger(__name__)


def _diff_lines(payload: bytes) -> list[str]:
    text = payload.decode("utf-8", errors="replace")
    if not text:
        return []
    # Split on "\n" only so stray "\r" or form feeds stay inside their line.
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line + "\n" for line in lines]


def unified_diff(old: bytes, new: bytes, old_name: str, new_name: str) -> str:
    """Line diff of two UTF-8 payloads; every diff line ends in a newline."""
    return "".join(
        difflib.unified_diff(
            _diff_lines(old),
            _diff_lines(new),
            fromfile=old_name,
            tofile=new_name,
        )
    )


class UpdateAuditor:
    """Finds upstream changes to trusted content and gates them on review.

    Parameters
    ----------
    loader:
        Verified Loader used to re-fetch the currently trusted content.
    fetcher:
        Fetch capability for the proposed new content.
    store:
        Content Store; approved content is cached immediately.
    identity:
        Resolver answering "what is the current immutable location?".
    source_format:
        Format new content must satisfy before it is shown for review.
    """

    def __init__(
        self,
        loader: VerifiedLoader,
        fetcher: Fetcher,
        store: ContentStore,
        identity: IdentityResolver,
        *,
        source_format: str | None = None,
    ) -> None:
        self._loader = loader
        self._fetcher = fetcher
        self._store = store
        self._identity = identity
        self._format = source_format or config.source_format
        self._queues: dict[str, deque[PendingUpdate]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def scan(self, document: TrustDocument) -> ScanReport:
        """Check every record in *document* and queue the ones that moved.

        A record whose trusted content cannot be loaded is reported in
        ``errors`` and does not stop the scan.  Rescanning replaces the
        document's queue.
        """
        pending: list[PendingUpdate] = []
        up_to_date: list[str] = []
        skipped: dict[str, str] = {}
        errors: dict[str, str] = {}

        for site in document.sites():
            try:
                trusted = self._loader.load_record(site.record)
            except TrustfetchError as exc:
                logger.error("Cannot load trusted content for %s (%s): %s",
                             site.site_id, site.record.primary, exc)
                errors[site.site_id] = str(exc)
                continue

            try:
                identity = self._identity.resolve(trusted)
            except IdentityResolutionError as exc:
                logger.error("Identity resolution failed for %s: %s", site.site_id, exc)
                errors[site.site_id] = str(exc)
                continue

            if identity is None:
                logger.warning("No immutable identity for %s (%s); skipping.",
                               site.site_id, site.record.primary)
                skipped[site.site_id] = "no immutable identity available"
                continue
            if identity == site.record.primary:
                up_to_date.append(site.site_id)
                continue

            pending.append(
                PendingUpdate(
                    document_id=document.document_id,
                    site_id=site.site_id,
                    record=site.record,
                    old_content=trusted.content,
                    new_location=identity,
                )
            )
            logger.info("Update pending for %s: %s -> %s",
                        site.site_id, site.record.primary, identity)

        with self._lock:
            if pending:
                self._queues[document.document_id] = deque(pending)
            else:
                self._queues.pop(document.document_id, None)

        return ScanReport(
            document_id=document.document_id,
            pending=pending,
            up_to_date=up_to_date,
            skipped=skipped,
            errors=errors,
        )

    def pending(self, document_id: str) -> list[PendingUpdate]:
        with self._lock:
            return list(self._queues.get(document_id, ()))

    # ------------------------------------------------------------------
    # Approve
    # ------------------------------------------------------------------

    def approve(
        self, document: TrustDocument, pending: PendingUpdate, approver: Approver
    ) -> UpdateResult:
        """Review one pending update and rewrite its record.

        Approval mints a record with the new digest; anything else mints one
        carrying ``AUDIT-FAILED``.  Either way the old primary is demoted
        behind an ``OLD`` marker.

        Raises
        ------
        LocationNotFoundError, TransportError
            If the new content cannot be fetched; the document is untouched.
        NotSourceFormatError
            If the new content is not well-formed source.
        StaleRecordError
            If the record changed in the document since the scan.
        """
        site = RecordSite(site_id=pending.site_id, record=pending.record)
        if site not in [
            RecordSite(site_id=s.site_id, record=s.record) for s in document.sites()
        ]:
            raise StaleRecordError(
                f"Trust record {pending.site_id} in {pending.document_id} changed "
                f"since it was scanned; rescan before approving."
            )

        location = parse_location(pending.new_location)
        new_content = self._fetcher.fetch(location)
        validate(new_content, self._format, origin=pending.new_location)

        diff = unified_diff(
            pending.old_content, new_content, pending.record.primary, pending.new_location
        )
        if self._decide(approver, diff):
            new_digest = digest(pending.algorithm, new_content)
            self._store.write(pending.algorithm, new_digest, location.base_name, new_content)
            outcome = UpdateOutcome.REWRITTEN
        else:
            new_digest = AUDIT_FAILED_DIGEST
            outcome = UpdateOutcome.MARKED_FAILED

        new_record = pending.record.successor(pending.new_location, new_digest)
        document.replace(site, new_record)

        logger.info("Update %s for %s: %s", outcome.value, pending.site_id, pending.new_location)
        return UpdateResult(
            pending_id=pending.pending_id,
            site_id=pending.site_id,
            outcome=outcome,
            old_record=pending.record,
            new_record=new_record,
            diff=diff,
        )

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------

    def drain(self, document: TrustDocument, policy: AuditPolicy) -> list[UpdateResult]:
        """Consume the document's queue in order under *policy*.

        With ``AuditPolicy.skip()`` nothing is reviewed and the queue is
        left as it is.
        """
        approver = policy.approver()
        if approver is None:
            logger.info("Review skipped by policy; %d update(s) remain pending for %s.",
                        len(self.pending(document.document_id)), document.document_id)
            return []

        results: list[UpdateResult] = []
        while True:
            with self._lock:
                queue = self._queues.get(document.document_id)
                if not queue:
                    self._queues.pop(document.document_id, None)
                    break
                item = queue[0]

            results.append(self.approve(document, item, approver))

            with self._lock:
                queue = self._queues.get(document.document_id)
                if queue and queue[0].pending_id == item.pending_id:
                    queue.popleft()
        return results

    # ------------------------------------------------------------------
    # Sentinel records
    # ------------------------------------------------------------------

    def rehash(self, document: TrustDocument, approver: Approver) -> list[UpdateResult]:
        """Review records still carrying a sentinel digest.

        The primary's content is shown in full; on approval its digest
        replaces the sentinel.  Rejected records are left as they are.
        """
        results: list[UpdateResult] = []
        for site in document.sites():
            record = site.record
            if not record.is_sentinel:
                continue
            content = self._fetcher.fetch(record.primary_location)
            validate(content, self._format, origin=record.primary)
            shown = unified_diff(b"", content, "/dev/null", record.primary)
            if not self._decide(approver, shown):
                logger.info("Digest for %s not approved; left as %s.",
                            site.site_id, record.expected_digest)
                continue
            new_digest = digest(record.algorithm, content)
            self._store.write(record.algorithm, new_digest,
                              record.primary_location.base_name, content)
            new_record = record.with_digest(new_digest)
            document.replace(site, new_record)
            results.append(
                UpdateResult(
                    pending_id=f"rehash-{site.site_id}",
                    site_id=site.site_id,
                    outcome=UpdateOutcome.REWRITTEN,
                    old_record=record,
                    new_record=new_record,
                    diff=shown,
                )
            )
        return results

    @staticmethod
    def _decide(approver: Approver, diff: str) -> bool:
        # KeyboardInterrupt is not an Exception and propagates untouched.
        try:
            return approver.approve(diff) is True
        except Exception:
            logger.exception("Approver failed; treating as rejection.")
            return False
