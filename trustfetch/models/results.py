"""Transient and session-scoped results of loading and auditing."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from trustfetch.models.records import TrustRecord


class FetchedCandidate(BaseModel):
    """One location's bytes and their computed digest.

    Produced per attempt and discarded once the loader has decided.
    """

    model_config = ConfigDict(frozen=True)

    location: str
    content: bytes
    computed_digest: str
    from_cache: bool = False


class TrustedContent(BaseModel):
    """Content whose digest matched the trust record.

    ``location`` is always the canonical Content Store path; ``source`` is
    where the bytes were originally fetched from.  ``warnings`` lists the
    non-fatal per-candidate problems met on the way.
    """

    model_config = ConfigDict(frozen=True)

    record: TrustRecord
    content: bytes
    digest: str
    location: Path
    source: str
    from_cache: bool
    warnings: tuple[str, ...] = ()
    action_result: Any = None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


class FailureRecord(BaseModel):
    """A candidate that failed verification, kept for operator inspection."""

    model_config = ConfigDict(frozen=True)

    failure_id: str = Field(default_factory=lambda: f"fail-{uuid.uuid4().hex[:12]}")
    content: bytes
    location: str
    reason: str
    recorded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class PendingUpdate(BaseModel):
    """A record whose upstream identity moved, waiting for human review.

    Carries everything the approval step needs: the last-trusted content,
    the record as it stands in the document, and the new immutable location.
    """

    model_config = ConfigDict(frozen=True)

    pending_id: str = Field(default_factory=lambda: f"upd-{uuid.uuid4().hex[:12]}")
    document_id: str
    site_id: str
    record: TrustRecord
    old_content: bytes
    new_location: str

    @property
    def algorithm(self) -> str:
        return self.record.algorithm

    @property
    def alternates(self) -> tuple[str, ...]:
        return self.record.alternates


class UpdateOutcome(str, Enum):
    """Terminal states of one audited update."""

    REWRITTEN = "rewritten"  # approved, record replaced with the new digest
    MARKED_FAILED = "marked_failed"  # rejected, record carries AUDIT-FAILED


class UpdateResult(BaseModel):
    """What the approval step did to the document."""

    model_config = ConfigDict(frozen=True)

    pending_id: str
    site_id: str
    outcome: UpdateOutcome
    old_record: TrustRecord
    new_record: TrustRecord
    diff: str = ""


class ScanReport(BaseModel):
    """Outcome of scanning one document for upstream changes."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    pending: list[PendingUpdate] = Field(default_factory=list)
    up_to_date: list[str] = Field(default_factory=list)
    skipped: dict[str, str] = Field(default_factory=dict)  # site_id -> reason
    errors: dict[str, str] = Field(default_factory=dict)  # site_id -> message
