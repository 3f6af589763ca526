"""trustfetch data models — all Pydantic v2, all frozen (immutable)."""

from trustfetch.models.policy import AuditMode, AuditPolicy
from trustfetch.models.records import (
    AUDIT_FAILED_DIGEST,
    OLD_MARKER,
    UNSET_DIGEST,
    HashAlgorithm,
    LocalPath,
    Location,
    RemoteURL,
    TrustRecord,
    is_sentinel_digest,
    parse_location,
)
from trustfetch.models.results import (
    FailureRecord,
    FetchedCandidate,
    PendingUpdate,
    ScanReport,
    TrustedContent,
    UpdateOutcome,
    UpdateResult,
)

__all__ = [
    # records
    "HashAlgorithm",
    "LocalPath",
    "RemoteURL",
    "Location",
    "TrustRecord",
    "parse_location",
    "is_sentinel_digest",
    "UNSET_DIGEST",
    "AUDIT_FAILED_DIGEST",
    "OLD_MARKER",
    # results
    "FetchedCandidate",
    "TrustedContent",
    "FailureRecord",
    "PendingUpdate",
    "UpdateOutcome",
    "UpdateResult",
    "ScanReport",
    # policy
    "AuditMode",
    "AuditPolicy",
]
