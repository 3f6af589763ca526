"""trustfetch: run code you do not control, but only the bytes you reviewed.

Fetched source is executed only after its digest matches a trust record
the operator accepted.  Verified artifacts are cached by digest, and
moving to a newer upstream revision goes through a diff-and-approve
review that rewrites the trust record.
"""

from __future__ import annotations

import types

__version__ = "0.1.0"

from trustfetch.models.policy import AuditPolicy
from trustfetch.models.records import TrustRecord
from trustfetch.session import TrustSession

_default_session: TrustSession | None = None


def default_session() -> TrustSession:
    """Process-wide session backed by ``config.cache_dir``."""
    global _default_session
    if _default_session is None:
        _default_session = TrustSession()
    return _default_session


def require_trusted(
    algorithm: str,
    expected_digest: str,
    primary: str,
    *alternates: str,
    session: TrustSession | None = None,
) -> types.ModuleType:
    """Fetch, verify and execute a Python module pinned by digest.

    This call is also the embedded trust-record syntax that
    ``trustfetch scan`` and ``trustfetch update`` rewrite.
    """
    return (session or default_session()).require(
        algorithm, expected_digest, primary, *alternates
    )


__all__ = [
    "AuditPolicy",
    "TrustRecord",
    "TrustSession",
    "default_session",
    "require_trusted",
    "__version__",
]
