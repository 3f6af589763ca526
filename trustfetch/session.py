"""TrustSession — one owner for the store, fetcher, registry and audit queues.

Each session has its own Failure Registry and pending-update queues, so
separate sessions never see each other's state.  Disposal is explicit:
``close()`` (or leaving the ``with`` block) releases the HTTP client.
"""

from __future__ import annotations

import logging
import types
from pathlib import Path

import httpx

from trustfetch.audit.auditor import UpdateAuditor
from trustfetch.audit.identity import IdentityResolver, default_resolver
from trustfetch.config import config
from trustfetch.core.content_store import ContentStore
from trustfetch.core.failure_registry import FailureRegistry
from trustfetch.core.fetcher import Fetcher
from trustfetch.core.loader import OnVerified, VerifiedLoader, exec_module
from trustfetch.core.resolver import LocationResolver
from trustfetch.models.results import TrustedContent

logger = logging.getLogger(__name__)


class TrustSession:
    """Wires the verified-fetch engine and the update auditor together.

    Parameters
    ----------
    cache_dir:
        Content Store root.  Defaults to ``config.cache_dir``.
    client:
        Optional ``httpx.Client`` for remote fetches.
    identity:
        Immutable-identity resolver for update scans.  Defaults to the
        header-function resolver followed by the GitHub resolver.
    source_format:
        Format enforced on freshly fetched content.

    Examples
    --------
    >>> with TrustSession(cache_dir=Path("/tmp/tf-cache")) as session:
    ...     pass
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        *,
        client: httpx.Client | None = None,
        identity: IdentityResolver | None = None,
        source_format: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.store = ContentStore(cache_dir or config.cache_dir)
        self.fetcher = Fetcher(timeout=timeout, client=client)
        self.failures = FailureRegistry()
        self.resolver = LocationResolver(self.store, self.fetcher)
        self.loader = VerifiedLoader(
            self.store, self.resolver, self.failures, source_format=source_format
        )
        self.auditor = UpdateAuditor(
            self.loader,
            self.fetcher,
            self.store,
            identity or default_resolver(self.fetcher),
            source_format=source_format,
        )

    def load(
        self,
        algorithm: str,
        expected_digest: str,
        primary: str,
        *alternates: str,
        on_verified: OnVerified | None = None,
    ) -> TrustedContent:
        return self.loader.load(
            algorithm, expected_digest, primary, alternates, on_verified=on_verified
        )

    def require(
        self, algorithm: str, expected_digest: str, primary: str, *alternates: str
    ) -> types.ModuleType:
        """Load, verify and execute Python source; return the module."""
        trusted = self.load(
            algorithm, expected_digest, primary, *alternates, on_verified=exec_module()
        )
        return trusted.action_result

    def close(self) -> None:
        self.fetcher.close()

    def __enter__(self) -> TrustSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
