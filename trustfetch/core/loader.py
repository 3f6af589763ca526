"""Verified Loader — nothing is returned unless its digest matched.

For each candidate in ``[cache, primary, *alternates]``:

1. Missing or unreachable: warn, move on.
2. Non-cache content must pass the Format Validator; failure is fatal.
3. Digest compared to the record's expected digest.
4. Match: persist to the Content Store (unless it came from there),
   re-read from the canonical cache path, run the optional action, stop.
5. Mismatch: record in the Failure Registry; warn and continue, or raise
   ``ChecksumMismatchError`` if this was the last candidate.
"""

from __future__ import annotations

import logging
import sys
import types
from pathlib import Path
from typing import Any, Callable

from trustfetch.config import config
from trustfetch.core.content_store import ContentStore
from trustfetch.core.failure_registry import FailureRegistry
from trustfetch.core.hasher import check_algorithm, digest, digests_equal
from trustfetch.core.resolver import Candidate, LocationResolver
from trustfetch.core.validator import validate
from trustfetch.errors import TrustfetchError
from trustfetch.models.records import TrustRecord
from trustfetch.models.results import FetchedCandidate, TrustedContent

logger = logging.getLogger(__name__)

OnVerified = Callable[[TrustedContent], Any]


class ChecksumMismatchError(TrustfetchError):
    """Raised when the last candidate's digest does not match the record."""


class AllCandidatesFailedError(TrustfetchError):
    """Raised when no candidate could even be read."""


class VerifiedLoader:
    """Produces ``TrustedContent`` for a trust record, or raises.

    Parameters
    ----------
    store:
        Content Store for verified artifacts.
    resolver:
        Supplies candidates in order and reads their bytes.
    failures:
        Registry receiving every digest mismatch.
    source_format:
        Format the validator enforces on freshly fetched content.
    """

    def __init__(
        self,
        store: ContentStore,
        resolver: LocationResolver,
        failures: FailureRegistry,
        *,
        source_format: str | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._failures = failures
        self._format = source_format or config.source_format

    @property
    def failures(self) -> FailureRegistry:
        return self._failures

    def load(
        self,
        algorithm: str,
        expected_digest: str,
        primary: str,
        alternates: tuple[str, ...] | list[str] = (),
        on_verified: OnVerified | None = None,
    ) -> TrustedContent:
        record = TrustRecord(
            algorithm=algorithm,
            expected_digest=expected_digest,
            primary=primary,
            alternates=tuple(alternates),
        )
        return self.load_record(record, on_verified)

    def load_record(
        self, record: TrustRecord, on_verified: OnVerified | None = None
    ) -> TrustedContent:
        """Verify and return the content pinned by *record*.

        Raises
        ------
        UnsupportedAlgorithmError
            Before any fetch, if the record's algorithm is unknown.
        NotSourceFormatError
            As soon as a non-cache candidate fails format validation.
        ChecksumMismatchError
            If the last candidate was read but did not match.
        AllCandidatesFailedError
            If the list ran out with no match and no other fatal error.
        CacheWriteError
            If a verified artifact could not be persisted.
        """
        check_algorithm(record.algorithm)
        candidates = self._resolver.candidates(record)
        warnings: list[str] = []

        for index, candidate in enumerate(candidates):
            is_last = index == len(candidates) - 1
            attempt = self._resolver.read(candidate)
            if attempt.content is None:
                if candidate.is_cache:
                    logger.debug("Cached entry unreadable: %s", attempt.problem)
                else:
                    self._warn(warnings, f"{candidate}: {attempt.problem}")
                continue

            fetched = self._examine(record, candidate, attempt.content)
            if digests_equal(fetched.computed_digest, record.expected_digest):
                trusted = self._accept(record, candidate, fetched, warnings)
                if on_verified is not None:
                    trusted = trusted.model_copy(
                        update={"action_result": on_verified(trusted)}
                    )
                return trusted

            reason = (
                f"checksum mismatch: expected {record.expected_digest}, "
                f"got {fetched.computed_digest} ({record.algorithm})"
            )
            self._failures.record(fetched.content, fetched.location, reason)
            if is_last:
                raise ChecksumMismatchError(f"{candidate}: {reason}")
            self._warn(warnings, f"{candidate}: {reason}")

        raise AllCandidatesFailedError(
            f"No candidate for {record.primary} could be verified"
            + (f": {'; '.join(warnings)}" if warnings else "")
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _examine(
        self, record: TrustRecord, candidate: Candidate, content: bytes
    ) -> FetchedCandidate:
        if not candidate.is_cache:
            validate(content, self._format, origin=str(candidate))
        return FetchedCandidate(
            location=str(candidate),
            content=content,
            computed_digest=digest(record.algorithm, content),
            from_cache=candidate.is_cache,
        )

    def _accept(
        self,
        record: TrustRecord,
        candidate: Candidate,
        fetched: FetchedCandidate,
        warnings: list[str],
    ) -> TrustedContent:
        if candidate.is_cache:
            path = Path(fetched.location)
            content = fetched.content
        else:
            path = self._store.write(
                record.algorithm,
                fetched.computed_digest,
                candidate.location.base_name,
                fetched.content,
            )
            content = self._store.read(path)
        logger.info("Verified %s (%s) from %s.",
                    record.primary, fetched.computed_digest[:16], fetched.location)
        return TrustedContent(
            record=record,
            content=content,
            digest=fetched.computed_digest,
            location=path,
            source=fetched.location,
            from_cache=candidate.is_cache,
            warnings=tuple(warnings),
        )

    @staticmethod
    def _warn(warnings: list[str], message: str) -> None:
        logger.warning(message)
        warnings.append(message)


# ---------------------------------------------------------------------------
# Post-verification actions
# ---------------------------------------------------------------------------


def exec_module(module_name: str | None = None, *, register: bool = False) -> OnVerified:
    """Build an action that executes trusted Python source as a module.

    The module's ``__file__`` is the canonical cache path.  With
    ``register=True`` the module is also placed in ``sys.modules``.
    """

    def _run(trusted: TrustedContent) -> types.ModuleType:
        name = module_name or trusted.record.primary_location.base_name.removesuffix(".py")
        module = types.ModuleType(name)
        module.__file__ = str(trusted.location)
        code = compile(trusted.content, str(trusted.location), "exec")
        if register:
            sys.modules[name] = module
        exec(code, module.__dict__)
        return module

    return _run
