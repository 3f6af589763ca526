"""Location Resolver — ordered candidates for a trust record, cache first.

The resolver only decides *where* to look and reads the bytes.  Whether
a candidate is trusted is the loader's decision.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from trustfetch.core.content_store import ContentStore
from trustfetch.core.fetcher import Fetcher, LocationNotFoundError, TransportError
from trustfetch.models.records import LocalPath, RemoteURL, TrustRecord

logger = logging.getLogger(__name__)


class Candidate(BaseModel):
    """A location to try, flagged when it is the Content Store path."""

    model_config = ConfigDict(frozen=True)

    location: LocalPath | RemoteURL
    is_cache: bool = False

    def __str__(self) -> str:
        return str(self.location)


class Attempt(BaseModel):
    """The result of reading one candidate: bytes, or why there are none."""

    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    content: bytes | None = None
    problem: str = ""


class LocationResolver:
    """Builds the candidate list and reads each candidate in order.

    Parameters
    ----------
    store:
        Content Store consulted before any primary or alternate.
    fetcher:
        Fetch capability for every non-cache location.
    """

    def __init__(self, store: ContentStore, fetcher: Fetcher) -> None:
        self._store = store
        self._fetcher = fetcher

    def cache_candidate(self, record: TrustRecord) -> Candidate | None:
        """The cached artifact for this record, if one exists."""
        if record.is_sentinel:
            return None
        path = self._store.lookup(
            record.expected_digest, record.primary_location.base_name
        )
        if path is None:
            logger.debug("Cache miss for %s.", record.expected_digest)
            return None
        logger.debug("Cache hit for %s at %s.", record.expected_digest, path)
        return Candidate(location=LocalPath(path=path), is_cache=True)

    def candidates(self, record: TrustRecord) -> list[Candidate]:
        """``[cache path (if present), primary, *alternates]``."""
        result: list[Candidate] = []
        cached = self.cache_candidate(record)
        if cached is not None:
            result.append(cached)
        result.extend(Candidate(location=loc) for loc in record.candidate_locations())
        return result

    def read(self, candidate: Candidate) -> Attempt:
        if candidate.is_cache:
            try:
                content = self._store.read(Path(str(candidate.location)))
            except OSError as exc:
                return Attempt(candidate=candidate, problem=f"cache read failed: {exc}")
            return Attempt(candidate=candidate, content=content)
        try:
            content = self._fetcher.fetch(candidate.location)
        except (LocationNotFoundError, TransportError) as exc:
            return Attempt(candidate=candidate, problem=str(exc))
        return Attempt(candidate=candidate, content=content)
