"""Fetch capability — local paths and remote URLs behind one interface.

Remote fetches go through ``httpx`` with a bounded timeout per attempt.
A timeout or transport failure is reported as ``TransportError``, which
the loader treats exactly like a missing location.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from trustfetch.config import config
from trustfetch.errors import TrustfetchError
from trustfetch.models.records import LocalPath, RemoteURL

logger = logging.getLogger(__name__)

_NOT_FOUND_STATUSES = frozenset({404, 410})


class LocationNotFoundError(TrustfetchError):
    """Raised when a location does not exist.  Non-fatal per candidate."""


class TransportError(TrustfetchError):
    """Raised when a location exists but could not be read.

    Covers timeouts, connection failures and non-2xx responses.  Non-fatal
    per candidate.
    """


class Fetcher:
    """Reads bytes from a ``LocalPath`` or ``RemoteURL``.

    Parameters
    ----------
    timeout:
        Seconds allowed for each remote fetch attempt.
    client:
        Optional preconfigured ``httpx.Client`` (e.g. one built on
        ``httpx.MockTransport`` in tests).  When omitted, a client is
        created lazily and owned by this fetcher.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._timeout = timeout if timeout is not None else config.fetch_timeout_seconds
        self._client = client
        self._owns_client = client is None
        self.fetch_count = 0

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": config.user_agent},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch(self, location: LocalPath | RemoteURL) -> bytes:
        """Return the bytes at *location*.

        Raises
        ------
        LocationNotFoundError
            If the file is missing or the server answers 404/410.
        TransportError
            On any other read or network failure.
        """
        self.fetch_count += 1
        if isinstance(location, LocalPath):
            return self._fetch_local(location.path)
        return self._fetch_remote(location.url)

    def get_json(self, url: str, *, headers: dict[str, str] | None = None) -> object:
        """GET a JSON document (used by hosted-git identity resolvers)."""
        response = self._get(url, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON from {url}: {exc}") from exc

    def exists(self, location: LocalPath | RemoteURL) -> bool:
        """Whether *location* can currently be fetched.

        Remote URLs are probed with HEAD, falling back to GET for servers
        that do not allow HEAD.
        """
        if isinstance(location, LocalPath):
            return location.path.is_file()
        try:
            response = self.client.head(location.url)
            if response.status_code in (405, 501):
                response = self.client.get(location.url)
        except httpx.HTTPError:
            return False
        return response.is_success

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fetch_local(self, path: Path) -> bytes:
        if not path.is_file():
            raise LocationNotFoundError(f"No such file: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise TransportError(f"Could not read {path}: {exc}") from exc

    def _fetch_remote(self, url: str) -> bytes:
        return self._get(url).content

    def _get(self, url: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            response = self.client.get(url, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Timed out after {self._timeout}s fetching {url}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Could not fetch {url}: {exc}") from exc

        if response.status_code in _NOT_FOUND_STATUSES:
            raise LocationNotFoundError(f"{url} answered {response.status_code}")
        if not response.is_success:
            raise TransportError(f"{url} answered {response.status_code}")
        logger.debug("Fetched %s (%d bytes).", url, len(response.content))
        return response
