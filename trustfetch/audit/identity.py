"""Immutable-identity resolvers — where does the latest pinned content live?

Given trusted content, a resolver answers with a location guaranteed to
keep resolving to the same bytes (e.g. a commit-pinned URL), or ``None``
when it has nothing to say about this record.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import quote, urlsplit

from trustfetch.audit.headers import read_header
from trustfetch.config import config
from trustfetch.core.fetcher import Fetcher
from trustfetch.core.loader import exec_module
from trustfetch.errors import TrustfetchError
from trustfetch.models.results import TrustedContent

logger = logging.getLogger(__name__)

RESOLVER_HEADER = "Immutable-Resolver"
BRANCH_HEADER = "Tracking-Branch"


class IdentityResolutionError(TrustfetchError):
    """Raised when a resolver applies but fails to produce a location."""


class IdentityResolver(Protocol):
    def resolve(self, trusted: TrustedContent) -> str | None: ...


class HeaderFunctionResolver:
    """Calls a function the trusted content names in its headers.

    The ``Immutable-Resolver`` header holds the name of a zero-argument
    function defined in the content.  The content has already been
    verified, so it is executed to obtain that function.
    """

    def resolve(self, trusted: TrustedContent) -> str | None:
        name = read_header(trusted.text, RESOLVER_HEADER)
        if name is None:
            return None
        try:
            module = exec_module(f"_trustfetch_identity_{trusted.digest[:12]}")(trusted)
        except Exception as exc:
            raise IdentityResolutionError(
                f"Executing {trusted.record.primary} to resolve its identity failed: {exc}"
            ) from exc

        func = getattr(module, name, None)
        if not callable(func):
            raise IdentityResolutionError(
                f"{trusted.record.primary} names resolver {name!r} but defines no such function"
            )
        try:
            location = func()
        except Exception as exc:
            raise IdentityResolutionError(
                f"Resolver {name!r} from {trusted.record.primary} failed: {exc}"
            ) from exc
        if location is None:
            return None
        if not isinstance(location, str):
            raise IdentityResolutionError(
                f"Resolver {name!r} returned {type(location).__name__}, expected str"
            )
        return location


class GitHubResolver:
    """Pins ``raw.githubusercontent.com`` records to the latest commit touching the file.

    Protocol:

    1. Resolve the tracked branch to its head commit.
    2. Ask for the most recent commit on that history touching the path.
    3. Compose the raw URL for that commit.

    The tracked branch comes from the content's ``Tracking-Branch`` header,
    falling back to ``config.tracking_branch``.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        api_url: str | None = None,
        raw_url: str | None = None,
        branch: str | None = None,
        token: str | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._api = (api_url or config.github_api_url).rstrip("/")
        self._raw = (raw_url or config.github_raw_url).rstrip("/")
        self._branch = branch or config.tracking_branch
        self._token = token if token is not None else config.github_token

    def parse_raw_url(self, url: str) -> tuple[str, str, str, str] | None:
        """Split a raw URL into (owner, repo, ref, path), or None if foreign."""
        raw_host = urlsplit(self._raw).netloc
        parts = urlsplit(url)
        if parts.netloc != raw_host:
            return None
        segments = parts.path.strip("/").split("/")
        if len(segments) < 4:
            return None
        owner, repo, ref = segments[:3]
        return owner, repo, ref, "/".join(segments[3:])

    def resolve(self, trusted: TrustedContent) -> str | None:
        coords = self.parse_raw_url(trusted.record.primary)
        if coords is None:
            return None
        owner, repo, _ref, path = coords
        branch = read_header(trusted.text, BRANCH_HEADER) or self._branch

        branch_info = self._get(f"/repos/{owner}/{repo}/branches/{quote(branch, safe='')}")
        try:
            head = branch_info["commit"]["sha"]
        except (KeyError, TypeError) as exc:
            raise IdentityResolutionError(
                f"No head commit for {owner}/{repo}@{branch}"
            ) from exc

        commits = self._get(
            f"/repos/{owner}/{repo}/commits?sha={head}&path={quote(path)}&per_page=1"
        )
        if not isinstance(commits, list) or not commits:
            raise IdentityResolutionError(
                f"No commit on {owner}/{repo}@{branch} touches {path}"
            )
        sha = commits[0].get("sha") if isinstance(commits[0], dict) else None
        if not sha or not re.fullmatch(r"[0-9a-f]{7,64}", sha):
            raise IdentityResolutionError(f"Malformed commit entry for {path}: {commits[0]!r}")

        location = f"{self._raw}/{owner}/{repo}/{sha}/{path}"
        logger.debug("Resolved %s@%s:%s to %s.", repo, branch, path, location)
        return location

    def _get(self, endpoint: str) -> object:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            return self._fetcher.get_json(f"{self._api}{endpoint}", headers=headers)
        except TrustfetchError as exc:
            raise IdentityResolutionError(str(exc)) from exc


class ChainResolver:
    """First resolver with an answer wins."""

    def __init__(self, *resolvers: IdentityResolver) -> None:
        self._resolvers = resolvers

    def resolve(self, trusted: TrustedContent) -> str | None:
        for resolver in self._resolvers:
            location = resolver.resolve(trusted)
            if location is not None:
                return location
        return None


def default_resolver(fetcher: Fetcher) -> ChainResolver:
    return ChainResolver(HeaderFunctionResolver(), GitHubResolver(fetcher))
