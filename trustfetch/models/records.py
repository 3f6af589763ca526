"""Trust records and locations — what a call site is willing to execute.

A ``TrustRecord`` pins content by (algorithm, digest) and lists where that
content may be fetched from.  Records are frozen; an approved update mints a
replacement record rather than editing the old one.
"""

from __future__ import annotations

import json
import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union
from urllib.parse import urlsplit
from urllib.request import url2pathname

from pydantic import BaseModel, ConfigDict, Field

# Sentinel digests.  Real digests are lowercase hex, so these never match.
UNSET_DIGEST = "UNSET"
AUDIT_FAILED_DIGEST = "AUDIT-FAILED"

# Informational tag in the alternates list, placed before a demoted primary.
OLD_MARKER = "OLD"

_HEX_DIGEST_RE = re.compile(r"[0-9a-f]+")


class HashAlgorithm(str, Enum):
    """Digest algorithms accepted in a trust record."""

    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"
    SHA3_256 = "sha3_256"
    SHA3_512 = "sha3_512"
    BLAKE2B = "blake2b"
    BLAKE2S = "blake2s"


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


class LocalPath(BaseModel):
    """A file on the local filesystem."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    path: Path

    @property
    def base_name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return str(self.path)


class RemoteURL(BaseModel):
    """An ``http://`` or ``https://`` resource."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    url: str

    @property
    def base_name(self) -> str:
        parts = urlsplit(self.url)
        name = parts.path.rstrip("/").rsplit("/", 1)[-1]
        return name or parts.netloc

    def __str__(self) -> str:
        return self.url


Location = Annotated[Union[LocalPath, RemoteURL], Field(discriminator="kind")]


def parse_location(text: str) -> LocalPath | RemoteURL:
    """Parse a persisted location string into a ``Location``.

    ``http(s)://`` becomes a ``RemoteURL``; ``file://`` URLs and anything
    else are local paths.
    """
    scheme = urlsplit(text).scheme.lower()
    if scheme in ("http", "https"):
        return RemoteURL(url=text)
    if scheme == "file":
        return LocalPath(path=Path(url2pathname(urlsplit(text).path)))
    return LocalPath(path=Path(text).expanduser())


def is_sentinel_digest(digest: str) -> bool:
    """Return True if *digest* can never match a computed digest."""
    return not _HEX_DIGEST_RE.fullmatch(digest)


# ---------------------------------------------------------------------------
# Trust record
# ---------------------------------------------------------------------------


class TrustRecord(BaseModel):
    """The tuple of algorithm, expected digest and locations for one call site.

    ``alternates`` keeps the persisted strings as written, including any
    ``OLD`` provenance markers; use ``candidate_locations()`` to get only the
    fetchable entries.

    Examples
    --------
    >>> rec = TrustRecord(
    ...     algorithm="sha256",
    ...     expected_digest="UNSET",
    ...     primary="https://example.org/lib.py",
    ... )
    >>> rec.is_sentinel
    True
    """

    model_config = ConfigDict(frozen=True)

    algorithm: str
    expected_digest: str
    primary: str
    alternates: tuple[str, ...] = ()

    @property
    def is_sentinel(self) -> bool:
        return is_sentinel_digest(self.expected_digest)

    @property
    def primary_location(self) -> LocalPath | RemoteURL:
        return parse_location(self.primary)

    def candidate_locations(self) -> list[LocalPath | RemoteURL]:
        """Primary followed by alternates, with provenance markers dropped."""
        locations = [self.primary_location]
        locations.extend(
            parse_location(alt) for alt in self.alternates if alt != OLD_MARKER
        )
        return locations

    def successor(self, new_primary: str, new_digest: str) -> TrustRecord:
        """Mint the replacement record for an audited update.

        The current primary is demoted into the alternates behind an ``OLD``
        marker.
        """
        return TrustRecord(
            algorithm=self.algorithm,
            expected_digest=new_digest,
            primary=new_primary,
            alternates=(OLD_MARKER, self.primary, *self.alternates),
        )

    def with_digest(self, digest: str) -> TrustRecord:
        return self.model_copy(update={"expected_digest": digest})

    def arguments(self) -> list[str]:
        """Positional fields in persisted order."""
        return [self.algorithm, self.expected_digest, self.primary, *self.alternates]

    def render(self, callee: str = "require_trusted") -> str:
        """Render the record as a call literal for embedding in source text."""
        args = ", ".join(json.dumps(arg) for arg in self.arguments())
        return f"{callee}({args})"
