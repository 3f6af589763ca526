"""Digest Engine — named-algorithm digests over raw bytes."""

from __future__ import annotations

import hashlib
import hmac

from trustfetch.errors import TrustfetchError
from trustfetch.models.records import HashAlgorithm

SUPPORTED_ALGORITHMS: frozenset[str] = frozenset(a.value for a in HashAlgorithm)


class UnsupportedAlgorithmError(TrustfetchError):
    """Raised when a trust record names an algorithm outside the supported set.

    This is a configuration problem, never a per-candidate condition.
    """


def check_algorithm(algorithm: str) -> str:
    """Return *algorithm* unchanged, or raise if it is not supported."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedAlgorithmError(
            f"Unsupported digest algorithm {algorithm!r}. "
            f"Supported: {sorted(SUPPORTED_ALGORITHMS)}"
        )
    return algorithm


def digest(algorithm: str, data: bytes) -> str:
    """Return the lowercase hex digest of *data* under *algorithm*."""
    return hashlib.new(check_algorithm(algorithm), data).hexdigest()


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return digest(HashAlgorithm.SHA256.value, data)


def digests_equal(computed: str, expected: str) -> bool:
    """Exact, whole-value comparison in constant time.  Prefixes never match."""
    return hmac.compare_digest(computed.encode("utf-8"), expected.encode("utf-8"))
