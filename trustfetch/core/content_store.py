"""Content-addressed cache of verified artifacts.

Storage layout: {cache_root}/{digest[0:2]}/{digest}-{base_name}

The two-character prefix directory bounds fan-out.  An entry's key always
equals the digest of its own bytes: ``write`` re-hashes the payload and
refuses anything else.  There is no update; ``purge`` exists only for
explicit operator cleanup.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path

from trustfetch.core.hasher import digest as compute_digest
from trustfetch.errors import TrustfetchError
from trustfetch.models.records import is_sentinel_digest

logger = logging.getLogger(__name__)

# One lock per two-hex-digit prefix directory.
_LOCK_STRIPES = 256


class CacheWriteError(TrustfetchError):
    """Raised when a verified artifact cannot be persisted."""


class CacheIntegrityError(TrustfetchError):
    """Raised when a write's key does not match the digest of its payload."""


class ContentStore:
    """Digest-keyed, on-disk artifact cache.

    Parameters
    ----------
    cache_root:
        Root directory for cached artifacts.  Created lazily on first write.
    """

    def __init__(self, cache_root: Path) -> None:
        self._root = Path(cache_root)
        # Writes are serialized per digest prefix; lookups are lock-free.
        self._locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def derive_path(self, digest: str, base_name: str) -> Path:
        """Deterministic storage path for (digest, base_name)."""
        if is_sentinel_digest(digest) or len(digest) < 2:
            raise ValueError(f"Not a cacheable digest: {digest!r}")
        safe_name = base_name.replace("/", "_").replace(os.sep, "_") or "artifact"
        return self._root / digest[:2] / f"{digest}-{safe_name}"

    def lookup(self, digest: str, base_name: str | None = None) -> Path | None:
        """Return the path of a cached entry for *digest*, or None.

        Without a base name, any entry for the digest is acceptable; entries
        sharing a digest are content-identical.
        """
        if is_sentinel_digest(digest) or len(digest) < 2:
            return None
        if base_name:
            path = self.derive_path(digest, base_name)
            if path.is_file():
                return path
        directory = self._root / digest[:2]
        if not directory.is_dir():
            return None
        for path in sorted(directory.glob(f"{digest}-*")):
            if path.is_file():
                return path
        return None

    def contains(self, digest: str) -> bool:
        return self.lookup(digest) is not None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write(self, algorithm: str, digest: str, base_name: str, data: bytes) -> Path:
        """Persist *data* under (digest, base_name) and return the path.

        The payload is re-hashed with *algorithm* before anything touches
        disk.  Writing content that is already cached is a no-op.

        Raises
        ------
        CacheIntegrityError
            If ``digest(algorithm, data) != digest``.
        CacheWriteError
            On any I/O failure.
        """
        actual = compute_digest(algorithm, data)
        if actual != digest:
            raise CacheIntegrityError(
                f"Refusing cache write: key {digest} does not match payload "
                f"digest {actual} ({algorithm})"
            )

        path = self.derive_path(digest, base_name)
        with self._lock_for(digest):
            if path.is_file() and path.read_bytes() == data:
                logger.debug("Cache entry %s already present.", path)
                return path
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=path.parent, prefix=f".{digest[:12]}-", suffix=".tmp"
                )
                try:
                    with os.fdopen(fd, "wb") as fh:
                        fh.write(data)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as exc:
                raise CacheWriteError(
                    f"Could not write cache entry {path}: {exc}"
                ) from exc

        logger.info("Cached %s (%d bytes) at %s.", digest, len(data), path)
        return path

    # ------------------------------------------------------------------
    # Read, verify, enumerate
    # ------------------------------------------------------------------

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def verify(self, algorithm: str, path: Path) -> bool:
        """Re-hash a cached file and compare against the digest in its name."""
        path = Path(path)
        if not path.is_file():
            return False
        expected = path.name.split("-", 1)[0]
        return compute_digest(algorithm, path.read_bytes()) == expected

    def entries(self) -> list[Path]:
        """All cached artifact paths, sorted."""
        if not self._root.is_dir():
            return []
        return sorted(
            p for p in self._root.glob("??/*")
            if p.is_file() and not p.name.startswith(".")
        )

    def purge(self, digest: str) -> int:
        """Delete every entry for *digest*.  Returns the number removed."""
        if is_sentinel_digest(digest) or len(digest) < 2:
            return 0
        removed = 0
        directory = self._root / digest[:2]
        with self._lock_for(digest):
            for path in directory.glob(f"{digest}-*"):
                path.unlink()
                removed += 1
        if removed:
            logger.info("Purged %d cache entr%s for %s.",
                        removed, "y" if removed == 1 else "ies", digest)
        return removed

    def _lock_for(self, digest: str) -> threading.Lock:
        return self._locks[int(digest[:2], 16)]
