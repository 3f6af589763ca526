"""Failure Registry — candidates that failed verification, kept for review.

Entries stay until an operator disposes of them; nothing is pruned
automatically.  Each session owns its own registry.
"""

from __future__ import annotations

import logging
import threading

from trustfetch.models.results import FailureRecord

logger = logging.getLogger(__name__)


class FailureRegistry:
    """In-memory list of ``FailureRecord`` entries, newest last."""

    def __init__(self) -> None:
        self._entries: list[FailureRecord] = []
        self._lock = threading.Lock()

    def record(self, content: bytes, location: str, reason: str) -> FailureRecord:
        entry = FailureRecord(content=content, location=location, reason=reason)
        with self._lock:
            self._entries.append(entry)
        logger.info("Recorded verification failure %s for %s: %s",
                    entry.failure_id, location, reason)
        return entry

    def peek_latest(self) -> FailureRecord | None:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def dispose(self, entry: FailureRecord | str) -> bool:
        """Remove one entry (by record or id).  Returns False if it was not present."""
        failure_id = entry if isinstance(entry, str) else entry.failure_id
        with self._lock:
            for index, existing in enumerate(self._entries):
                if existing.failure_id == failure_id:
                    del self._entries[index]
                    logger.debug("Disposed failure %s.", failure_id)
                    return True
        return False

    def entries(self) -> list[FailureRecord]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
