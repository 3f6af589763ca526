"""Shared test fixtures for trustfetch."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from trustfetch.core.content_store import ContentStore
from trustfetch.core.failure_registry import FailureRegistry
from trustfetch.core.fetcher import Fetcher
from trustfetch.core.hasher import sha256_hex
from trustfetch.session import TrustSession

from tests.sources import GOOD_SOURCE


class FakeWeb:
    """In-memory web for ``httpx.MockTransport``.

    Routes map a URL to bytes (200), an int (that status), or an exception
    instance to raise.
    """

    def __init__(self) -> None:
        self.routes: dict[str, object] = {}
        self.requests: list[str] = []

    def __setitem__(self, url: str, value: object) -> None:
        self.routes[url] = value

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        value = self.routes.get(url, 404)
        if isinstance(value, Exception):
            raise value
        if isinstance(value, int):
            return httpx.Response(value, request=request)
        if isinstance(value, (dict, list)):
            return httpx.Response(200, json=value, request=request)
        return httpx.Response(200, content=value, request=request)

    def count(self, url: str) -> int:
        return self.requests.count(url)


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> ContentStore:
    """Provide a fresh ContentStore in a temp directory."""
    return ContentStore(tmp_dir / "cache")


@pytest.fixture
def failures() -> FailureRegistry:
    return FailureRegistry()


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture
def http_client(web: FakeWeb) -> httpx.Client:
    client = httpx.Client(transport=httpx.MockTransport(web.handler))
    yield client
    client.close()


@pytest.fixture
def fetcher(http_client: httpx.Client) -> Fetcher:
    return Fetcher(client=http_client, timeout=5.0)


@pytest.fixture
def session(tmp_dir: Path, http_client: httpx.Client) -> TrustSession:
    """A TrustSession backed by the fake web and a temp cache."""
    with TrustSession(cache_dir=tmp_dir / "cache", client=http_client) as s:
        yield s


@pytest.fixture
def write_file(tmp_dir: Path) -> Callable[[str, bytes], Path]:
    """Factory fixture: write bytes to a file under the temp dir."""

    def _factory(name: str, content: bytes) -> Path:
        path = tmp_dir / "files" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _factory


@pytest.fixture
def good_digest() -> str:
    return sha256_hex(GOOD_SOURCE)
