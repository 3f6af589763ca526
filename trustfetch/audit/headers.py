"""Metadata header reader.

Headers are ``# Key: value`` comment lines at the top of a source file,
before the first line of code::

    #!/usr/bin/env python3
    # Immutable-Resolver: latest_release_url
    # Tracking-Branch: stable
"""

from __future__ import annotations

import re

_HEADER_RE = re.compile(r"^#\s*([A-Za-z][A-Za-z0-9_-]*)\s*:\s*(.*?)\s*$")


def read_headers(text: str) -> dict[str, str]:
    """All headers in the leading comment block, keys lowercased."""
    headers: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        match = _HEADER_RE.match(stripped)
        if match and match.group(2):
            headers.setdefault(match.group(1).lower(), match.group(2))
    return headers


def read_header(text: str, key: str) -> str | None:
    """Value of header *key* (case-insensitive), or None when absent."""
    return read_headers(text).get(key.lower())
