"""Format Validator — reviewed content must be structurally real source.

A digest match proves byte-identity; this check additionally keeps things
like an HTML error page from ever entering review or the cache.  Cache
replays skip it, since cached content passed it at write time.
"""

from __future__ import annotations

import ast
import json
from typing import Callable

from trustfetch.errors import TrustfetchError


class NotSourceFormatError(TrustfetchError):
    """Raised when fetched content does not parse in the expected format.

    Fatal for a load: it is never skipped in favor of another alternate.
    """


def _check_python(text: str, filename: str) -> None:
    ast.parse(text, filename=filename, mode="exec")


def _check_json(text: str, filename: str) -> None:
    json.loads(text)


_FORMATS: dict[str, Callable[[str, str], None]] = {
    "python": _check_python,
    "json": _check_json,
}


def supported_formats() -> list[str]:
    return sorted(_FORMATS)


def validate(content: bytes, expected_format: str = "python", *, origin: str = "<fetched>") -> str:
    """Check *content* and return its decoded text.

    Raises
    ------
    NotSourceFormatError
        If the bytes are not UTF-8 or do not parse as *expected_format*.
    ValueError
        If *expected_format* is unknown.
    """
    checker = _FORMATS.get(expected_format)
    if checker is None:
        raise ValueError(
            f"Unknown source format {expected_format!r}. "
            f"Known: {supported_formats()}"
        )
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise NotSourceFormatError(
            f"{origin} is not UTF-8 text: {exc}"
        ) from exc
    try:
        checker(text, origin)
    except (SyntaxError, ValueError) as exc:
        raise NotSourceFormatError(
            f"{origin} is not well-formed {expected_format} source: {exc}"
        ) from exc
    return text
