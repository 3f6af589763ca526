"""Base exception for trustfetch.

Concrete errors live next to the code that raises them; they all derive
from ``TrustfetchError`` so callers can catch the whole family at once.
"""

from __future__ import annotations


class TrustfetchError(RuntimeError):
    """Root of every error raised by trustfetch."""
