"""HTTP methods the server knows how to serve."""

from __future__ import annotations

METHODS: tuple[str, ...] = ("GET", "HEAD", "POST", "PUT", "DELETE", "TRACE")


def is_valid_method(method: str) -> bool:
    """True for a supported method name (case-sensitive)."""
    return method in METHODS