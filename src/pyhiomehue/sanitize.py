"""Canonical room/group names used to join bus sensors to bridge groups."""

from __future__ import annotations

import re

_DISALLOWED_RE = re.compile(r"[^\w\s\-]")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_name(value: str) -> str:
    """Canonicalize *value* for matching.

    Keeps word characters, whitespace, ``_`` and ``-``; collapses
    whitespace runs to a single space; trims; lowercases.

    >>> sanitize_name("  Kid's   Bedroom! ")
    'kids bedroom'
    """
    # Lowercase first: some characters lowercase into combining marks that
    # the filter below would then remove on a second pass.
    stripped = _DISALLOWED_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub(" ", stripped).strip()
