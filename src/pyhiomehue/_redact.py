"""Helpers for safe debug logging.

A Hue username is a bearer credential: anyone holding it controls the
bridge. It shows up in request paths and in user-creation responses, so
both are scrubbed before DEBUG logs.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "username",
        "hueusername",
        "clientkey",
        "whitelist",
    }
)

_API_PATH_RE = re.compile(r"^(/api/)([^/]+)(/.*)?$")


def redact_path(path: str) -> str:
    """Mask the username segment of a ``/api/<username>/...`` path."""
    match = _API_PATH_RE.match(path)
    if match is None:
        return path
    return f"{match.group(1)}<redacted>{match.group(3) or ''}"


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)
