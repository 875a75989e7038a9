"""Shared helpers for Hue API endpoint modules.

Hue v1 reports failures inside a 200 response as a list of
``{"error": {"type": <int>, "address": ..., "description": ...}}`` items.
This module maps those onto the exception hierarchy.

It is internal to pyhiomehue and may change at any time.
"""

from __future__ import annotations

from typing import Any

from pyhiomehue._constants import HUE_ERROR_LINK_BUTTON_NOT_PRESSED, HUE_ERROR_UNAUTHORIZED
from pyhiomehue.exceptions import HueApiError, HueLinkNotPressedError, HueUnauthorizedError


def _first_error(result: Any) -> dict[str, Any] | None:
    items = result if isinstance(result, list) else [result]
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("error"), dict):
            return item["error"]
    return None


def raise_for_hue_error(result: Any, *, endpoint: str) -> None:
    """Raise the matching :class:`HueApiError` if *result* carries an error item."""
    error = _first_error(result)
    if error is None:
        return

    raw_type = error.get("type")
    code = raw_type if isinstance(raw_type, int) else None
    description = str(error.get("description", ""))
    message = f"{endpoint} failed: type={raw_type} description={description}"

    if code == HUE_ERROR_LINK_BUTTON_NOT_PRESSED:
        raise HueLinkNotPressedError(message, code=code, endpoint=endpoint)
    if code == HUE_ERROR_UNAUTHORIZED:
        raise HueUnauthorizedError(message, code=code, endpoint=endpoint)
    raise HueApiError(message, code=code, endpoint=endpoint)


def success_values(result: Any) -> list[dict[str, Any]]:
    """Collect the ``success`` objects of a Hue write response."""
    if not isinstance(result, list):
        return []
    return [item["success"] for item in result if isinstance(item, dict) and isinstance(item.get("success"), dict)]
