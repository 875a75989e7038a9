"""HTTP transport for the Hue bridge REST API and the discovery service."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol
from urllib.parse import urlsplit

import aiohttp

from pyhiomehue._constants import USER_AGENT
from pyhiomehue._redact import redact_for_log, redact_path
from pyhiomehue.exceptions import HueTransportError

_logger = logging.getLogger(__name__)


def endpoint_label(url: str) -> str:
    """Host plus redacted path, used in logs and error messages."""
    parts = urlsplit(url)
    return f"{parts.netloc}{redact_path(parts.path or '/')}"


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`JsonTransport`) concrete.
    """

    async def request_json(self, method: str, url: str, payload: Any = None) -> Any:
        ...


class JsonTransport:
    """Plain JSON-over-HTTP transport bound to one aiohttp session."""

    def __init__(self, http_session: aiohttp.ClientSession) -> None:
        self._http = http_session

    async def request_json(self, method: str, url: str, payload: Any = None) -> Any:
        """Send *payload* as JSON and return the decoded JSON reply.

        Raises
        ------
        HueTransportError
            On connection failures, non-200 status codes and bodies that
            are not JSON.
        """
        endpoint = endpoint_label(url)
        headers = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        data: str | None = None
        if payload is not None:
            headers["content-type"] = "application/json"
            data = json.dumps(payload, separators=(",", ":"))

        _logger.debug("%s %s body=%s", method, endpoint, redact_for_log(payload))

        try:
            async with self._http.request(method, url, data=data, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise HueTransportError(
                        f"HTTP {resp.status} from {endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=endpoint,
                    )
        except HueTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise HueTransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise HueTransportError(
                f"Invalid JSON from {endpoint}: {text[:200]}",
                endpoint=endpoint,
            ) from exc

        _logger.debug("%s %s reply=%s", method, endpoint, redact_for_log(result))
        return result
