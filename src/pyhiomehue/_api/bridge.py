"""Bridge health check and user (credential) endpoints."""

from __future__ import annotations

import logging

from pyhiomehue._api._common import raise_for_hue_error, success_values
from pyhiomehue._transport import Transport
from pyhiomehue.exceptions import HueApiError, HueTransportError, HueUnauthorizedError
from pyhiomehue.models.bridge import BridgeConfig

_logger = logging.getLogger(__name__)


async def ping(transport: Transport, host: str) -> BridgeConfig:
    """Fetch the public bridge config; raises if *host* is not a Hue bridge."""
    endpoint = f"{host}/api/config"
    result = await transport.request_json("GET", f"http://{host}/api/config")
    raise_for_hue_error(result, endpoint=endpoint)
    if not isinstance(result, dict) or not result.get("bridgeid"):
        raise HueTransportError(f"{endpoint} did not answer like a Hue bridge", endpoint=endpoint)
    return BridgeConfig.model_validate(result)


async def is_authenticated(transport: Transport, host: str, username: str) -> bool:
    """Return whether *username* is whitelisted on the bridge at *host*.

    Transport failures propagate; only an explicit "unauthorized user"
    answer yields ``False``.
    """
    endpoint = f"{host}/api/<redacted>/lights"
    result = await transport.request_json("GET", f"http://{host}/api/{username}/lights")
    try:
        raise_for_hue_error(result, endpoint=endpoint)
    except HueUnauthorizedError:
        return False
    return isinstance(result, dict)


async def create_user(transport: Transport, host: str, device_type: str) -> str:
    """Register a new whitelisted user and return its username.

    Raises
    ------
    HueLinkNotPressedError
        The bridge link button has not been pressed recently.
    """
    endpoint = f"{host}/api"
    result = await transport.request_json("POST", f"http://{host}/api", {"devicetype": device_type})
    raise_for_hue_error(result, endpoint=endpoint)
    for success in success_values(result):
        username = success.get("username")
        if isinstance(username, str) and username:
            _logger.info("Registered new user on bridge %s", host)
            return username
    raise HueApiError(f"{endpoint} returned no username", endpoint=endpoint)
