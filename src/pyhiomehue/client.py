"""High-level async client for the Hue bridge API."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from pyhiomehue._api import bridge as _bridge_api
from pyhiomehue._api import discovery as _discovery_api
from pyhiomehue._api import groups as _groups_api
from pyhiomehue._transport import JsonTransport, Transport
from pyhiomehue.config import HiomeHueConfig
from pyhiomehue.exceptions import HiomeHueError
from pyhiomehue.models.bridge import BridgeConfig, DiscoveredBridge
from pyhiomehue.models.group import Group
from pyhiomehue.session import BridgeConnection

_logger = logging.getLogger(__name__)


class HueClient:
    """Async client covering the bridge calls the service needs.

    Usage::

        async with HueClient(config) as client:
            bridges = await client.discover()
            await client.ping(bridges[0].host)
    """

    def __init__(
        self,
        config: HiomeHueConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> HueClient:
        if self._transport is None:
            if self._http_session is None:
                timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)
                self._http_session = aiohttp.ClientSession(timeout=timeout)
            self._transport = JsonTransport(self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise HiomeHueError("Client not initialized. Use 'async with HueClient(...) as client:'")
        return self._transport

    # ------------------------------------------------------------------
    # Pairing
    # ------------------------------------------------------------------

    async def discover(self) -> list[DiscoveredBridge]:
        """Discover candidate bridges with every strategy at once."""
        return await _discovery_api.discover_all(
            self._require_transport(),
            url=self._config.discovery_url,
            mdns_timeout=self._config.mdns_timeout,
        )

    async def ping(self, host: str) -> BridgeConfig:
        """Health-check a candidate bridge."""
        return await _bridge_api.ping(self._require_transport(), host)

    async def is_authenticated(self, host: str, username: str) -> bool:
        """Whether *username* still authenticates on *host*."""
        return await _bridge_api.is_authenticated(self._require_transport(), host, username)

    async def create_user(self, host: str) -> str:
        """Register a new credential; needs the link button pressed."""
        return await _bridge_api.create_user(self._require_transport(), host, self._config.device_type)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def get_groups(self, connection: BridgeConnection) -> list[Group]:
        """Fetch all light groups."""
        return await _groups_api.fetch_groups(self._require_transport(), connection)

    async def save_group(self, connection: BridgeConnection, group: Group) -> None:
        """Apply the group's on-state on the bridge."""
        _logger.debug("Saving group %s (%s) on=%s", group.id, group.name, group.on)
        await _groups_api.save_group(self._require_transport(), connection, group)
