"""Bridge discovery strategies.

Two independent strategies are raced together:

* N-UPnP: the Hue cloud lists bridges that phoned home from this public IP.
* mDNS: bridges advertise ``_hue._tcp.local.`` on the LAN.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from zeroconf import ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from pyhiomehue._constants import MDNS_SERVICE_TYPE
from pyhiomehue._transport import Transport
from pyhiomehue.exceptions import HueError, HueTransportError
from pyhiomehue.models.bridge import DiscoveredBridge

_logger = logging.getLogger(__name__)

_MDNS_INFO_TIMEOUT_MS = 3000


async def discover_nupnp(transport: Transport, url: str) -> list[DiscoveredBridge]:
    """Query the N-UPnP discovery endpoint."""
    result = await transport.request_json("GET", url)
    if not isinstance(result, list):
        raise HueTransportError(f"Discovery endpoint returned {type(result).__name__}", endpoint=url)
    bridges: list[DiscoveredBridge] = []
    for item in result:
        if not isinstance(item, dict) or not item.get("internalipaddress"):
            continue
        bridges.append(DiscoveredBridge.model_validate({**item, "source": "nupnp"}))
    return bridges


async def discover_mdns(timeout: float) -> list[DiscoveredBridge]:
    """Browse mDNS for *timeout* seconds and resolve every Hue service found."""
    names: set[str] = set()

    def on_service_state_change(
        zeroconf: Zeroconf,
        service_type: str,
        name: str,
        state_change: ServiceStateChange,
    ) -> None:
        if state_change is ServiceStateChange.Added:
            names.add(name)

    aiozc = AsyncZeroconf()
    browser = AsyncServiceBrowser(aiozc.zeroconf, [MDNS_SERVICE_TYPE], handlers=[on_service_state_change])
    try:
        await asyncio.sleep(timeout)
        bridges: list[DiscoveredBridge] = []
        for name in sorted(names):
            info = AsyncServiceInfo(MDNS_SERVICE_TYPE, name)
            if not await info.async_request(aiozc.zeroconf, _MDNS_INFO_TIMEOUT_MS):
                _logger.debug("mDNS service %s did not resolve", name)
                continue
            addresses = info.parsed_addresses()
            if not addresses:
                continue
            bridge_id = info.properties.get(b"bridgeid")
            bridges.append(
                DiscoveredBridge(
                    host=addresses[0],
                    id=bridge_id.decode("ascii", errors="replace") if bridge_id else None,
                    port=info.port,
                    source="mdns",
                )
            )
        return bridges
    finally:
        await browser.async_cancel()
        await aiozc.async_close()


async def discover_all(
    transport: Transport,
    *,
    url: str,
    mdns_timeout: float,
) -> list[DiscoveredBridge]:
    """Run both strategies concurrently and merge their candidates.

    Candidates are deduplicated by host, first seen wins. A strategy that
    fails is logged and ignored as long as the other one answered.

    Raises
    ------
    HueTransportError
        Both strategies failed.
    """
    results: list[Any] = await asyncio.gather(
        discover_nupnp(transport, url),
        discover_mdns(mdns_timeout),
        return_exceptions=True,
    )

    failures: list[BaseException] = []
    merged: dict[str, DiscoveredBridge] = {}
    for strategy, result in zip(("nupnp", "mdns"), results, strict=True):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            if isinstance(result, (HueError, OSError)):
                _logger.debug("Discovery strategy %s failed: %s", strategy, result)
            else:
                _logger.warning("Discovery strategy %s failed unexpectedly", strategy, exc_info=result)
            failures.append(result)
            continue
        for bridge in result:
            merged.setdefault(bridge.host, bridge)

    if len(failures) == len(results):
        raise HueTransportError(f"All discovery strategies failed: {failures[0]}") from failures[0]
    return list(merged.values())
