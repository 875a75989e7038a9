"""Bridge discovery and configuration models."""

from __future__ import annotations

from pydantic import Field, field_validator

from pyhiomehue.models._base import HueBaseModel


class DiscoveredBridge(HueBaseModel):
    """A bridge candidate returned by one of the discovery strategies.

    The N-UPnP service reports ``internalipaddress``; mDNS results are
    built with ``host`` directly.
    """

    host: str = Field(validation_alias="internalipaddress")
    id: str | None = None
    port: int | None = None
    source: str = ""

    @field_validator("host")
    @classmethod
    def _normalize_host(cls, value: str) -> str:
        host = value.strip()
        if not host:
            raise ValueError("host must be non-empty")
        return host


class BridgeConfig(HueBaseModel):
    """Unauthenticated subset of ``GET /api/config``."""

    name: str = ""
    bridgeid: str = ""
    modelid: str = ""
    apiversion: str = ""
    swversion: str = ""
