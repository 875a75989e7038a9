"""Authenticated bridge session handle."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field


class BridgeConnection(BaseModel):
    """One authenticated session to a single Hue bridge.

    Parameters
    ----------
    host : str
        Bridge address as discovered and validated.
    username : str
        Whitelisted user (the credential) used in every API path.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) of the pairing.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    host: str
    username: str = Field(repr=False)
    created_at: float = Field(default_factory=time.monotonic)

    @property
    def base_url(self) -> str:
        """Root of the authenticated API, ``http://<host>/api/<username>``."""
        return f"http://{self.host}/api/{self.username}"
