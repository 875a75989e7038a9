"""Service configuration for pyhiomehue."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyhiomehue._constants import DEFAULT_DEVICE_TYPE, DEFAULT_STATE_PATH, DISCOVERY_URL
from pyhiomehue.exceptions import HiomeHueConfigError

MATCH_SCHEMES: frozenset[str] = frozenset({"exact", "daytime"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class HiomeHueConfig:
    """Service configuration.

    Parameters
    ----------
    state_path : str
        JSON file holding the bridge credential and sensor state.
    mqtt_host : str
        Hostname of the Hiome MQTT broker.
    mqtt_port : int
        Broker port.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_client_id : str
        Client id presented to the broker. Empty lets paho pick one.
    device_type : str
        ``devicetype`` sent when registering a new user on the bridge.
    discovery_url : str
        N-UPnP discovery endpoint.
    mdns_timeout : float
        Seconds to browse mDNS for bridges during a scan.
    request_timeout : float
        Total timeout in seconds for a single bridge HTTP request.
    scan_interval : float
        Fixed delay between automatic scans while no bridge is connected.
    scan_debounce : float
        Window in seconds during which repeated manual scan or
        disconnect requests are ignored.
    auto_scan : bool
        Start scanning for a bridge as soon as the service starts.
    match_scheme : str
        ``"exact"`` matches groups by sanitized room name only;
        ``"daytime"`` prefers a ``"<room> Daytime"`` group when it is not night.
    """

    state_path: str = DEFAULT_STATE_PATH
    mqtt_host: str = "hiome.local"
    mqtt_port: int = 1883
    mqtt_keepalive: int = 60
    mqtt_client_id: str = ""
    device_type: str = DEFAULT_DEVICE_TYPE
    discovery_url: str = DISCOVERY_URL
    mdns_timeout: float = 3.0
    request_timeout: float = 10.0
    scan_interval: float = 30.0
    scan_debounce: float = 15.0
    auto_scan: bool = True
    match_scheme: str = "exact"

    def __post_init__(self) -> None:
        if not self.state_path:
            raise HiomeHueConfigError("state_path must be non-empty")
        if not self.mqtt_host:
            raise HiomeHueConfigError("mqtt_host must be non-empty")
        if not 0 < self.mqtt_port < 65536:
            raise HiomeHueConfigError(f"mqtt_port out of range: {self.mqtt_port}")
        if self.scan_interval <= 0:
            raise HiomeHueConfigError("scan_interval must be positive")
        if self.scan_debounce < 0:
            raise HiomeHueConfigError("scan_debounce must not be negative")
        if self.match_scheme not in MATCH_SCHEMES:
            raise HiomeHueConfigError(
                f"match_scheme must be one of {sorted(MATCH_SCHEMES)}, got {self.match_scheme!r}"
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> HiomeHueConfig:
        """Create configuration from environment variables.

        Reads optional ``HIOMEHUE_*`` variables. Explicit keyword arguments
        override environment values.

        Raises
        ------
        HiomeHueConfigError
            If a numeric variable cannot be parsed or a value is invalid.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "HIOMEHUE_STATE_PATH": "state_path",
            "HIOMEHUE_MQTT_HOST": "mqtt_host",
            "HIOMEHUE_MQTT_CLIENT_ID": "mqtt_client_id",
            "HIOMEHUE_DEVICE_TYPE": "device_type",
            "HIOMEHUE_DISCOVERY_URL": "discovery_url",
            "HIOMEHUE_MATCH_SCHEME": "match_scheme",
        }
        _ENV_NUMERIC_MAP: dict[str, tuple[str, type]] = {
            "HIOMEHUE_MQTT_PORT": ("mqtt_port", int),
            "HIOMEHUE_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
            "HIOMEHUE_MDNS_TIMEOUT": ("mdns_timeout", float),
            "HIOMEHUE_REQUEST_TIMEOUT": ("request_timeout", float),
            "HIOMEHUE_SCAN_INTERVAL": ("scan_interval", float),
            "HIOMEHUE_SCAN_DEBOUNCE": ("scan_debounce", float),
        }

        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val.strip()

        for env_key, (field_name, kind) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = kind(val)
            except ValueError as exc:
                raise HiomeHueConfigError(f"{env_key} is not a valid {kind.__name__}: {val!r}") from exc

        if "auto_scan" not in overrides:
            config_kwargs["auto_scan"] = _env_bool(env.get("HIOMEHUE_AUTO_SCAN"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
