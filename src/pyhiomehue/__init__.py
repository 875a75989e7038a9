"""pyhiomehue - Drive Hue light groups from Hiome occupancy events."""

from importlib.metadata import PackageNotFoundError, version

from pyhiomehue.app import HiomeHueService
from pyhiomehue.client import HueClient
from pyhiomehue.config import HiomeHueConfig
from pyhiomehue.exceptions import (
    AmbiguousBridgeError,
    HiomeHueConfigError,
    HiomeHueError,
    HueApiError,
    HueError,
    HueLinkNotPressedError,
    HueTransportError,
    HueUnauthorizedError,
    NoBridgeFoundError,
    PairingError,
    PayloadError,
    PersistenceError,
)
from pyhiomehue.models import BridgeConfig, DiscoveredBridge, Group
from pyhiomehue.pairing import BridgePairer, FailureReason, PairingOutcome, PairingState
from pyhiomehue.reconciler import MatchScheme, Reconciler, SyncContext
from pyhiomehue.sanitize import sanitize_name
from pyhiomehue.session import BridgeConnection
from pyhiomehue.state.store import PersistedState, StateStore

try:
    __version__ = version("pyhiomehue")
except PackageNotFoundError:
    __version__ = "0+local"

__all__ = [
    "__version__",
    "AmbiguousBridgeError",
    "BridgeConfig",
    "BridgeConnection",
    "BridgePairer",
    "DiscoveredBridge",
    "FailureReason",
    "Group",
    "HiomeHueConfig",
    "HiomeHueConfigError",
    "HiomeHueError",
    "HiomeHueService",
    "HueApiError",
    "HueClient",
    "HueError",
    "HueLinkNotPressedError",
    "HueTransportError",
    "HueUnauthorizedError",
    "MatchScheme",
    "NoBridgeFoundError",
    "PairingError",
    "PairingOutcome",
    "PairingState",
    "PayloadError",
    "PersistedState",
    "PersistenceError",
    "Reconciler",
    "StateStore",
    "SyncContext",
    "sanitize_name",
]
