"""Internal constants shared across the library."""

DISCOVERY_URL = "https://discovery.meethue.com/"
MDNS_SERVICE_TYPE = "_hue._tcp.local."
USER_AGENT = "pyhiomehue"

DEFAULT_DEVICE_TYPE = "Hiome"
DEFAULT_STATE_PATH = "hue.json"

# ------------------------------------------------------------------
# Hue v1 API error types
# ------------------------------------------------------------------

HUE_ERROR_UNAUTHORIZED = 1
HUE_ERROR_LINK_BUTTON_NOT_PRESSED = 101

# ------------------------------------------------------------------
# Sun positions reported on the bus
# ------------------------------------------------------------------

NIGHT_POSITIONS: frozenset[str] = frozenset({"sunset", "night"})
DAY_POSITIONS: frozenset[str] = frozenset({"sunrise", "day"})

DAYTIME_SUFFIX = " daytime"
