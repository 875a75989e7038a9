"""Bus topic scheme.

Current topics follow the HomeStack ``hs/1/<namespace>/<device>/<property>``
layout. Legacy topics from older Hiome releases are still subscribed; see
:mod:`pyhiomehue.ingestion.mqtt` for how they are bridged forward.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

HIOME_NAMESPACE = "hs/1/com.hiome"
HUE_NAMESPACE = "hs/1/com.hiome.hue"

SUN_POSITION_TOPIC = f"{HIOME_NAMESPACE}/sun/position"
STATUS_TOPIC = f"{HUE_NAMESPACE}/connected"
NIGHT_ONLY_TOPIC = f"{HUE_NAMESPACE}/night_only"
NIGHT_ONLY_SET_TOPIC = f"{HUE_NAMESPACE}/night_only/$set"
SCAN_SET_TOPIC = f"{HUE_NAMESPACE}/scan/$set"
DISCONNECT_SET_TOPIC = f"{HUE_NAMESPACE}/disconnect/$set"

LEGACY_SENSOR_PREFIX = "hiome/1/sensor/"
LEGACY_HUE_NAMESPACE = "hiome/1/api/hue"
LEGACY_SCAN_TOPIC = f"{LEGACY_HUE_NAMESPACE}/scan"
LEGACY_DISCONNECT_TOPIC = f"{LEGACY_HUE_NAMESPACE}/disconnect"
LEGACY_NIGHT_ONLY_TOPIC = f"{LEGACY_HUE_NAMESPACE}/night_only"

SUBSCRIPTIONS: tuple[str, ...] = (
    f"{HIOME_NAMESPACE}/+/occupancy",
    f"{HIOME_NAMESPACE}/+/$name",
    SUN_POSITION_TOPIC,
    NIGHT_ONLY_SET_TOPIC,
    SCAN_SET_TOPIC,
    DISCONNECT_SET_TOPIC,
    f"{LEGACY_SENSOR_PREFIX}#",
    LEGACY_SCAN_TOPIC,
    LEGACY_DISCONNECT_TOPIC,
    LEGACY_NIGHT_ONLY_TOPIC,
)


def occupancy_topic(sensor_id: str) -> str:
    return f"{HIOME_NAMESPACE}/{sensor_id}/occupancy"


def name_topic(sensor_id: str) -> str:
    return f"{HIOME_NAMESPACE}/{sensor_id}/$name"


class TopicKind(StrEnum):
    OCCUPANCY = "occupancy"
    NAME = "name"
    SUN_POSITION = "sun_position"
    NIGHT_ONLY = "night_only"
    SCAN = "scan"
    DISCONNECT = "disconnect"
    LEGACY_SENSOR = "legacy_sensor"


@dataclass(frozen=True)
class TopicMatch:
    kind: TopicKind
    sensor_id: str | None = None
    legacy: bool = False


_EXACT_TOPICS: dict[str, TopicMatch] = {
    SUN_POSITION_TOPIC: TopicMatch(TopicKind.SUN_POSITION),
    NIGHT_ONLY_SET_TOPIC: TopicMatch(TopicKind.NIGHT_ONLY),
    SCAN_SET_TOPIC: TopicMatch(TopicKind.SCAN),
    DISCONNECT_SET_TOPIC: TopicMatch(TopicKind.DISCONNECT),
    LEGACY_SCAN_TOPIC: TopicMatch(TopicKind.SCAN, legacy=True),
    LEGACY_DISCONNECT_TOPIC: TopicMatch(TopicKind.DISCONNECT, legacy=True),
    LEGACY_NIGHT_ONLY_TOPIC: TopicMatch(TopicKind.NIGHT_ONLY, legacy=True),
}


def classify_topic(topic: str) -> TopicMatch | None:
    """Map an incoming topic to what it carries, or ``None`` if it is not ours."""
    exact = _EXACT_TOPICS.get(topic)
    if exact is not None:
        return exact

    if topic.startswith(LEGACY_SENSOR_PREFIX):
        return TopicMatch(TopicKind.LEGACY_SENSOR, legacy=True)

    prefix = f"{HIOME_NAMESPACE}/"
    if not topic.startswith(prefix):
        return None
    parts = topic[len(prefix) :].split("/")
    if len(parts) != 2 or not parts[0]:
        return None
    sensor_id, prop = parts
    if prop == "occupancy":
        return TopicMatch(TopicKind.OCCUPANCY, sensor_id=sensor_id)
    if prop == "$name":
        return TopicMatch(TopicKind.NAME, sensor_id=sensor_id)
    return None
