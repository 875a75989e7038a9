"""MQTT ingestion helpers.

This module turns raw bus messages into typed events. Messages on legacy
topics additionally produce the equivalent current-scheme messages so the
gateway can republish them once for forward migration.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pyhiomehue._constants import DAY_POSITIONS, NIGHT_POSITIONS
from pyhiomehue.exceptions import PayloadError
from pyhiomehue.ingestion.topics import (
    DISCONNECT_SET_TOPIC,
    NIGHT_ONLY_SET_TOPIC,
    SCAN_SET_TOPIC,
    SUN_POSITION_TOPIC,
    TopicKind,
    TopicMatch,
    classify_topic,
    name_topic,
    occupancy_topic,
)
from pyhiomehue.sanitize import sanitize_name
from pyhiomehue.state.events import (
    BusEvent,
    ControlAction,
    ControlEvent,
    DayNightEvent,
    NameEvent,
    OccupancyEvent,
    PolicyEvent,
)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class ForwardMessage:
    """A current-scheme message to publish in place of a legacy one."""

    topic: str
    payload: bytes
    retain: bool = False


@dataclass
class ParsedMessage:
    events: list[BusEvent] = field(default_factory=list)
    forward: list[ForwardMessage] = field(default_factory=list)


class _LegacyMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str = ""
    source: str = ""
    room: str | int | None = None
    name: str = ""


class _LegacySensorEnvelope(BaseModel):
    """``hiome/1/sensor/#`` payload: a value plus a ``meta`` block."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    val: Any = None
    ts: int | float | None = None
    meta: _LegacyMeta = Field(...)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode(value: dict[str, Any]) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def decode_payload(payload: bytes) -> Any:
    """JSON-decode *payload*, falling back to the stripped text for bare strings."""
    text = payload.decode("utf-8", errors="replace").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _unwrap_val(decoded: Any) -> Any:
    if isinstance(decoded, dict) and "val" in decoded:
        return decoded["val"]
    return decoded


def parse_occupied(value: Any, *, topic: str = "") -> bool:
    """Interpret an occupancy reading.

    Booleans are taken as-is; non-negative numbers are occupant counts.
    Anything else is malformed.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value < 0:
            raise PayloadError(f"Negative occupancy count {value!r}", topic=topic)
        return value > 0
    raise PayloadError(f"Occupancy value {value!r} is neither a bool nor a count", topic=topic)


def parse_flag(value: Any, *, topic: str = "") -> bool:
    """Interpret a boolean flag sent as a JSON bool, ``0``/``1`` or a word."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_STRINGS:
            return True
        if normalized in _FALSE_STRINGS:
            return False
    raise PayloadError(f"Flag value {value!r} is not a boolean", topic=topic)


def parse_sun_position(value: Any, *, topic: str = "") -> bool:
    """Return ``True`` for night positions, ``False`` for day positions."""
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in NIGHT_POSITIONS:
            return True
        if normalized in DAY_POSITIONS:
            return False
    raise PayloadError(f"Unknown sun position {value!r}", topic=topic)


def parse_name(value: Any, *, topic: str = "") -> str:
    if not isinstance(value, str):
        raise PayloadError(f"Name {value!r} is not a string", topic=topic)
    canonical = sanitize_name(value)
    if not canonical:
        raise PayloadError(f"Name {value!r} is empty once sanitized", topic=topic)
    return canonical


def _parse_legacy_sensor(topic: str, decoded: Any, retain: bool) -> ParsedMessage:
    # Sensors also publish battery and diagnostic messages without meta.
    if not isinstance(decoded, dict) or "meta" not in decoded:
        return ParsedMessage()
    try:
        envelope = _LegacySensorEnvelope.model_validate(decoded)
    except ValidationError as exc:
        raise PayloadError(f"Legacy sensor payload has no usable meta: {exc}", topic=topic) from exc

    meta = envelope.meta
    ts = int(envelope.ts) if envelope.ts is not None else _now_ms()
    parsed = ParsedMessage()

    if meta.type == "occupancy" and meta.source == "gateway":
        if meta.room is None or not str(meta.room).strip():
            raise PayloadError("Legacy occupancy payload has no room", topic=topic)
        sensor_id = str(meta.room).strip()
        occupied = parse_occupied(envelope.val, topic=topic)
        display_name = meta.name.replace("Occupancy", "").strip()
        canonical = sanitize_name(display_name) or None
        parsed.events.append(OccupancyEvent(sensor_id=sensor_id, occupied=occupied, name=canonical))
        if display_name:
            parsed.forward.append(ForwardMessage(name_topic(sensor_id), _encode({"val": display_name}), retain=True))
        parsed.forward.append(
            ForwardMessage(occupancy_topic(sensor_id), _encode({"val": occupied, "ts": ts}), retain=retain)
        )
    elif meta.type == "solar" and meta.name == "Sun":
        is_night = parse_sun_position(envelope.val, topic=topic)
        position = str(envelope.val).strip().lower()
        parsed.events.append(DayNightEvent(position=position, is_night=is_night))
        parsed.forward.append(ForwardMessage(SUN_POSITION_TOPIC, _encode({"val": position, "ts": ts}), retain=retain))
    return parsed


def parse_message(topic: str, payload: bytes, *, retain: bool = False) -> ParsedMessage | None:
    """Parse one bus message.

    Returns ``None`` for topics that are not ours and for empty payloads
    (cleared retained messages).

    Raises
    ------
    PayloadError
        The topic is ours but the payload is malformed.
    """
    match = classify_topic(topic)
    if match is None or not payload:
        return None

    decoded = decode_payload(payload)
    try:
        if match.kind is TopicKind.LEGACY_SENSOR:
            return _parse_legacy_sensor(topic, decoded, retain)
        return _parse_current(topic, match, decoded, payload, retain)
    except ValidationError as exc:
        raise PayloadError(f"Invalid event from {topic}: {exc}", topic=topic) from exc


def _parse_current(topic: str, match: TopicMatch, decoded: Any, payload: bytes, retain: bool) -> ParsedMessage:
    value = _unwrap_val(decoded)
    parsed = ParsedMessage()

    if match.kind is TopicKind.OCCUPANCY:
        assert match.sensor_id is not None  # noqa: S101
        parsed.events.append(OccupancyEvent(sensor_id=match.sensor_id, occupied=parse_occupied(value, topic=topic)))
    elif match.kind is TopicKind.NAME:
        assert match.sensor_id is not None  # noqa: S101
        parsed.events.append(NameEvent(sensor_id=match.sensor_id, name=parse_name(value, topic=topic)))
    elif match.kind is TopicKind.SUN_POSITION:
        is_night = parse_sun_position(value, topic=topic)
        parsed.events.append(DayNightEvent(position=str(value).strip().lower(), is_night=is_night))
    elif match.kind is TopicKind.NIGHT_ONLY:
        parsed.events.append(PolicyEvent(night_only=parse_flag(value, topic=topic)))
        if match.legacy:
            parsed.forward.append(ForwardMessage(NIGHT_ONLY_SET_TOPIC, payload, retain=retain))
    elif match.kind is TopicKind.SCAN:
        parsed.events.append(ControlEvent(action=ControlAction.SCAN))
        if match.legacy:
            parsed.forward.append(ForwardMessage(SCAN_SET_TOPIC, payload, retain=retain))
    elif match.kind is TopicKind.DISCONNECT:
        parsed.events.append(ControlEvent(action=ControlAction.DISCONNECT))
        if match.legacy:
            parsed.forward.append(ForwardMessage(DISCONNECT_SET_TOPIC, payload, retain=retain))
    return parsed
