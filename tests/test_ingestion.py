from __future__ import annotations

import json

import pytest

from pyhiomehue.exceptions import PayloadError
from pyhiomehue.ingestion.mqtt import ForwardMessage, parse_flag, parse_message, parse_occupied
from pyhiomehue.ingestion.topics import (
    DISCONNECT_SET_TOPIC,
    NIGHT_ONLY_SET_TOPIC,
    SCAN_SET_TOPIC,
    SUN_POSITION_TOPIC,
    TopicKind,
    classify_topic,
    name_topic,
    occupancy_topic,
)
from pyhiomehue.state.events import (
    ControlAction,
    ControlEvent,
    DayNightEvent,
    NameEvent,
    OccupancyEvent,
    PolicyEvent,
)


def _json(value: object) -> bytes:
    return json.dumps(value).encode("utf-8")


@pytest.mark.parametrize(
    ("topic", "kind", "sensor_id", "legacy"),
    [
        ("hs/1/com.hiome/r1/occupancy", TopicKind.OCCUPANCY, "r1", False),
        ("hs/1/com.hiome/r1/$name", TopicKind.NAME, "r1", False),
        ("hs/1/com.hiome/sun/position", TopicKind.SUN_POSITION, None, False),
        ("hs/1/com.hiome.hue/night_only/$set", TopicKind.NIGHT_ONLY, None, False),
        ("hs/1/com.hiome.hue/scan/$set", TopicKind.SCAN, None, False),
        ("hs/1/com.hiome.hue/disconnect/$set", TopicKind.DISCONNECT, None, False),
        ("hiome/1/sensor/abc:occupancy", TopicKind.LEGACY_SENSOR, None, True),
        ("hiome/1/api/hue/scan", TopicKind.SCAN, None, True),
        ("hiome/1/api/hue/night_only", TopicKind.NIGHT_ONLY, None, True),
    ],
)
def test_classify_topic(topic: str, kind: TopicKind, sensor_id: str | None, legacy: bool) -> None:
    match = classify_topic(topic)

    assert match is not None
    assert (match.kind, match.sensor_id, match.legacy) == (kind, sensor_id, legacy)


@pytest.mark.parametrize(
    "topic",
    ["hs/1/com.hiome/r1/battery", "hs/1/com.hiome.hue/connected", "hs/1/com.hiome//occupancy", "other/topic"],
)
def test_classify_topic_ignores_foreign_topics(topic: str) -> None:
    assert classify_topic(topic) is None


def test_topic_builders() -> None:
    assert occupancy_topic("r1") == "hs/1/com.hiome/r1/occupancy"
    assert name_topic("r1") == "hs/1/com.hiome/r1/$name"


@pytest.mark.parametrize(("value", "expected"), [(True, True), (False, False), (0, False), (2, True), (1.0, True)])
def test_parse_occupied(value: object, expected: bool) -> None:
    assert parse_occupied(value) is expected


@pytest.mark.parametrize("value", [-1, "yes", None, [1]])
def test_parse_occupied_rejects_malformed(value: object) -> None:
    with pytest.raises(PayloadError):
        parse_occupied(value, topic="t")


@pytest.mark.parametrize(("value", "expected"), [(True, True), (0, False), ("on", True), (" False ", False)])
def test_parse_flag(value: object, expected: bool) -> None:
    assert parse_flag(value) is expected


def test_parse_flag_rejects_other_values() -> None:
    with pytest.raises(PayloadError):
        parse_flag(2)


def test_current_occupancy_message() -> None:
    parsed = parse_message(occupancy_topic("r1"), _json({"val": 1, "ts": 1}))

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, OccupancyEvent)
    assert (event.sensor_id, event.occupied, event.name) == ("r1", True, None)
    assert parsed.forward == []


def test_bare_occupancy_value_is_accepted() -> None:
    parsed = parse_message(occupancy_topic("r1"), b"false")

    assert parsed is not None
    assert parsed.events[0] == OccupancyEvent(
        sensor_id="r1", occupied=False, observed_at=parsed.events[0].observed_at
    )


def test_malformed_occupancy_raises_with_topic() -> None:
    with pytest.raises(PayloadError) as excinfo:
        parse_message(occupancy_topic("r1"), _json({"val": "maybe"}))

    assert excinfo.value.topic == occupancy_topic("r1")


def test_name_message_is_sanitized() -> None:
    parsed = parse_message(name_topic("r1"), _json({"val": "  Kid's  Room "}))

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, NameEvent)
    assert event.name == "kids room"


def test_empty_name_is_rejected() -> None:
    with pytest.raises(PayloadError):
        parse_message(name_topic("r1"), _json({"val": "!!!"}))


@pytest.mark.parametrize(
    ("raw", "is_night"),
    [("sunset", True), ("night", True), ("Sunrise", False), ("day", False)],
)
def test_sun_position(raw: str, is_night: bool) -> None:
    parsed = parse_message(SUN_POSITION_TOPIC, _json({"val": raw}))

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, DayNightEvent)
    assert event.is_night is is_night
    assert event.position == raw.lower()


def test_unknown_sun_position_is_rejected() -> None:
    with pytest.raises(PayloadError):
        parse_message(SUN_POSITION_TOPIC, _json({"val": "dusk"}))


def test_night_only_set_message() -> None:
    parsed = parse_message(NIGHT_ONLY_SET_TOPIC, b"true")

    assert parsed is not None
    assert [type(e) for e in parsed.events] == [PolicyEvent]
    assert parsed.events[0].night_only is True  # type: ignore[union-attr]
    assert parsed.forward == []


@pytest.mark.parametrize(
    ("topic", "action"),
    [(SCAN_SET_TOPIC, ControlAction.SCAN), (DISCONNECT_SET_TOPIC, ControlAction.DISCONNECT)],
)
def test_control_messages(topic: str, action: ControlAction) -> None:
    parsed = parse_message(topic, b"1")

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, ControlEvent)
    assert event.action is action


def test_foreign_topic_and_cleared_retained_message_are_ignored() -> None:
    assert parse_message("zigbee2mqtt/lamp", b"{}") is None
    assert parse_message(occupancy_topic("r1"), b"") is None


# ---------------------------------------------------------------------------
# Legacy topics
# ---------------------------------------------------------------------------


def test_legacy_occupancy_yields_event_and_forwards() -> None:
    payload = _json(
        {
            "val": 2,
            "ts": 1560000000000,
            "meta": {"type": "occupancy", "source": "gateway", "room": "r7", "name": "Master Bedroom Occupancy"},
        }
    )

    parsed = parse_message("hiome/1/sensor/r7:occupancy", payload, retain=True)

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, OccupancyEvent)
    assert (event.sensor_id, event.occupied, event.name) == ("r7", True, "master bedroom")
    assert parsed.forward == [
        ForwardMessage(name_topic("r7"), _compact({"val": "Master Bedroom"}), retain=True),
        ForwardMessage(occupancy_topic("r7"), _compact({"val": True, "ts": 1560000000000}), retain=True),
    ]


def test_legacy_occupancy_from_other_source_is_ignored() -> None:
    payload = _json({"val": 1, "meta": {"type": "occupancy", "source": "sensor", "room": "r7", "name": "x"}})

    parsed = parse_message("hiome/1/sensor/r7:occupancy", payload)

    assert parsed is not None
    assert parsed.events == [] and parsed.forward == []


def test_legacy_sun_message() -> None:
    payload = _json({"val": "sunset", "ts": 5, "meta": {"type": "solar", "name": "Sun"}})

    parsed = parse_message("hiome/1/sensor/sun", payload)

    assert parsed is not None
    (event,) = parsed.events
    assert isinstance(event, DayNightEvent) and event.is_night is True
    assert parsed.forward == [ForwardMessage(SUN_POSITION_TOPIC, _compact({"val": "sunset", "ts": 5}))]


def test_legacy_message_without_meta_is_ignored() -> None:
    parsed = parse_message("hiome/1/sensor/r7:battery", _json({"val": 88}))

    assert parsed is not None
    assert parsed.events == []


def test_legacy_occupancy_without_room_is_rejected() -> None:
    payload = _json({"val": 1, "meta": {"type": "occupancy", "source": "gateway", "name": "x"}})

    with pytest.raises(PayloadError):
        parse_message("hiome/1/sensor/r7:occupancy", payload)


@pytest.mark.parametrize(
    ("legacy_topic", "current_topic"),
    [
        ("hiome/1/api/hue/scan", SCAN_SET_TOPIC),
        ("hiome/1/api/hue/disconnect", DISCONNECT_SET_TOPIC),
        ("hiome/1/api/hue/night_only", NIGHT_ONLY_SET_TOPIC),
    ],
)
def test_legacy_api_topics_are_forwarded(legacy_topic: str, current_topic: str) -> None:
    parsed = parse_message(legacy_topic, b"true")

    assert parsed is not None
    assert len(parsed.events) == 1
    assert parsed.forward == [ForwardMessage(current_topic, b"true")]


def _compact(value: object) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


@pytest.mark.parametrize("topic", ["hs/1/com.hiome/ /occupancy", "hs/1/com.hiome/  /$name"])
def test_blank_sensor_id_is_a_payload_error(topic: str) -> None:
    with pytest.raises(PayloadError) as excinfo:
        parse_message(topic, _json({"val": 1 if topic.endswith("occupancy") else "Den"}))

    assert excinfo.value.topic == topic
