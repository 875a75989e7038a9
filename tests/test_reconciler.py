from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from pyhiomehue.exceptions import HueApiError, HueTransportError
from pyhiomehue.models.group import Group
from pyhiomehue.reconciler import MatchScheme, Reconciler, SyncContext, desired_on, find_target_group
from pyhiomehue.session import BridgeConnection
from pyhiomehue.state.events import DayNightEvent, NameEvent, OccupancyEvent, PolicyEvent
from pyhiomehue.state.store import StateStore


def _group(group_id: str, name: str, on: bool = False) -> Group:
    return Group.from_resource(group_id, {"name": name, "type": "Room", "action": {"on": on}})


@dataclass
class FakeBridge:
    groups: list[Group] = field(default_factory=list)
    saved: list[tuple[str, bool]] = field(default_factory=list)
    fetch_calls: int = 0
    fetch_error: Exception | None = None
    save_error: Exception | None = None
    before_save: object = None

    async def get_groups(self, connection: BridgeConnection) -> list[Group]:
        self.fetch_calls += 1
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.groups)

    async def save_group(self, connection: BridgeConnection, group: Group) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.saved.append((group.name, group.on))


@dataclass
class RecordingReporter:
    reports: list[tuple[BaseException, str]] = field(default_factory=list)

    def report(self, exc: BaseException, *, context: str) -> None:
        self.reports.append((exc, context))


def _connection() -> BridgeConnection:
    return BridgeConnection(host="192.168.1.2", username="user-1")


def _make(
    tmp_path: Path,
    *,
    groups: list[Group] | None = None,
    is_night: bool | None = True,
    night_only: bool = False,
    connected: bool = True,
    scheme: MatchScheme = MatchScheme.EXACT,
) -> tuple[Reconciler, FakeBridge, RecordingReporter]:
    store = StateStore(tmp_path / "hue.json")
    store.set_sensor_name("r1", "bedroom")
    store.set_night_only(night_only)
    context = SyncContext(
        store=store,
        connection=_connection() if connected else None,
        is_night=is_night,
        match_scheme=scheme,
    )
    bridge = FakeBridge(groups=groups if groups is not None else [_group("1", "Kitchen"), _group("2", "Bedroom")])
    reporter = RecordingReporter()
    return Reconciler(context, bridge, reporter=reporter), bridge, reporter


def test_desired_on_policy() -> None:
    assert desired_on(True, True, True) is True
    assert desired_on(True, False, False) is True
    assert desired_on(True, False, True) is False
    assert desired_on(True, None, True) is False
    assert desired_on(False, True, False) is False


def test_find_target_group_exact_first_match_wins() -> None:
    groups = [_group("1", "Bedroom!"), _group("2", "bedroom")]

    target = find_target_group(groups, "bedroom", is_night=True, scheme=MatchScheme.EXACT)

    assert target is not None and target.id == "1"


def test_find_target_group_daytime_scheme() -> None:
    groups = [_group("1", "Bedroom"), _group("2", "Bedroom Daytime")]

    day = find_target_group(groups, "bedroom", is_night=False, scheme=MatchScheme.DAYTIME)
    night = find_target_group(groups, "bedroom", is_night=True, scheme=MatchScheme.DAYTIME)
    exact_day = find_target_group(groups, "bedroom", is_night=False, scheme=MatchScheme.EXACT)

    assert day is not None and day.id == "2"
    assert night is not None and night.id == "1"
    assert exact_day is not None and exact_day.id == "1"


def test_find_target_group_daytime_falls_back_to_plain_group() -> None:
    groups = [_group("1", "Bedroom")]

    target = find_target_group(groups, "bedroom", is_night=False, scheme=MatchScheme.DAYTIME)

    assert target is not None and target.id == "1"


@pytest.mark.asyncio
async def test_occupied_at_night_turns_group_on(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=True, night_only=True)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == [("Bedroom", True)]


@pytest.mark.asyncio
async def test_occupied_during_day_with_night_only_stores_but_does_not_save(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=False, night_only=True)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == []
    assert bridge.fetch_calls == 0
    assert reconciler.context.store.occupancy("r1") is True


@pytest.mark.asyncio
async def test_occupied_during_day_without_night_only_turns_group_on(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=False, night_only=False)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == [("Bedroom", True)]


@pytest.mark.parametrize(("is_night", "night_only"), [(True, True), (False, True), (False, False), (None, True)])
@pytest.mark.asyncio
async def test_vacancy_always_turns_group_off(tmp_path: Path, is_night: bool | None, night_only: bool) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=is_night, night_only=night_only)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=False))

    assert bridge.saved == [("Bedroom", False)]


@pytest.mark.asyncio
async def test_duplicate_occupancy_event_saves_once(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path)
    event = OccupancyEvent(sensor_id="r1", occupied=True)

    await asyncio.gather(reconciler.handle_occupancy(event), reconciler.handle_occupancy(event))
    await reconciler.handle_occupancy(event)

    assert bridge.saved == [("Bedroom", True)]


@pytest.mark.asyncio
async def test_occupancy_without_connection_only_updates_state(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, connected=False)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.fetch_calls == 0
    assert reconciler.context.store.occupancy("r1") is True


@pytest.mark.asyncio
async def test_occupancy_for_unnamed_sensor_is_stored_only(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r9", occupied=True))

    assert bridge.fetch_calls == 0
    assert reconciler.context.store.occupancy("r9") is True


@pytest.mark.asyncio
async def test_embedded_name_is_recorded_before_matching(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r2", occupied=True, name="kitchen"))

    assert reconciler.context.store.name_for("r2") == "kitchen"
    assert bridge.saved == [("Kitchen", True)]


@pytest.mark.asyncio
async def test_no_matching_group_is_a_no_op(tmp_path: Path) -> None:
    reconciler, bridge, reporter = _make(tmp_path, groups=[_group("1", "Kitchen")])

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == []
    assert reporter.reports == []


@pytest.mark.asyncio
async def test_fetch_error_is_reported_and_state_kept(tmp_path: Path) -> None:
    reconciler, bridge, reporter = _make(tmp_path)
    bridge.fetch_error = HueTransportError("boom", endpoint="bridge/api/<redacted>/groups")

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert len(reporter.reports) == 1
    assert isinstance(reporter.reports[0][0], HueTransportError)
    assert reconciler.context.store.occupancy("r1") is True

    bridge.fetch_error = None
    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=False))
    assert bridge.saved == [("Bedroom", False)]


@pytest.mark.asyncio
async def test_save_error_is_reported(tmp_path: Path) -> None:
    reconciler, bridge, reporter = _make(tmp_path)
    bridge.save_error = HueApiError("nope", code=3)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert [type(exc) for exc, _ in reporter.reports] == [HueApiError]


@pytest.mark.asyncio
async def test_save_is_dropped_when_connection_changed_mid_flight(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path)
    context = reconciler.context
    original_get_groups = bridge.get_groups

    async def _get_groups_then_disconnect(connection: BridgeConnection) -> list[Group]:
        groups = await original_get_groups(connection)
        context.connection = None
        return groups

    bridge.get_groups = _get_groups_then_disconnect  # type: ignore[method-assign]

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == []


@pytest.mark.asyncio
async def test_first_sun_position_only_records_value(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=None)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_day_night(DayNightEvent(position="sunset", is_night=True))

    assert reconciler.context.is_night is True
    assert bridge.fetch_calls == 0
    assert bridge.saved == []


@pytest.mark.asyncio
async def test_unchanged_sun_position_triggers_nothing(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=True)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_day_night(DayNightEvent(position="sunset", is_night=True))

    assert bridge.fetch_calls == 0
    assert bridge.saved == []


@pytest.mark.asyncio
async def test_sunset_turns_on_rooms_occupied_during_the_day(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=False, night_only=True)
    store = reconciler.context.store
    store.set_sensor_name("r2", "kitchen")
    store.update_occupancy("r1", True)
    store.update_occupancy("r2", False)

    await reconciler.handle_day_night(DayNightEvent(position="sunset", is_night=True))

    assert sorted(bridge.saved) == [("Bedroom", True), ("Kitchen", False)]
    assert bridge.fetch_calls == 1


@pytest.mark.asyncio
async def test_sunrise_turns_off_occupied_rooms_with_night_only(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=True, night_only=True)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_day_night(DayNightEvent(position="sunrise", is_night=False))

    assert bridge.saved == [("Bedroom", False)]


@pytest.mark.asyncio
async def test_sunrise_keeps_occupied_rooms_on_without_night_only(tmp_path: Path) -> None:
    reconciler, bridge, _ = _make(tmp_path, is_night=True, night_only=False)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_day_night(DayNightEvent(position="sunrise", is_night=False))

    assert bridge.saved == [("Bedroom", True)]


@pytest.mark.asyncio
async def test_daytime_scheme_switches_variants_at_sunrise(tmp_path: Path) -> None:
    groups = [_group("1", "Bedroom", on=True), _group("2", "Bedroom Daytime")]
    reconciler, bridge, _ = _make(tmp_path, groups=groups, is_night=True, scheme=MatchScheme.DAYTIME)
    reconciler.context.store.update_occupancy("r1", True)

    await reconciler.handle_day_night(DayNightEvent(position="sunrise", is_night=False))

    assert sorted(bridge.saved) == [("Bedroom", False), ("Bedroom Daytime", True)]


@pytest.mark.asyncio
async def test_daytime_scheme_occupancy_during_day_targets_daytime_group(tmp_path: Path) -> None:
    groups = [_group("1", "Bedroom"), _group("2", "Bedroom Daytime")]
    reconciler, bridge, _ = _make(tmp_path, groups=groups, is_night=False, scheme=MatchScheme.DAYTIME)

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))

    assert bridge.saved == [("Bedroom Daytime", True)]


@pytest.mark.asyncio
async def test_restart_with_occupied_room_waits_for_transition(tmp_path: Path) -> None:
    path = tmp_path / "hue.json"
    seed = StateStore(path)
    seed.set_sensor_name("r1", "bedroom")
    seed.update_occupancy("r1", True)
    seed.set_night_only(True)
    await seed.wait_flushed()

    store = StateStore.load(path)
    context = SyncContext(store=store, connection=_connection())
    bridge = FakeBridge(groups=[_group("2", "Bedroom")])
    reconciler = Reconciler(context, bridge, reporter=RecordingReporter())

    await reconciler.handle_occupancy(OccupancyEvent(sensor_id="r1", occupied=True))
    await reconciler.handle_day_night(DayNightEvent(position="sunset", is_night=True))
    assert bridge.saved == []

    await reconciler.handle_day_night(DayNightEvent(position="sunrise", is_night=False))
    assert bridge.saved == [("Bedroom", False)]


def test_name_and_policy_events_report_changes(tmp_path: Path) -> None:
    reconciler, _, _ = _make(tmp_path)

    assert reconciler.handle_name(NameEvent(sensor_id="r1", name="guest room")) is True
    assert reconciler.handle_name(NameEvent(sensor_id="r1", name="guest room")) is False
    assert reconciler.handle_policy(PolicyEvent(night_only=True)) is True
    assert reconciler.handle_policy(PolicyEvent(night_only=True)) is False
    assert reconciler.context.store.name_for("r1") == "guest room"
