"""Occupancy and day/night reconciliation.

Three independent signals arrive on the bus: room occupancy, the sun
position and user configuration. The reconciler folds them into the
persisted state and decides which light group should be on.

Policy:

* vacancy always turns the room's group off;
* occupancy turns it on when it is night, or at any time unless the
  "only control at night" preference is set;
* on a real day/night flip every known room is re-evaluated.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from pyhiomehue._constants import DAYTIME_SUFFIX
from pyhiomehue.exceptions import HueError
from pyhiomehue.models.group import Group
from pyhiomehue.sanitize import sanitize_name
from pyhiomehue.session import BridgeConnection
from pyhiomehue.state.events import DayNightEvent, NameEvent, OccupancyEvent, PolicyEvent
from pyhiomehue.state.store import StateStore

_logger = logging.getLogger(__name__)


class MatchScheme(StrEnum):
    """How a room name is matched to a bridge group.

    ``EXACT`` joins on the sanitized name. ``DAYTIME`` additionally
    prefers a ``"<room> Daytime"`` group whenever it is not night.
    """

    EXACT = "exact"
    DAYTIME = "daytime"


class BridgeApi(Protocol):
    """Group calls the reconciler needs; :class:`~pyhiomehue.client.HueClient` implements it."""

    async def get_groups(self, connection: BridgeConnection) -> list[Group]:
        ...

    async def save_group(self, connection: BridgeConnection, group: Group) -> None:
        ...


class ErrorReporter(Protocol):
    """External error-tracking collaborator."""

    def report(self, exc: BaseException, *, context: str) -> None:
        ...


class LoggingErrorReporter:
    """Default reporter: logs the error with its traceback."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    def report(self, exc: BaseException, *, context: str) -> None:
        self._logger.error("%s: %s", context, exc, exc_info=exc)


@dataclass
class SyncContext:
    """Session state shared by the pairing state machine and the reconciler.

    Owned by the top-level service; ``connection`` is ``None`` until a
    bridge is paired and again after a disconnect. ``is_night`` is ``None``
    until the first sun position is seen.
    """

    store: StateStore
    connection: BridgeConnection | None = None
    is_night: bool | None = None
    match_scheme: MatchScheme = MatchScheme.EXACT


def desired_on(occupied: bool, is_night: bool | None, night_only: bool) -> bool:
    """Whether a room's group should be on."""
    return occupied and (is_night is True or not night_only)


def find_target_group(
    groups: Sequence[Group],
    name: str,
    *,
    is_night: bool | None,
    scheme: MatchScheme,
) -> Group | None:
    """Return the group controlled for canonical room *name*; first match wins."""
    candidates = [name]
    if scheme is MatchScheme.DAYTIME and is_night is not True:
        candidates.insert(0, f"{name}{DAYTIME_SUFFIX}")
    for candidate in candidates:
        for group in groups:
            if sanitize_name(group.name) == candidate:
                return group
    return None


class Reconciler:
    """Turns bus events into group updates on the paired bridge."""

    def __init__(
        self,
        context: SyncContext,
        bridge: BridgeApi,
        *,
        reporter: ErrorReporter | None = None,
    ) -> None:
        self._context = context
        self._bridge = bridge
        self._reporter = reporter or LoggingErrorReporter()

    @property
    def context(self) -> SyncContext:
        return self._context

    # ------------------------------------------------------------------
    # Configuration events
    # ------------------------------------------------------------------

    def handle_name(self, event: NameEvent) -> bool:
        """Record a sensor name; returns whether it changed."""
        changed = self._context.store.set_sensor_name(event.sensor_id, event.name)
        if changed:
            _logger.info("Sensor %s is named %r", event.sensor_id, event.name)
        return changed

    def handle_policy(self, event: PolicyEvent) -> bool:
        """Record the night-only preference; returns whether it changed."""
        changed = self._context.store.set_night_only(event.night_only)
        if changed:
            _logger.info("Only control lights at night: %s", event.night_only)
        return changed

    # ------------------------------------------------------------------
    # Occupancy
    # ------------------------------------------------------------------

    async def handle_occupancy(self, event: OccupancyEvent) -> None:
        ctx = self._context
        store = ctx.store
        if event.name:
            self.handle_name(NameEvent(sensor_id=event.sensor_id, name=event.name))

        # Everything up to the first await runs atomically on the loop, so a
        # duplicate delivery always sees the value stored by the first one.
        if not store.update_occupancy(event.sensor_id, event.occupied):
            return

        connection = ctx.connection
        if connection is None:
            _logger.debug("Sensor %s occupied=%s stored; no bridge connected", event.sensor_id, event.occupied)
            return
        name = store.name_for(event.sensor_id)
        if name is None:
            _logger.debug("Sensor %s has no name yet; nothing to match", event.sensor_id)
            return

        is_night = ctx.is_night
        if event.occupied and not desired_on(True, is_night, store.night_only):
            _logger.debug("Room %r occupied during the day; night-only policy leaves lights alone", name)
            return

        groups = await self._fetch_groups(connection)
        if groups is None:
            return
        target = find_target_group(groups, name, is_night=is_night, scheme=ctx.match_scheme)
        if target is None:
            _logger.debug("No group matches room %r", name)
            return
        await self._save(connection, target.with_on(event.occupied))

    # ------------------------------------------------------------------
    # Day / night
    # ------------------------------------------------------------------

    async def handle_day_night(self, event: DayNightEvent) -> None:
        ctx = self._context
        was_night = ctx.is_night
        ctx.is_night = event.is_night
        if was_night is None:
            _logger.info("Initial sun position %r; waiting for the next transition", event.position)
            return
        if was_night == event.is_night:
            return

        _logger.info("Transition to %s (%s)", "night" if event.is_night else "day", event.position)
        connection = ctx.connection
        if connection is None:
            return
        sensors = ctx.store.known_sensors()
        if not sensors:
            return

        groups = await self._fetch_groups(connection)
        if groups is None:
            return

        night_only = ctx.store.night_only
        updates: dict[str, Group] = {}
        for _sensor_id, name, occupied in sensors:
            target = find_target_group(groups, name, is_night=event.is_night, scheme=ctx.match_scheme)
            previous = find_target_group(groups, name, is_night=was_night, scheme=ctx.match_scheme)
            if previous is not None and previous.on and (target is None or previous.id != target.id):
                updates.setdefault(previous.id, previous.with_on(False))
            if target is not None:
                updates[target.id] = target.with_on(desired_on(occupied, event.is_night, night_only))

        await asyncio.gather(*(self._save(connection, group) for group in updates.values()))

    # ------------------------------------------------------------------
    # Bridge calls
    # ------------------------------------------------------------------

    async def _fetch_groups(self, connection: BridgeConnection) -> list[Group] | None:
        try:
            return await self._bridge.get_groups(connection)
        except HueError as exc:
            self._reporter.report(exc, context=f"Failed to fetch Hue groups from {connection.host}")
            return None

    async def _save(self, connection: BridgeConnection, group: Group) -> None:
        if self._context.connection is not connection:
            _logger.debug("Bridge connection changed; dropping update of group %r", group.name)
            return
        try:
            await self._bridge.save_group(connection, group)
        except HueError as exc:
            self._reporter.report(exc, context=f"Failed to save Hue group {group.name!r}")
            return
        _logger.info("Group %r turned %s", group.name, "on" if group.on else "off")
