"""Bus gateway.

Owns:
- translating bus messages into typed events and dispatching them
- republishing legacy-topic messages under the current topic scheme
- publishing retained connection status and policy values
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Coroutine
from typing import Any, Protocol

from pyhiomehue._mqtt import BusMessage
from pyhiomehue.exceptions import PayloadError
from pyhiomehue.ingestion.mqtt import parse_message
from pyhiomehue.ingestion.topics import NIGHT_ONLY_TOPIC, STATUS_TOPIC
from pyhiomehue.pairing import BridgePairer
from pyhiomehue.reconciler import Reconciler
from pyhiomehue.state.events import (
    BusEvent,
    ControlAction,
    ControlEvent,
    DayNightEvent,
    NameEvent,
    OccupancyEvent,
    PolicyEvent,
)

_logger = logging.getLogger(__name__)


class BusPublisher(Protocol):
    def publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode(value: dict[str, Any]) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


class BusGateway:
    """Routes bus messages to the pairing state machine and the reconciler."""

    def __init__(
        self,
        reconciler: Reconciler,
        pairer: BridgePairer,
        *,
        publisher: BusPublisher | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._pairer = pairer
        self._publisher = publisher
        self._tasks: set[asyncio.Task[None]] = set()
        pairer.set_status_sink(self)

    def attach(self, publisher: BusPublisher) -> None:
        self._publisher = publisher

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    def _publish(self, topic: str, payload: bytes, *, retain: bool = False) -> None:
        if self._publisher is None:
            _logger.debug("No bus attached; dropping publish to %s", topic)
            return
        self._publisher.publish(topic, payload, retain=retain)

    def publish_status(self, status: str, host: str | None) -> None:
        """Publish the retained connection status so late subscribers see it."""
        self._publish(STATUS_TOPIC, _encode({"val": status, "host": host, "ts": _now_ms()}), retain=True)

    def clear_status(self) -> None:
        """Clear the retained connection status."""
        self._publish(STATUS_TOPIC, b"", retain=True)

    def publish_night_only(self, night_only: bool) -> None:
        self._publish(NIGHT_ONLY_TOPIC, _encode({"val": night_only, "ts": _now_ms()}), retain=True)

    # ------------------------------------------------------------------
    # Incoming
    # ------------------------------------------------------------------

    def on_message(self, message: BusMessage) -> None:
        """Handle one bus message; must run on the event loop thread."""
        try:
            parsed = parse_message(message.topic, message.payload, retain=message.retain)
        except PayloadError as exc:
            _logger.warning("Dropping malformed message on %s: %s", message.topic, exc)
            return
        if parsed is None:
            return

        for forward in parsed.forward:
            _logger.debug("Republishing legacy %s as %s", message.topic, forward.topic)
            self._publish(forward.topic, forward.payload, retain=forward.retain)
        for event in parsed.events:
            self.dispatch(event)

    def dispatch(self, event: BusEvent) -> None:
        if isinstance(event, OccupancyEvent):
            self._spawn(self._reconciler.handle_occupancy(event))
        elif isinstance(event, DayNightEvent):
            self._spawn(self._reconciler.handle_day_night(event))
        elif isinstance(event, NameEvent):
            self._reconciler.handle_name(event)
        elif isinstance(event, PolicyEvent):
            if self._reconciler.handle_policy(event):
                self.publish_night_only(event.night_only)
        elif isinstance(event, ControlEvent):
            if event.action is ControlAction.SCAN:
                self._pairer.request_scan()
            else:
                self._pairer.request_disconnect()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Bus event handler failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every in-flight event handler."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
