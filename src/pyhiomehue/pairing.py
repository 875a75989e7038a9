"""Bridge discovery and pairing state machine.

``IDLE -> DISCOVERING -> VALIDATING -> AUTHENTICATING -> CONNECTED``,
with ``FAILED`` reachable from every step and ``DISCONNECTED`` as the
manual reset back to ``IDLE``.

Each step issues its bridge calls concurrently and joins them before the
next step starts.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from pyhiomehue.exceptions import (
    AmbiguousBridgeError,
    HueError,
    HueLinkNotPressedError,
    PairingError,
)
from pyhiomehue.models.bridge import BridgeConfig, DiscoveredBridge
from pyhiomehue.reconciler import ErrorReporter, LoggingErrorReporter, SyncContext
from pyhiomehue.session import BridgeConnection

_logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 15.0


class PairingState(StrEnum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    CONNECTED = "connected"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


class FailureReason(StrEnum):
    """Why a scan ended in ``FAILED``; the value is the published status."""

    NO_BRIDGES_FOUND = "no_bridges_found"
    TRANSPORT_ERROR = "transport_error"
    NO_LINK_PUSHED = "no_link_pushed"
    FAIL = "fail"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class PairingOutcome:
    state: PairingState
    reason: FailureReason | None = None
    host: str | None = None

    @property
    def connected(self) -> bool:
        return self.state is PairingState.CONNECTED

    @property
    def status(self) -> str:
        """Status string published on the bus."""
        if self.reason is not None:
            return self.reason.value
        return self.state.value


class PairingApi(Protocol):
    """Bridge calls used while pairing; :class:`~pyhiomehue.client.HueClient` implements it."""

    async def discover(self) -> list[DiscoveredBridge]:
        ...

    async def ping(self, host: str) -> BridgeConfig:
        ...

    async def is_authenticated(self, host: str, username: str) -> bool:
        ...

    async def create_user(self, host: str) -> str:
        ...


class StatusSink(Protocol):
    """Where connection status is announced (the bus gateway)."""

    def publish_status(self, status: str, host: str | None) -> None:
        ...

    def clear_status(self) -> None:
        ...


@dataclass(frozen=True)
class _AuthAttempt:
    host: str
    username: str | None = None
    error: HueError | None = None


class BridgePairer:
    """Finds, validates and authenticates exactly one bridge."""

    def __init__(
        self,
        context: SyncContext,
        api: PairingApi,
        *,
        status: StatusSink | None = None,
        reporter: ErrorReporter | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        auto_scan: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._context = context
        self._api = api
        self._status = status
        self._reporter = reporter or LoggingErrorReporter(_logger)
        self._debounce_seconds = debounce_seconds
        self._clock = clock
        self._state = PairingState.IDLE
        self._scanning = False
        self._auto_scan = auto_scan
        self._wake = asyncio.Event()
        self._last_request: dict[str, float] = {}
        self._generation = 0

    @property
    def state(self) -> PairingState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is PairingState.CONNECTED and self._context.connection is not None

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def set_status_sink(self, status: StatusSink) -> None:
        self._status = status

    def _transition(self, state: PairingState) -> None:
        if state is not self._state:
            _logger.debug("Pairing %s -> %s", self._state.value, state.value)
        self._state = state

    # ------------------------------------------------------------------
    # Manual requests
    # ------------------------------------------------------------------

    def _debounced(self, kind: str) -> bool:
        now = self._clock()
        last = self._last_request.get(kind)
        if last is not None and now - last < self._debounce_seconds:
            _logger.debug("Ignoring %s request within %.0fs debounce window", kind, self._debounce_seconds)
            return True
        self._last_request[kind] = now
        return False

    def request_scan(self) -> bool:
        """Ask the scan loop to look for a bridge now; returns whether it was accepted."""
        if self._scanning:
            _logger.debug("Scan already in progress")
            return False
        connection = self._context.connection
        if self.is_connected and connection is not None:
            _logger.info("Already connected to %s; disconnect before scanning again", connection.host)
            return False
        if self._debounced("scan"):
            return False
        self._auto_scan = True
        self._wake.set()
        return True

    def request_disconnect(self) -> bool:
        """Debounced :meth:`disconnect`; returns whether it was accepted."""
        if self._debounced("disconnect"):
            return False
        self.disconnect()
        return True

    def disconnect(self) -> None:
        """Forget the credential and drop the connection.

        In-flight group updates holding the old connection are abandoned by
        the reconciler.
        """
        previous = self._context.connection
        self._generation += 1
        self._context.connection = None
        self._context.store.set_credential(None)
        self._auto_scan = False
        self._transition(PairingState.DISCONNECTED)
        if self._status is not None:
            self._status.clear_status()
        _logger.info("Disconnected from bridge %s", previous.host if previous else "(none)")
        self._transition(PairingState.IDLE)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def run(self, *, interval: float) -> None:
        """Scan on a fixed *interval* while auto-scan is on and no bridge is connected."""
        while True:
            self._wake.clear()
            if self._auto_scan and not self.is_connected:
                await self.scan()
                if self._auto_scan and not self.is_connected:
                    _logger.info("Retrying bridge scan in %.0fs", interval)
                    with contextlib.suppress(TimeoutError):
                        await asyncio.wait_for(self._wake.wait(), interval)
                    continue
            await self._wake.wait()

    async def scan(self) -> PairingOutcome | None:
        """Run one full discovery/validation/authentication pass.

        Returns ``None`` without doing anything when a scan is already
        running. A disconnect while the scan is running discards its
        result; the outcome is then ``DISCONNECTED`` and nothing is stored
        or published.
        """
        if self._scanning:
            _logger.debug("Scan already in progress; ignoring")
            return None
        self._scanning = True
        generation = self._generation
        try:
            _logger.info(
                "Scanning for bridges... Press the link button on the Hue bridge if this is the first run"
            )
            outcome = await self._scan_once(generation)
        finally:
            self._scanning = False

        if generation != self._generation:
            _logger.info("Disconnect requested during scan; discarding its result")
            self._transition(PairingState.IDLE)
            return PairingOutcome(PairingState.DISCONNECTED)
        self._transition(outcome.state)
        if self._status is not None:
            self._status.publish_status(outcome.status, outcome.host)
        return outcome

    def _fail(self, reason: FailureReason) -> PairingOutcome:
        _logger.info("Bridge scan failed: %s", reason.value)
        return PairingOutcome(PairingState.FAILED, reason=reason)

    async def _scan_once(self, generation: int) -> PairingOutcome:
        self._transition(PairingState.DISCOVERING)
        try:
            candidates = await self._api.discover()
        except HueError as exc:
            self._reporter.report(exc, context="Bridge discovery failed")
            return self._fail(FailureReason.TRANSPORT_ERROR)
        if not candidates:
            _logger.info("No Hue bridges found")
            return self._fail(FailureReason.NO_BRIDGES_FOUND)

        self._transition(PairingState.VALIDATING)
        hosts = await self._validate(candidates)
        if not hosts:
            _logger.info("No Hue bridges answered")
            return self._fail(FailureReason.NO_BRIDGES_FOUND)

        self._transition(PairingState.AUTHENTICATING)
        attempts = await asyncio.gather(*(self._authenticate(host) for host in hosts))
        if generation != self._generation:
            return PairingOutcome(PairingState.DISCONNECTED)
        return self._settle(attempts)

    async def _validate(self, candidates: Sequence[DiscoveredBridge]) -> list[str]:
        hosts = list(dict.fromkeys(candidate.host for candidate in candidates))

        async def _ping(host: str) -> str | None:
            try:
                config = await self._api.ping(host)
            except HueError as exc:
                _logger.debug("Bridge candidate %s unreachable: %s", host, exc)
                return None
            _logger.debug("Bridge candidate %s answered as %r (%s)", host, config.name, config.bridgeid)
            return host

        pinged = await asyncio.gather(*(_ping(host) for host in hosts))
        return [host for host in pinged if host is not None]

    async def _authenticate(self, host: str) -> _AuthAttempt:
        credential = self._context.store.credential
        if credential:
            try:
                if await self._api.is_authenticated(host, credential):
                    return _AuthAttempt(host, username=credential)
            except HueError as exc:
                _logger.debug("Stored credential check failed on %s: %s", host, exc)
        try:
            username = await self._api.create_user(host)
        except HueError as exc:
            return _AuthAttempt(host, error=exc)
        return _AuthAttempt(host, username=username)

    def _settle(self, attempts: Sequence[_AuthAttempt]) -> PairingOutcome:
        successes = [attempt for attempt in attempts if attempt.username]
        if len(successes) == 1:
            winner = successes[0]
            assert winner.username is not None  # noqa: S101
            self._context.store.set_credential(winner.username)
            self._context.connection = BridgeConnection(host=winner.host, username=winner.username)
            _logger.info("Connected to Hue bridge at %s", winner.host)
            return PairingOutcome(PairingState.CONNECTED, host=winner.host)

        if len(successes) > 1:
            hosts = ", ".join(attempt.host for attempt in successes)
            self._reporter.report(
                AmbiguousBridgeError(f"Several bridges authenticated: {hosts}", reason=FailureReason.AMBIGUOUS.value),
                context="Too many Hue bridges found; not picking one",
            )
            return self._fail(FailureReason.AMBIGUOUS)

        errors = [attempt.error for attempt in attempts if attempt.error is not None]
        if errors and all(isinstance(error, HueLinkNotPressedError) for error in errors):
            _logger.info("Link button not pressed. Try again...")
            return self._fail(FailureReason.NO_LINK_PUSHED)

        other = next((error for error in errors if not isinstance(error, HueLinkNotPressedError)), None)
        self._reporter.report(
            other
            if other is not None
            else PairingError("No bridge authenticated", reason=FailureReason.FAIL.value),
            context="Bridge authentication failed",
        )
        return self._fail(FailureReason.FAIL)
