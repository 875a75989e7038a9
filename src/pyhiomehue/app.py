"""Top-level service wiring the bus, the pairing state machine and the reconciler."""

from __future__ import annotations

import asyncio
import logging

from pyhiomehue._mqtt import HiomeMqttRuntime
from pyhiomehue.client import HueClient
from pyhiomehue.config import HiomeHueConfig
from pyhiomehue.gateway import BusGateway
from pyhiomehue.ingestion.topics import SUBSCRIPTIONS
from pyhiomehue.pairing import BridgePairer
from pyhiomehue.reconciler import ErrorReporter, MatchScheme, Reconciler, SyncContext
from pyhiomehue.state.store import StateStore

_logger = logging.getLogger(__name__)


class HiomeHueService:
    """Runs until cancelled.

    Usage::

        await HiomeHueService(HiomeHueConfig.from_env()).run()
    """

    def __init__(
        self,
        config: HiomeHueConfig,
        *,
        reporter: ErrorReporter | None = None,
    ) -> None:
        self._config = config
        self._reporter = reporter

    def build_context(self) -> SyncContext:
        """Load persisted state into a fresh session context."""
        store = StateStore.load(self._config.state_path)
        return SyncContext(store=store, match_scheme=MatchScheme(self._config.match_scheme))

    async def run(self) -> None:
        config = self._config
        loop = asyncio.get_running_loop()
        context = self.build_context()

        async with HueClient(config) as client:
            reconciler = Reconciler(context, client, reporter=self._reporter)
            pairer = BridgePairer(
                context,
                client,
                reporter=self._reporter,
                debounce_seconds=config.scan_debounce,
                auto_scan=config.auto_scan,
            )
            gateway = BusGateway(reconciler, pairer)
            runtime = HiomeMqttRuntime(
                loop=loop,
                on_message=gateway.on_message,
                subscriptions=SUBSCRIPTIONS,
                keepalive=config.mqtt_keepalive,
                client_id=config.mqtt_client_id,
                logger=logging.getLogger("pyhiomehue.mqtt"),
            )
            gateway.attach(runtime)

            _logger.info("Starting bus connection to %s:%s", config.mqtt_host, config.mqtt_port)
            await loop.run_in_executor(None, runtime.start, config.mqtt_host, config.mqtt_port)
            try:
                await pairer.run(interval=config.scan_interval)
            finally:
                await gateway.drain()
                await loop.run_in_executor(None, runtime.stop)
                await context.store.wait_flushed()
                _logger.info("Stopped")
