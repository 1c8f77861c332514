from __future__ import annotations

import asyncio
import logging
import platform
import signal
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TYPE_CHECKING

from rich.console import Console

from config import VERSION
from core import SpeedtestTask, TaskOrchestrator
from infrastructure import create_speedtest_registry, start_exporter_server
from services import SpeedtestClient

if TYPE_CHECKING:
    from config import Settings
    from core import MeasurementProvider
    from infrastructure import ExporterServer, MetricsRegistry

ProviderFactory = Callable[["Settings"], "MeasurementProvider | None"]

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1


def default_provider_factory(settings: Settings) -> MeasurementProvider:
    """Build the speedtest.net client from the discovery URLs in ``settings``."""
    return SpeedtestClient(
        settings.SPEEDTEST_CONFIG_URL,
        settings.SPEEDTEST_SERVER_URL,
        timeout=settings.SPEEDTEST_TIMEOUT,
        closest_servers=settings.SPEEDTEST_CLOSEST_SERVERS,
    )


class ExporterApp:
    """Wires provider, registry, measurement loop and exposition server together.

    ``run()`` returns an exit code: 1 when the provider or the listener cannot
    be set up, 0 after a signal-triggered shutdown. Without a signal it runs
    for the lifetime of the process.
    """

    def __init__(
        self,
        settings: Settings,
        provider_factory: ProviderFactory = default_provider_factory,
        console: Console | None = None,
    ) -> None:
        self.settings = settings
        self.provider_factory = provider_factory
        self.console = console or Console(stderr=True, highlight=False)
        self.stop_event = asyncio.Event()
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="speedtest")
        self.registry: MetricsRegistry | None = None
        self.server: ExporterServer | None = None
        self._orchestrator = TaskOrchestrator()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def handler(sig: int, frame: Any) -> None:
            logging.info(f"Received signal {sig}, shutting down")
            loop.call_soon_threadsafe(self.stop_event.set)

        signal.signal(signal.SIGINT, handler)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, handler)

    async def _build_provider(self) -> MeasurementProvider | None:
        loop = asyncio.get_running_loop()
        try:
            provider = await loop.run_in_executor(self.executor, self.provider_factory, self.settings)
        except Exception as exc:
            logging.error(f"Can't create exporter : {exc}")
            return None
        if provider is None:
            logging.error("Speedtest client not configured.")
        return provider

    async def run(self, install_signal_handlers: bool = True) -> int:
        logging.info(f"Starting speedtest exporter (version={VERSION})")
        logging.info(
            f"Build context (python={platform.python_version()}, "
            f"implementation={platform.python_implementation()}, platform={platform.platform()})"
        )

        provider = await self._build_provider()
        if provider is None:
            self.executor.shutdown(wait=False)
            return EXIT_STARTUP_FAILURE

        logging.info("Register exporter")
        self.registry = create_speedtest_registry(
            VERSION, process_metrics=self.settings.ENABLE_PROCESS_METRICS
        )

        try:
            self.server = start_exporter_server(
                self.registry,
                listen_address=self.settings.WEB_LISTEN_ADDRESS,
                metrics_path=self.settings.WEB_TELEMETRY_PATH,
            )
        except (OSError, ValueError) as exc:
            logging.error(f"Failed to start exporter server on {self.settings.WEB_LISTEN_ADDRESS}: {exc}")
            self.executor.shutdown(wait=False)
            return EXIT_STARTUP_FAILURE

        if install_signal_handlers:
            self._install_signal_handlers()

        self._orchestrator.register(SpeedtestTask(
            provider=provider,
            registry=self.registry,
            interval=self.settings.MEASUREMENT_INTERVAL,
            stop_event=self.stop_event,
            executor=self.executor,
        ))
        self._orchestrator.start_all()

        try:
            await self.stop_event.wait()
        finally:
            await self.shutdown()
        return EXIT_OK

    async def shutdown(self) -> None:
        """Stop the measurement loop and the listener."""
        self.console.print("[dim]Stopping speedtest exporter...[/dim]")
        self.stop_event.set()
        await self._orchestrator.stop_all(self.settings.SHUTDOWN_TIMEOUT_SECONDS)
        if self.server is not None:
            self.server.stop()
        # Queued measurements are dropped. A call already running finishes on its
        # worker, bounded by SPEEDTEST_TIMEOUT per request; interpreter exit joins it.
        self.executor.shutdown(wait=False, cancel_futures=True)


async def run_async_main(settings: Settings) -> int:
    app = ExporterApp(settings)
    return await app.run()


__all__ = ["ExporterApp", "default_provider_factory", "run_async_main"]
