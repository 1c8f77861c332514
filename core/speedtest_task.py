"""Speedtest measurement background task."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.background_task import BackgroundTask
from infrastructure.metrics import DOWNLOAD_SPEC, PING_SPEC, UPLOAD_SPEC

if TYPE_CHECKING:
    from core.protocols import MeasurementProvider
    from infrastructure.metrics import MetricsRegistry


class SpeedtestTask(BackgroundTask):
    """Periodically run a speedtest and publish the reading as gauges.

    On failure nothing is written, so the previous values stay visible
    until the next successful measurement. There is no timeout around
    ``provider.measure()``: a hung call stalls every later tick.
    """

    def __init__(
        self,
        *,
        provider: MeasurementProvider,
        registry: MetricsRegistry,
        interval: float = 60.0,
        **kw,
    ) -> None:
        super().__init__(name="Speedtest", interval=interval, **kw)
        self.provider = provider
        self.registry = registry

    async def execute(self) -> None:
        logging.info("Speedtest exporter starting")

        reading = await self.run_blocking(self.provider.measure)

        self.registry.set(PING_SPEC.name, reading.ping)
        self.registry.set(DOWNLOAD_SPEC.name, reading.download)
        self.registry.set(UPLOAD_SPEC.name, reading.upload)
        logging.info(
            f"Speedtest exporter finished: ping={reading.ping:.2f} ms "
            f"download={reading.download:.2f} Mbps upload={reading.upload:.2f} Mbps"
        )
