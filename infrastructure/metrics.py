from __future__ import annotations

"""Prometheus metrics registry owned by the exporter."""

import logging
import platform
import threading
from dataclasses import dataclass
from typing import Final

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    Gauge,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)
from prometheus_client.exposition import CONTENT_TYPE_PLAIN_0_0_4

from config import NAMESPACE

CONTENT_TYPE: Final[str] = CONTENT_TYPE_PLAIN_0_0_4


class DuplicateMetricError(ValueError):
    """Raised when a gauge name is registered twice."""


class UnknownMetricError(KeyError):
    """Raised when setting a gauge that was never registered."""


@dataclass(frozen=True)
class GaugeSpec:
    """Static description of a gauge: name, help text and namespace prefix."""
    name: str
    help: str
    namespace: str = NAMESPACE

    @property
    def full_name(self) -> str:
        return f"{self.namespace}_{self.name}" if self.namespace else self.name


PING_SPEC = GaugeSpec("ping", "Latency (ms)")
DOWNLOAD_SPEC = GaugeSpec("download", "Download bandwidth (Mbps).")
UPLOAD_SPEC = GaugeSpec("upload", "Upload bandwidth (Mbps).")

SPEEDTEST_GAUGES: Final[tuple[GaugeSpec, ...]] = (PING_SPEC, DOWNLOAD_SPEC, UPLOAD_SPEC)


class MetricsRegistry:
    """
    Owns the exporter gauges and renders them for scraping.

    Gauges are keyed by their short name (``ping``, ``download``, ``upload``).
    Gauge values are mutex-guarded by prometheus_client, so ``set`` from the
    measurement loop and ``snapshot``/``render`` from request threads never
    corrupt state. The registry lock only guards the gauge table itself.
    """

    def __init__(self) -> None:
        self.collector_registry = CollectorRegistry(auto_describe=True)
        self._gauges: dict[str, Gauge] = {}
        self._lock = threading.Lock()

    def register(self, spec: GaugeSpec) -> Gauge:
        """Create and register a gauge for ``spec``.

        Raises:
            DuplicateMetricError: if a gauge with the same name already exists.
        """
        with self._lock:
            if spec.name in self._gauges:
                raise DuplicateMetricError(f"gauge {spec.full_name!r} already registered")
            gauge = Gauge(
                spec.name,
                spec.help,
                namespace=spec.namespace,
                registry=self.collector_registry,
            )
            self._gauges[spec.name] = gauge
        logging.debug(f"Registered gauge {spec.full_name}")
        return gauge

    def set(self, name: str, value: float) -> None:
        """Overwrite the current value of gauge ``name``."""
        gauge = self._gauges.get(name)
        if gauge is None:
            raise UnknownMetricError(name)
        gauge.set(value)

    def snapshot(self) -> dict[str, float]:
        """Current value of every registered gauge, keyed by short name."""
        with self._lock:
            gauges = list(self._gauges.items())
        values: dict[str, float] = {}
        for name, gauge in gauges:
            samples = gauge.collect()[0].samples
            values[name] = samples[0].value if samples else 0.0
        return values

    def render(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.collector_registry)


def _register_build_info(registry: MetricsRegistry, version: str) -> None:
    build_info = Gauge(
        "speedtest_exporter_build_info",
        "A metric with a constant '1' value labeled by version and pythonversion "
        "from which speedtest_exporter was built.",
        ["version", "pythonversion"],
        registry=registry.collector_registry,
    )
    build_info.labels(version=version, pythonversion=platform.python_version()).set(1)


def create_speedtest_registry(version: str, *, process_metrics: bool = True) -> MetricsRegistry:
    """Build the registry with the ping/download/upload gauges and build info.

    Args:
        version: Exporter version reported by ``speedtest_exporter_build_info``.
        process_metrics: Also export process, platform and GC collectors.
    """
    registry = MetricsRegistry()
    for spec in SPEEDTEST_GAUGES:
        registry.register(spec)
    _register_build_info(registry, version)

    if process_metrics:
        ProcessCollector(registry=registry.collector_registry)
        PlatformCollector(registry=registry.collector_registry)
        GCCollector(registry=registry.collector_registry)

    return registry
