from __future__ import annotations

"""Infrastructure layer: metrics registry and exposition server."""

from .metrics import (
    CONTENT_TYPE,
    DOWNLOAD_SPEC,
    PING_SPEC,
    SPEEDTEST_GAUGES,
    UPLOAD_SPEC,
    DuplicateMetricError,
    GaugeSpec,
    MetricsRegistry,
    UnknownMetricError,
    create_speedtest_registry,
)

from .exporter_server import ExporterServer, parse_listen_address, start_exporter_server

__all__ = [
    # Metrics
    "CONTENT_TYPE",
    "DOWNLOAD_SPEC",
    "PING_SPEC",
    "SPEEDTEST_GAUGES",
    "UPLOAD_SPEC",
    "DuplicateMetricError",
    "GaugeSpec",
    "MetricsRegistry",
    "UnknownMetricError",
    "create_speedtest_registry",
    # Exposition
    "ExporterServer",
    "parse_listen_address",
    "start_exporter_server",
]
