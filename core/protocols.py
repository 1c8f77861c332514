"""
Measurement provider protocol.

The measurement loop depends on this abstraction rather than on the concrete
speedtest client, so tests and alternative backends can plug in.
"""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from services.speedtest_service import MeasurementReading


@runtime_checkable
class MeasurementProvider(Protocol):
    """
    Anything that can produce a full ping/download/upload reading.

    Implementations either return a complete reading or raise; partial
    readings are not part of the contract. ``measure`` is blocking and is
    run in a worker thread by the measurement loop.
    """

    def measure(self) -> MeasurementReading:
        """Run one measurement (ping in ms, download/upload in Mbps)."""
        ...
