"""Network measurement services package."""

from .speedtest_service import MeasurementReading, SpeedtestClient, SpeedtestError

__all__ = [
    "MeasurementReading",
    "SpeedtestClient",
    "SpeedtestError",
]
