"""
Core measurement loop.

Background Task System:
- BackgroundTask: ABC for periodic background tasks (execute → sleep loop)
- SpeedtestTask: runs the measurement provider and publishes gauges
- TaskOrchestrator: registry and lifecycle manager for background tasks
- MeasurementProvider: protocol the measurement loop depends on
"""

from .background_task import BackgroundTask
from .protocols import MeasurementProvider
from .speedtest_task import SpeedtestTask
from .task_orchestrator import TaskOrchestrator

__all__ = [
    "BackgroundTask",
    "MeasurementProvider",
    "SpeedtestTask",
    "TaskOrchestrator",
]
