from queue_monitor.models.base import Base
from queue_monitor.models.monitor import Monitor, MonitorStatus

__all__ = [
    "Base",
    "Monitor",
    "MonitorStatus",
]
