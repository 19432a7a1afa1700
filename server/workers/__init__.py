from .heartbeat import HeartbeatMonitor

__all__ = ["HeartbeatMonitor"]
