from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from shared.utils.common import monotonic

if TYPE_CHECKING:
    from server.workers.heartbeat import HeartbeatMonitor


@dataclass
class ConnectionContext:
    websocket: Any  # websockets.asyncio.server.ServerConnection
    peername: str
    session_id: int
    connected_at: float = field(default_factory=monotonic)
    last_seen: float = field(default_factory=monotonic)
    monitor: Optional["HeartbeatMonitor"] = None
    closed: bool = False

    def touch(self) -> None:
        self.last_seen = monotonic()
