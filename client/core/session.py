from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, List, Optional, Set

from shared.utils.common import monotonic

logger = logging.getLogger(__name__)

StatusObserver = Callable[[bool], None]


class ClientSession:
    """Holds the state of one connection attempt's lifetime plus status observers."""

    def __init__(self) -> None:
        self.session_id: int = 0
        self.websocket: Any = None  # websockets.asyncio.client.ClientConnection
        self.connected: bool = False
        self.connected_at: float = 0.0
        self.last_seen: float = 0.0
        self._tasks: Set[asyncio.Task] = set()
        self._observers: List[StatusObserver] = []

    def add_observer(self, observer: StatusObserver) -> None:
        self._observers.append(observer)

    def begin(self, websocket: Any) -> int:
        self.session_id += 1
        self.websocket = websocket
        self.connected = True
        self.connected_at = monotonic()
        self.touch()
        self._notify(True)
        return self.session_id

    def touch(self) -> None:
        self.last_seen = monotonic()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Run `coro` as a task that is cancelled when this session ends."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def end(self) -> None:
        """Cancel everything this session started and report the disconnect once."""
        tasks = list(self._tasks)
        if tasks:
            logger.info("Cancelling %s in-flight task(s) of session %s", self.in_flight, self.session_id)
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self.websocket = None
        if self.connected:
            self.connected = False
            self._notify(False)

    def _notify(self, connected: bool) -> None:
        for observer in list(self._observers):
            try:
                observer(connected)
            except Exception as exc:
                logger.exception("Status observer failed: %s", exc)
