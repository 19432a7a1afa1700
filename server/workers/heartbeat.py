from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Optional

from shared.utils.common import monotonic

if TYPE_CHECKING:
    from server.core.connection import ConnectionContext

logger = logging.getLogger(__name__)

PingSender = Callable[["ConnectionContext"], Awaitable[None]]
TimeoutCallback = Callable[["ConnectionContext"], None]


class HeartbeatMonitor:
    """Periodically pings one connection and reports it dead after a silent grace window."""

    def __init__(
        self,
        ctx: "ConnectionContext",
        send_ping: PingSender,
        on_timeout: TimeoutCallback,
        interval: float = 20.0,
        grace: float = 40.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.ctx = ctx
        self.send_ping = send_ping
        self.on_timeout = on_timeout
        self.interval = interval
        self.grace = grace
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"heartbeat-{self.ctx.session_id}")

    def cancel(self) -> None:
        task = self._task
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def stop(self) -> None:
        task = self._task
        self.cancel()
        if task and task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None

    def expired(self) -> bool:
        return self.clock() - self.ctx.last_seen > self.grace

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.expired():
                logger.warning(
                    "No liveness signal from %s for %.1fs, dropping connection",
                    self.ctx.peername,
                    self.clock() - self.ctx.last_seen,
                )
                self.on_timeout(self.ctx)
                return
            try:
                await self.send_ping(self.ctx)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.debug("Ping to %s failed: %s", self.ctx.peername, exc)
