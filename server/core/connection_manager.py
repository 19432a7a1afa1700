from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Any, Dict, Optional, Union

from shared.protocol import ConnectionLost, encode_msg

from .connection import ConnectionContext

logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"


class ConnectionManager:
    """Tracks the single active capture-agent connection."""

    def __init__(self) -> None:
        self._active: Optional[ConnectionContext] = None
        self._connected = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.ACTIVE if self._active is not None else ConnectionState.IDLE

    @property
    def active(self) -> Optional[ConnectionContext]:
        return self._active

    def is_active(self, ctx: ConnectionContext) -> bool:
        return self._active is ctx

    def activate(self, ctx: ConnectionContext) -> Optional[ConnectionContext]:
        """Make `ctx` the sole active peer. Returns the connection it supersedes, if any."""
        previous = self._active
        self._active = ctx
        self._connected.set()
        if previous is not None:
            logger.info("Peer %s supersedes %s (session %s)", ctx.peername, previous.peername, previous.session_id)
        return previous

    def release(self, ctx: ConnectionContext) -> bool:
        """Return to Idle if `ctx` is still the active peer."""
        if self._active is not ctx:
            return False
        self._active = None
        self._connected.clear()
        return True

    async def wait_active(self, timeout: Optional[float] = None) -> ConnectionContext:
        await asyncio.wait_for(self._connected.wait(), timeout)
        if self._active is None:
            raise ConnectionLost("Capture agent disconnected while waiting for it")
        return self._active

    async def send(self, ctx: ConnectionContext, message: Union[str, Dict[str, Any]]) -> None:
        """Send a frame; dicts are encoded first, text is sent as is."""
        text = message if isinstance(message, str) else encode_msg(message)
        await ctx.websocket.send(text)
