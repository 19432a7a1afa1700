from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Dict, TYPE_CHECKING, Union

from shared.protocol.commands import MsgType, normalize_command

if TYPE_CHECKING:
    from .connection import ConnectionContext

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any], "ConnectionContext"], Awaitable[None]]


class FrameRouter:
    """Maps frame kinds to async handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(self, kind: Union[str, MsgType], handler: Handler) -> None:
        self._handlers[normalize_command(kind)] = handler

    async def dispatch(self, kind: Union[str, MsgType], message: Dict[str, Any], ctx: "ConnectionContext") -> bool:
        handler = self._handlers.get(normalize_command(kind))
        if handler is None:
            logger.debug("No handler registered for %s", kind)
            return False
        await handler(message, ctx)
        return True
