from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from shared.protocol import ChunkAssembler, ProtocolError, RequestTimeout, ResponseMsg
from shared.utils.common import monotonic

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    id: str
    operation: str
    future: asyncio.Future
    deadline: float
    session_id: Optional[int] = None
    timer: Optional[asyncio.TimerHandle] = None


class Correlator:
    """
    Owns the pending-call table.

    Every PendingCall is settled exactly once: by a matching response, by
    its deadline timer, or by an explicit rejection (connection loss,
    send failure, no peer). Whatever settles it first removes the entry,
    cancels the timer and drops any partial chunk buffer; later attempts
    find nothing and are no-ops.
    """

    def __init__(self, assembler: ChunkAssembler) -> None:
        self.assembler = assembler
        self._pending: Dict[str, PendingCall] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> str:
        return str(next(self._ids))

    def register(
        self,
        operation: str,
        timeout: float,
        session_id: Optional[int] = None,
        msg_id: Optional[str] = None,
    ) -> PendingCall:
        """Add a pending call. `msg_id` must come from next_id() when given."""
        loop = asyncio.get_running_loop()
        if msg_id is None:
            msg_id = self.next_id()
        if msg_id in self._pending:
            raise ValueError(f"Request id {msg_id} is already pending")
        call = PendingCall(
            id=msg_id,
            operation=operation,
            future=loop.create_future(),
            deadline=monotonic() + timeout,
            session_id=session_id,
        )
        call.timer = loop.call_later(timeout, self._on_deadline, msg_id, timeout)
        self._pending[msg_id] = call
        return call

    def bind_session(self, msg_id: str, session_id: int) -> None:
        call = self._pending.get(msg_id)
        if call:
            call.session_id = session_id

    def _settle(self, msg_id: str) -> Optional[PendingCall]:
        call = self._pending.pop(msg_id, None)
        if call is None:
            return None
        if call.timer:
            call.timer.cancel()
        self.assembler.discard(msg_id)
        return call

    def resolve(self, response: ResponseMsg) -> bool:
        call = self._settle(response.id)
        if call is None:
            logger.debug("Dropping response for unknown or settled id %s", response.id)
            return False
        if not call.future.done():
            call.future.set_result(response)
        return True

    def reject(self, msg_id: str, error: ProtocolError) -> bool:
        call = self._settle(msg_id)
        if call is None:
            return False
        if not call.future.done():
            call.future.set_exception(error)
        return True

    def reject_session(self, session_id: int, error: ProtocolError) -> int:
        ids = [call.id for call in self._pending.values() if call.session_id == session_id]
        for msg_id in ids:
            self.reject(msg_id, error)
        if ids:
            logger.info("Failed %s pending call(s) of session %s: %s", len(ids), session_id, error.message)
        return len(ids)

    def reject_all(self, error: ProtocolError) -> int:
        ids = list(self._pending)
        for msg_id in ids:
            self.reject(msg_id, error)
        return len(ids)

    def _on_deadline(self, msg_id: str, timeout: float) -> None:
        call = self._pending.get(msg_id)
        if call is None:
            return
        logger.warning("Request %s (%s) timed out after %ss", msg_id, call.operation, timeout)
        self.reject(msg_id, RequestTimeout(f"Request {msg_id} ({call.operation}) timed out after {timeout}s"))

    async def wait(self, call: PendingCall) -> ResponseMsg:
        return await call.future

    def is_pending(self, msg_id: str) -> bool:
        return msg_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
