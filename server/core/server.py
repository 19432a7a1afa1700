from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional, Set, Union

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from server.config import SERVER_CONFIG
from server.workers.heartbeat import HeartbeatMonitor
from shared.protocol import (
    ChunkAssembler,
    ChunkCompleteMsg,
    ChunkDataMsg,
    ChunkHeaderMsg,
    ConnectionLost,
    HeartbeatTimeout,
    IncompleteTransfer,
    MalformedFrame,
    MsgType,
    Operation,
    PeerUnavailable,
    PongMsg,
    RequestMsg,
    ResponseMsg,
    encode_msg,
    framing,
    normalize_command,
)

from .connection import ConnectionContext
from .connection_manager import ConnectionManager
from .correlator import Correlator
from .router import FrameRouter

logger = logging.getLogger(__name__)


class BridgeServer:
    """
    Accepting side of the bridge.

    Listens for the capture agent, keeps exactly one peer active, relays
    requests through the Correlator and reassembles chunked responses.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or SERVER_CONFIG
        self.host: str = self.config["host"]
        self.port: int = int(self.config["port"])
        self.request_timeout: float = float(self.config["request_timeout"])
        self.ping_interval: float = float(self.config["ping_interval"])
        self.heartbeat_grace: float = float(self.config["heartbeat_grace"])
        self.unavailable_delay: float = float(self.config["unavailable_delay"])
        self.close_timeout: float = float(self.config.get("close_timeout", 5.0))
        self.max_frame_size: int = int(self.config.get("max_frame_size", 1024 * 1024))

        self.connection_manager = ConnectionManager()
        self.assembler = ChunkAssembler()
        self.correlator = Correlator(self.assembler)
        self.router = FrameRouter()
        self.router.register(MsgType.PING, self._on_ping)
        self.router.register(MsgType.PONG, self._on_pong)
        self.router.register(MsgType.CHUNK_HEADER, self._on_chunk_header)
        self.router.register(MsgType.CHUNK_DATA, self._on_chunk_data)
        self.router.register(MsgType.CHUNK_COMPLETE, self._on_chunk_complete)
        self.router.register(MsgType.RESPONSE, self._on_response)
        self.router.register(MsgType.REQUEST, self._on_request)

        self._server = None
        self._sessions = itertools.count(1)
        self._background: Set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self.connection_manager.active is not None

    @property
    def bound_port(self) -> int:
        """Actual listening port (useful when configured with port 0)."""
        if self._server is None:
            return self.port
        sock = next(iter(self._server.sockets))
        return sock.getsockname()[1]

    async def start(self) -> None:
        self._server = await serve(
            self._handle_client,
            self.host,
            self.port,
            ping_interval=None,
            close_timeout=self.close_timeout,
            max_size=self.max_frame_size,
        )
        logger.info("Bridge listening on ws://%s:%s", self.host, self.bound_port)

    async def stop(self) -> None:
        active = self.connection_manager.active
        if active is not None:
            self._drop_connection(active, ConnectionLost("Bridge server shutting down"))
        self.correlator.reject_all(ConnectionLost("Bridge server shutting down"))
        self.assembler.clear()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        logger.info("Bridge server stopped")

    async def wait_connected(self, timeout: Optional[float] = None) -> ConnectionContext:
        return await self.connection_manager.wait_active(timeout)

    async def send(
        self,
        operation: Union[str, Operation],
        parameters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ResponseMsg:
        """
        Relay one request to the capture agent and wait for its response.

        Raises PeerUnavailable, RequestTimeout, ConnectionLost or
        IncompleteTransfer; a peer-side failure comes back as a response
        with success=False. Reserved or unserializable parameters raise
        ValueError, an oversized request ProtocolError.
        """
        operation_text = normalize_command(operation)
        timeout = self.request_timeout if timeout is None else timeout
        msg_id = self.correlator.next_id()
        # Bad parameters raise here, before any call is registered.
        request = RequestMsg.build(msg_id, operation_text, parameters)
        frame = encode_msg(request.to_dict())
        call = self.correlator.register(operation_text, timeout, msg_id=msg_id)

        ctx = self.connection_manager.active
        if ctx is None:
            asyncio.get_running_loop().call_later(
                self.unavailable_delay,
                self.correlator.reject,
                call.id,
                PeerUnavailable(
                    "Capture agent not connected. Make sure the browser extension is loaded "
                    "and refresh the page you want to capture."
                ),
            )
            return await self.correlator.wait(call)

        self.correlator.bind_session(call.id, ctx.session_id)
        try:
            await self.connection_manager.send(ctx, frame)
            logger.debug("Sent request %s (%s) to %s", call.id, operation_text, ctx.peername)
        except (ConnectionClosed, OSError) as exc:
            logger.warning("Failed to send request %s: %s", call.id, exc)
            self.correlator.reject(call.id, ConnectionLost(f"Failed to send request to capture agent: {exc}"))
        return await self.correlator.wait(call)

    async def _handle_client(self, websocket: ServerConnection) -> None:
        ctx = ConnectionContext(
            websocket=websocket,
            peername=str(websocket.remote_address),
            session_id=next(self._sessions),
        )
        previous = self.connection_manager.activate(ctx)
        if previous is not None:
            self._drop_connection(previous, ConnectionLost("Superseded by a new capture agent connection"))
        logger.info("Capture agent connected from %s (session %s)", ctx.peername, ctx.session_id)

        ctx.monitor = HeartbeatMonitor(
            ctx,
            send_ping=self._send_ping,
            on_timeout=self._on_heartbeat_timeout,
            interval=self.ping_interval,
            grace=self.heartbeat_grace,
        )
        ctx.monitor.start()
        try:
            async for raw in websocket:
                if ctx.closed:
                    break
                await self._process_frame(raw, ctx)
        except ConnectionClosed as exc:
            logger.info("Capture agent %s disconnected: %s", ctx.peername, exc)
        except Exception as exc:
            logger.exception("Unhandled error on session %s: %s", ctx.session_id, exc)
        finally:
            self._drop_connection(ctx, ConnectionLost("Connection to capture agent closed"))
            logger.info("Session %s closed", ctx.session_id)

    async def _process_frame(self, raw: Union[str, bytes], ctx: ConnectionContext) -> None:
        try:
            kind, message = framing.parse_frame(raw)
        except MalformedFrame as exc:
            logger.warning("Dropping malformed frame from %s: %s", ctx.peername, exc.message)
            return
        ctx.touch()
        try:
            await self.router.dispatch(kind, message, ctx)
        except MalformedFrame as exc:
            logger.warning("Dropping %s frame from %s: %s", kind, ctx.peername, exc.message)

    def _drop_connection(self, ctx: ConnectionContext, error: ConnectionLost) -> None:
        """Tear down one session: stop its heartbeat, fail its calls, close its socket."""
        if ctx.monitor is not None:
            ctx.monitor.cancel()
        self.connection_manager.release(ctx)
        self.correlator.reject_session(ctx.session_id, error)
        if not ctx.closed:
            ctx.closed = True
            self._spawn(self._close_socket(ctx, error))

    async def _close_socket(self, ctx: ConnectionContext, error: ConnectionLost) -> None:
        code = 1011 if isinstance(error, HeartbeatTimeout) else 1000
        try:
            await ctx.websocket.close(code=code, reason=error.message[:120])
        except Exception as exc:
            logger.debug("Error closing session %s: %s", ctx.session_id, exc)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _on_heartbeat_timeout(self, ctx: ConnectionContext) -> None:
        self._drop_connection(
            ctx, HeartbeatTimeout(f"No heartbeat from capture agent within {self.heartbeat_grace}s")
        )

    async def _send_ping(self, ctx: ConnectionContext) -> None:
        pong_waiter = await ctx.websocket.ping()

        def _on_pong(fut: asyncio.Future) -> None:
            if not fut.cancelled() and fut.exception() is None:
                ctx.touch()

        pong_waiter.add_done_callback(_on_pong)

    async def _on_ping(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        await self.connection_manager.send(ctx, PongMsg().to_dict())

    async def _on_pong(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        # liveness already recorded by _process_frame
        return None

    async def _on_chunk_header(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        header = ChunkHeaderMsg.from_dict(message)
        if not self.correlator.is_pending(header.id):
            logger.debug("Ignoring chunk_header for settled id %s", header.id)
            return
        self.assembler.open(header)

    async def _on_chunk_data(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        chunk = ChunkDataMsg.from_dict(message)
        if not self.assembler.add(chunk):
            logger.debug("Ignoring chunk %s for %s: no open transfer", chunk.chunk_index, chunk.id)

    async def _on_chunk_complete(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        msg_id = ChunkCompleteMsg.from_dict(message).id
        try:
            response = self.assembler.complete_response(msg_id)
        except IncompleteTransfer as exc:
            logger.warning("%s", exc.message)
            self.correlator.reject(msg_id, exc)
            return
        if response is None:
            logger.debug("Ignoring chunk_complete for %s: no open transfer", msg_id)
            return
        logger.info("Reassembled chunked response for %s", msg_id)
        self.correlator.resolve(response)

    async def _on_response(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        self.correlator.resolve(ResponseMsg.from_dict(message))

    async def _on_request(self, message: Dict[str, Any], ctx: ConnectionContext) -> None:
        logger.warning("Ignoring request %s from capture agent %s", message.get("id"), ctx.peername)
