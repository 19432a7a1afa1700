from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Dict, Optional, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from client.config import CLIENT_CONFIG
from client.features.capture import CaptureDispatcher
from shared.protocol import (
    MalformedFrame,
    MsgType,
    PingMsg,
    PongMsg,
    ProtocolError,
    RequestMsg,
    ResponseMsg,
    encode_msg,
    framing,
    iter_response_frames,
    normalize_command,
)

from .backoff import ReconnectBackoff
from .session import ClientSession, StatusObserver

logger = logging.getLogger(__name__)

FrameHandler = Callable[[ClientConnection, Dict[str, Any]], Awaitable[None]]


class BridgeClient:
    """WebSocket client for the capture agent: reconnect, heartbeat, request serving."""

    def __init__(self, dispatcher: Optional[CaptureDispatcher] = None, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config or CLIENT_CONFIG
        self.host: str = self.config["server_host"]
        self.port: int = int(self.config["server_port"])
        self.heartbeat_interval: float = float(self.config["heartbeat_interval"])
        self.chunk_size: int = int(self.config["chunk_size"])
        self.open_timeout: float = float(self.config.get("open_timeout", 10.0))
        self.max_frame_size: int = int(self.config.get("max_frame_size", 1024 * 1024))
        self.backoff = ReconnectBackoff(
            float(self.config["reconnect_backoff"]),
            float(self.config["max_reconnect_backoff"]),
        )

        self.dispatcher = dispatcher or CaptureDispatcher()
        self.session = ClientSession()
        self.session.add_observer(self._track_status)
        self._handlers: Dict[str, FrameHandler] = {}
        self.register_handler(MsgType.REQUEST, self._on_request)
        self.register_handler(MsgType.PING, self._on_ping)
        self.register_handler(MsgType.PONG, self._on_pong)

        self._runner: Optional[asyncio.Task] = None
        self._running: bool = False
        self._immediate: bool = False
        self._wake = asyncio.Event()
        self._connected_event = asyncio.Event()

    @property
    def uri(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self.session.connected

    @property
    def reconnect_delay(self) -> float:
        return self.backoff.delay

    def add_observer(self, observer: StatusObserver) -> None:
        self.session.add_observer(observer)

    def register_handler(self, kind: Union[str, MsgType], handler: FrameHandler) -> None:
        self._handlers[normalize_command(kind)] = handler

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._running = True
        self._runner = asyncio.create_task(self._run(), name="bridge-client")

    async def stop(self) -> None:
        self._running = False
        self._wake.set()
        websocket = self.session.websocket
        if websocket is not None:
            with contextlib.suppress(Exception):
                await websocket.close()
        if self._runner is not None:
            self._runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._runner
            self._runner = None
        logger.info("Bridge client stopped")

    async def wait_connected(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._connected_event.wait(), timeout)

    def reconnect_now(self) -> None:
        """Skip the pending backoff wait, drop any stale socket and dial again right away."""
        logger.info("Manual reconnect requested")
        self.backoff.reset()
        self._immediate = True
        self._wake.set()
        websocket = self.session.websocket
        if websocket is not None:
            self.session.spawn(websocket.close(), name="client-close-stale")

    async def _run(self) -> None:
        while self._running:
            try:
                websocket = await connect(
                    self.uri,
                    ping_interval=None,
                    open_timeout=self.open_timeout,
                    max_size=self.max_frame_size,
                )
            except asyncio.CancelledError:
                raise
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                delay = self.backoff.record_failure()
                logger.warning("Connect to %s failed: %s; retrying in %.1fs", self.uri, exc, delay)
            else:
                self.backoff.reset()
                self._immediate = False
                await self._serve(websocket)
                delay = self.backoff.delay
                if self._running:
                    logger.info("Reconnecting to %s in %.1fs", self.uri, delay)
            if not self._running:
                break
            await self._sleep(delay)

    async def _sleep(self, delay: float) -> None:
        if self._immediate:
            self._immediate = False
            return
        self._wake.clear()
        try:
            await asyncio.wait_for(self._wake.wait(), delay)
        except asyncio.TimeoutError:
            pass
        self._immediate = False

    async def _serve(self, websocket: ClientConnection) -> None:
        session_id = self.session.begin(websocket)
        logger.info("Connected to bridge at %s (session %s)", self.uri, session_id)
        self.session.spawn(self._heartbeat_loop(websocket), name="client-heartbeat")
        try:
            async for raw in websocket:
                await self._process_frame(websocket, raw)
        except ConnectionClosed as exc:
            logger.info("Bridge connection closed: %s", exc)
        except Exception as exc:
            logger.exception("Receive loop terminated: %s", exc)
        finally:
            await self.session.end()
            with contextlib.suppress(Exception):
                await websocket.close()
            logger.info("Session %s ended", session_id)

    async def _process_frame(self, websocket: ClientConnection, raw: Union[str, bytes]) -> None:
        try:
            kind, message = framing.parse_frame(raw)
        except MalformedFrame as exc:
            logger.warning("Dropping malformed frame: %s", exc.message)
            return
        self.session.touch()
        handler = self._handlers.get(kind)
        if handler is None:
            logger.debug("No handler registered for %s", kind)
            return
        try:
            await handler(websocket, message)
        except MalformedFrame as exc:
            logger.warning("Dropping %s frame: %s", kind, exc.message)

    async def _on_request(self, websocket: ClientConnection, message: Dict[str, Any]) -> None:
        request = RequestMsg.from_dict(message)
        logger.debug("Received request %s (%s)", request.id, request.operation_text)
        self.session.spawn(self._answer(websocket, request), name=f"capture-{request.id}")

    async def _answer(self, websocket: ClientConnection, request: RequestMsg) -> None:
        response = await self.dispatcher.handle(request)
        try:
            await self.send_response(websocket, response)
        except (ProtocolError, TypeError, ValueError) as exc:
            reason = exc.message if isinstance(exc, ProtocolError) else f"Unserializable response data: {exc}"
            logger.warning("Cannot deliver response %s: %s", request.id, reason)
            try:
                await self.send_response(websocket, ResponseMsg.fail(request.id, reason))
            except ConnectionClosed as closed:
                logger.warning("Connection closed before failure %s was delivered: %s", request.id, closed)
        except ConnectionClosed as exc:
            logger.warning("Connection closed before response %s was delivered: %s", request.id, exc)

    async def send_response(self, websocket: ClientConnection, response: ResponseMsg) -> None:
        """Send `response` as one frame, or as a chunk stream when its payload is large."""
        for frame in iter_response_frames(response, self.chunk_size):
            await websocket.send(encode_msg(frame))

    async def _on_ping(self, websocket: ClientConnection, message: Dict[str, Any]) -> None:
        await websocket.send(encode_msg(PongMsg().to_dict()))

    async def _on_pong(self, websocket: ClientConnection, message: Dict[str, Any]) -> None:
        # liveness already recorded by _process_frame
        return None

    async def _heartbeat_loop(self, websocket: ClientConnection) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            try:
                await websocket.send(encode_msg(PingMsg().to_dict()))
            except ConnectionClosed:
                return

    def _track_status(self, connected: bool) -> None:
        if connected:
            self._connected_event.set()
        else:
            self._connected_event.clear()
