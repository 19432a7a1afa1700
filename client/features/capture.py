from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from shared.protocol import CaptureError, Operation, RequestMsg, ResponseMsg, normalize_command
from shared.utils.common import encode_image

logger = logging.getLogger(__name__)

CaptureHandler = Callable[[Dict[str, Any]], Awaitable[Optional[Dict[str, Any]]]]

IMAGE_FIELD = "screenshot"


class CaptureDispatcher:
    """
    Routes incoming requests to the capture handlers the agent provides.

    A handler receives the request parameters and returns the response
    ``data`` object. A ``screenshot`` may be raw image bytes or a data URL;
    it is sent as bare base64 text. Raising CaptureError produces a failed
    response with its message; any other exception is logged and reported
    the same way.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, CaptureHandler] = {}

    def register(self, operation: Union[str, Operation], handler: CaptureHandler) -> None:
        self._handlers[normalize_command(operation)] = handler

    @property
    def operations(self) -> List[str]:
        return sorted(self._handlers)

    async def handle(self, request: RequestMsg) -> ResponseMsg:
        operation = request.operation_text
        handler = self._handlers.get(operation)
        if handler is None:
            logger.warning("Unknown request type %s (id %s)", operation, request.id)
            return ResponseMsg.fail(request.id, f"Unknown request type: {operation}")
        try:
            data = await handler(request.parameters)
        except CaptureError as exc:
            logger.info("Capture %s failed for %s: %s", operation, request.id, exc.message)
            return ResponseMsg.fail(request.id, exc.message)
        except Exception as exc:
            logger.exception("Capture handler %s crashed: %s", operation, exc)
            return ResponseMsg.fail(request.id, str(exc) or "Unknown error")
        try:
            return ResponseMsg.ok(request.id, _wire_data(data))
        except ValidationError as exc:
            logger.error("Capture handler %s returned unusable data: %s", operation, exc)
            return ResponseMsg.fail(request.id, f"Capture handler returned invalid data for {operation}")


def _wire_data(data: Any) -> Any:
    if not isinstance(data, dict):
        return data or {}
    data = dict(data)
    image = data.get(IMAGE_FIELD)
    if isinstance(image, (bytes, bytearray, str)):
        data[IMAGE_FIELD] = encode_image(bytes(image) if isinstance(image, bytearray) else image)
    return data
