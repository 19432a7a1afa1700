from __future__ import annotations

from typing import Any, Dict, Optional

from server.core.server import BridgeServer
from shared.protocol import CaptureFailed, Operation, PageInfo, ResponseMsg, Screenshot

IMAGE_FORMATS = ("png", "jpeg", "webp")


class CaptureService:
    """Caller-facing snapshot operations on top of BridgeServer.send."""

    def __init__(self, bridge: BridgeServer, timeout: Optional[float] = None) -> None:
        self.bridge = bridge
        self.timeout = timeout

    async def capture_viewport(self, format: str = "png") -> Screenshot:
        response = await self._call(Operation.CAPTURE_VIEWPORT, {"format": _check_format(format)})
        return _screenshot(response, format, "Failed to capture viewport")

    async def capture_full_page(self, format: str = "png") -> Screenshot:
        response = await self._call(Operation.CAPTURE_FULL_PAGE, {"format": _check_format(format)})
        return _screenshot(response, format, "Failed to capture full page")

    async def capture_element(self, selector: str, index: int = 0, padding: int = 0, format: str = "png") -> Screenshot:
        if not selector:
            raise ValueError("selector is required")
        response = await self._call(
            Operation.CAPTURE_ELEMENT,
            {"selector": selector, "index": index, "padding": padding, "format": _check_format(format)},
        )
        return _screenshot(response, format, "Failed to capture element")

    async def get_page_info(self) -> PageInfo:
        response = await self._call(Operation.GET_PAGE_INFO)
        info = _field(response, "pageInfo", "Failed to get page info")
        return PageInfo.model_validate(info)

    async def get_page_source(self) -> str:
        response = await self._call(Operation.GET_PAGE_SOURCE)
        return _field(response, "source", "Failed to get page source")

    async def get_element_source(self, selector: str, index: int = 0) -> str:
        if not selector:
            raise ValueError("selector is required")
        response = await self._call(Operation.GET_ELEMENT_SOURCE, {"selector": selector, "index": index})
        return _field(response, "source", "Failed to get element source")

    async def _call(self, operation: Operation, parameters: Optional[Dict[str, Any]] = None) -> ResponseMsg:
        return await self.bridge.send(operation, parameters, timeout=self.timeout)


def _check_format(format: str) -> str:
    if format not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format {format!r}, expected one of {IMAGE_FORMATS}")
    return format


def _field(response: ResponseMsg, name: str, fallback: str) -> Any:
    if not response.success:
        raise CaptureFailed(response.error or fallback)
    value = (response.data or {}).get(name)
    if value is None:
        raise CaptureFailed(f"{fallback}: response has no {name!r}")
    return value


def _screenshot(response: ResponseMsg, format: str, fallback: str) -> Screenshot:
    data = _field(response, "screenshot", fallback)
    return Screenshot(
        data=data,
        mime_type=f"image/{format}",
        element_bounds=(response.data or {}).get("elementBounds"),
    )
