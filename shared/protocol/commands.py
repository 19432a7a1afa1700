from __future__ import annotations

from enum import StrEnum
from typing import Union


class MsgType(StrEnum):
    """
    Frame kinds exchanged over the bridge.
    Request and response frames usually omit `type` on the wire; see framing.classify.
    """

    REQUEST = "request"
    RESPONSE = "response"
    CHUNK_HEADER = "chunk_header"
    CHUNK_DATA = "chunk_data"
    CHUNK_COMPLETE = "chunk_complete"
    PING = "ping"
    PONG = "pong"


class Operation(StrEnum):
    """Capabilities the capture agent exposes."""

    CAPTURE_VIEWPORT = "capture_viewport"
    CAPTURE_FULL_PAGE = "capture_full_page"
    CAPTURE_ELEMENT = "capture_element"
    GET_PAGE_INFO = "get_page_info"
    GET_PAGE_SOURCE = "get_page_source"
    GET_ELEMENT_SOURCE = "get_element_source"


def normalize_command(command: Union[str, MsgType, Operation]) -> str:
    """Convert enum/string into canonical text."""
    return command.value if isinstance(command, (MsgType, Operation)) else str(command)


__all__ = [
    "MsgType",
    "Operation",
    "normalize_command",
]
