from __future__ import annotations

from enum import IntEnum
from typing import Optional


class ErrorCode(IntEnum):
    """Failure kinds surfaced to bridge callers."""

    MALFORMED_FRAME = 1001
    PEER_UNAVAILABLE = 1002
    REQUEST_TIMEOUT = 1003
    INCOMPLETE_TRANSFER = 1004
    CONNECTION_LOST = 1005
    HEARTBEAT_TIMEOUT = 1006
    FRAME_TOO_LARGE = 1007
    CAPTURE_FAILED = 1008


class ProtocolError(Exception):
    """Structured protocol exception carrying code + message."""

    default_code = ErrorCode.MALFORMED_FRAME

    def __init__(self, message: str = "", code: Optional[ErrorCode] = None) -> None:
        self.code = code if code is not None else self.default_code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")

    def to_payload(self) -> dict:
        """Map error into a response-shaped dict consumable by the tool layer."""
        return {
            "success": False,
            "error": self.message,
            "error_code": int(self.code),
        }


class MalformedFrame(ProtocolError):
    default_code = ErrorCode.MALFORMED_FRAME


class PeerUnavailable(ProtocolError):
    default_code = ErrorCode.PEER_UNAVAILABLE


class RequestTimeout(ProtocolError):
    default_code = ErrorCode.REQUEST_TIMEOUT


class IncompleteTransfer(ProtocolError):
    default_code = ErrorCode.INCOMPLETE_TRANSFER


class ConnectionLost(ProtocolError):
    default_code = ErrorCode.CONNECTION_LOST


class HeartbeatTimeout(ConnectionLost):
    """Peer went silent; pending calls see it as a lost connection."""

    default_code = ErrorCode.HEARTBEAT_TIMEOUT


class CaptureError(ProtocolError):
    """Raised by capture handlers on the agent side."""

    default_code = ErrorCode.CAPTURE_FAILED


class CaptureFailed(ProtocolError):
    """Peer answered with success=false or without the expected data."""

    default_code = ErrorCode.CAPTURE_FAILED


__all__ = [
    "ErrorCode",
    "ProtocolError",
    "MalformedFrame",
    "PeerUnavailable",
    "RequestTimeout",
    "IncompleteTransfer",
    "ConnectionLost",
    "HeartbeatTimeout",
    "CaptureError",
    "CaptureFailed",
]
