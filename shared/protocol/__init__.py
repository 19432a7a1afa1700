"""
Shared protocol package that centralizes frame kinds, message models, framing,
chunking and validation utilities for both the bridge server and the capture agent.
"""

from .chunking import (
    ChunkAssembler,
    ChunkBuffer,
    iter_chunk_frames,
    iter_response_frames,
    largest_text_field,
    split_payload,
)
from .commands import MsgType, Operation, normalize_command
from .constants import CHUNK_SIZE, DEFAULT_PORT, ENCODING, MAX_FRAME_SIZE
from .errors import (
    CaptureError,
    CaptureFailed,
    ConnectionLost,
    ErrorCode,
    HeartbeatTimeout,
    IncompleteTransfer,
    MalformedFrame,
    PeerUnavailable,
    ProtocolError,
    RequestTimeout,
)
from .framing import classify, decode_msg, encode_msg, parse_frame
from .messages import (
    DEFAULT_CHUNK_FIELD,
    RESERVED_FIELDS,
    BaseFrame,
    ChunkCompleteMsg,
    ChunkDataMsg,
    ChunkHeaderMsg,
    PageInfo,
    PingMsg,
    PongMsg,
    RequestMsg,
    ResponseMsg,
    Screenshot,
)
from .validator import load_schema, validate_frame

__all__ = [
    "MsgType",
    "Operation",
    "normalize_command",
    "CHUNK_SIZE",
    "DEFAULT_PORT",
    "ENCODING",
    "MAX_FRAME_SIZE",
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
    "encode_msg",
    "decode_msg",
    "classify",
    "parse_frame",
    "ChunkAssembler",
    "ChunkBuffer",
    "split_payload",
    "iter_chunk_frames",
    "largest_text_field",
    "iter_response_frames",
    "DEFAULT_CHUNK_FIELD",
    "RESERVED_FIELDS",
    "BaseFrame",
    "RequestMsg",
    "ResponseMsg",
    "ChunkHeaderMsg",
    "ChunkDataMsg",
    "ChunkCompleteMsg",
    "PingMsg",
    "PongMsg",
    "Screenshot",
    "PageInfo",
    "load_schema",
    "validate_frame",
]
