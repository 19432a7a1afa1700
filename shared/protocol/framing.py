from __future__ import annotations

import json
from typing import Any, Dict, Tuple, Union

from .commands import MsgType
from .constants import ENCODING, MAX_FRAME_SIZE
from .errors import ErrorCode, MalformedFrame, ProtocolError
from .validator import validate_frame

# Kinds that are always tagged with an explicit `type` on the wire.
TYPED_KINDS = frozenset(
    {
        MsgType.CHUNK_HEADER,
        MsgType.CHUNK_DATA,
        MsgType.CHUNK_COMPLETE,
        MsgType.PING,
        MsgType.PONG,
    }
)


def encode_msg(msg: Dict[str, Any]) -> str:
    """Encode message dict into one JSON text frame."""
    try:
        text = json.dumps(msg, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"Encode failed: {exc}", ErrorCode.MALFORMED_FRAME) from exc

    if len(text.encode(ENCODING)) > MAX_FRAME_SIZE:
        raise ProtocolError("Frame too large for a single message; chunk the payload", ErrorCode.FRAME_TOO_LARGE)
    return text


def decode_msg(data: Union[str, bytes]) -> Dict[str, Any]:
    """Decode one text (or binary) frame into a dictionary."""
    try:
        text = data.decode(ENCODING) if isinstance(data, (bytes, bytearray)) else data
        msg = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedFrame(f"Decode failed: {exc}") from exc
    if not isinstance(msg, dict):
        raise MalformedFrame(f"Expected a JSON object, got {type(msg).__name__}")
    return msg


def classify(msg: Dict[str, Any]) -> MsgType:
    """Work out the frame kind from its `type` tag or, failing that, its shape."""
    tag = msg.get("type")
    if isinstance(tag, str):
        try:
            kind = MsgType(tag)
        except ValueError:
            kind = None
        if kind in TYPED_KINDS:
            return kind
        if kind is MsgType.REQUEST and "operation" in msg:
            return kind
        if kind is MsgType.RESPONSE and "success" in msg:
            return kind
    if "operation" in msg:
        return MsgType.REQUEST
    if "success" in msg:
        return MsgType.RESPONSE
    raise MalformedFrame(f"Unrecognized frame (type={tag!r}, keys={sorted(msg)[:8]})")


def parse_frame(data: Union[str, bytes]) -> Tuple[MsgType, Dict[str, Any]]:
    """Decode, classify and schema-check a frame."""
    msg = decode_msg(data)
    kind = classify(msg)
    validate_frame(msg, kind)
    return kind, msg


__all__ = ["TYPED_KINDS", "encode_msg", "decode_msg", "classify", "parse_frame"]
