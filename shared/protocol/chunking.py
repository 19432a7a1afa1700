"""
Splitting and reassembly of oversized response payloads.

Only the bulk of a successful response is streamed: its largest text
field (base64 ``screenshot`` or HTML ``source``). The header names that
field and carries the other data keys in ``meta``, so the receiver rebuilds
the original ``data`` object. ``totalSize`` counts the characters of the
streamed text, which for base64 images equals its byte length.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from .constants import CHUNK_SIZE
from .errors import IncompleteTransfer, MalformedFrame
from .messages import DEFAULT_CHUNK_FIELD, ChunkCompleteMsg, ChunkDataMsg, ChunkHeaderMsg, ResponseMsg

logger = logging.getLogger(__name__)


def count_chunks(size: int, chunk_size: int = CHUNK_SIZE) -> int:
    return max(1, math.ceil(size / chunk_size))


def split_payload(payload: str, chunk_size: int = CHUNK_SIZE) -> Iterator[str]:
    """Yield consecutive slices of at most `chunk_size` characters."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    for start in range(0, len(payload), chunk_size):
        yield payload[start : start + chunk_size]


def iter_chunk_frames(
    msg_id: str,
    payload: str,
    chunk_size: int = CHUNK_SIZE,
    field_name: str = DEFAULT_CHUNK_FIELD,
    meta: Optional[Dict[str, Any]] = None,
) -> Iterator[Dict[str, Any]]:
    """Yield chunk_header, every chunk_data in index order, then chunk_complete."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    header = ChunkHeaderMsg(
        id=msg_id,
        total_chunks=count_chunks(len(payload), chunk_size),
        total_size=len(payload),
        field=field_name,
        meta=meta or None,
    )
    yield header.to_dict()
    for index, piece in enumerate(split_payload(payload, chunk_size)):
        yield ChunkDataMsg(id=msg_id, chunk_index=index, data=piece).to_dict()
    yield ChunkCompleteMsg(id=msg_id).to_dict()


def largest_text_field(data: Dict[str, Any]) -> Optional[str]:
    """Key of the longest string value in `data`, None when there is none."""
    best: Optional[str] = None
    for key, value in data.items():
        if isinstance(value, str) and (best is None or len(value) > len(data[best])):
            best = key
    return best


def iter_response_frames(response: ResponseMsg, chunk_size: int = CHUNK_SIZE) -> Iterator[Dict[str, Any]]:
    """
    Frames that carry `response` to the peer.

    The response is dumped through pydantic first, so handler data such as
    datetimes reaches the wire as JSON text. Raises ValueError when the data
    cannot be serialized at all.
    """
    frame = response.to_dict()
    data = frame.get("data")
    if not response.success or not data:
        yield frame
        return
    bulk = largest_text_field(data)
    if bulk is None or len(data[bulk]) <= chunk_size:
        yield frame
        return
    payload = data[bulk]
    meta = {key: value for key, value in data.items() if key != bulk}
    logger.debug(
        "Chunking %r of response %s: %s chars in %s chunks",
        bulk,
        response.id,
        len(payload),
        count_chunks(len(payload), chunk_size),
    )
    yield from iter_chunk_frames(response.id, payload, chunk_size, bulk, meta)


@dataclass
class ChunkBuffer:
    id: str
    total_chunks: int
    total_size: int
    field_name: str = DEFAULT_CHUNK_FIELD
    meta: Dict[str, Any] = field(default_factory=dict)
    slots: Dict[int, str] = field(default_factory=dict)

    @property
    def received_count(self) -> int:
        return len(self.slots)

    def store(self, index: int, data: str) -> None:
        if not 0 <= index < self.total_chunks:
            raise MalformedFrame(f"chunkIndex {index} out of range for {self.id} ({self.total_chunks} chunks)")
        if index in self.slots:
            logger.debug("Duplicate chunk %s for %s, overwriting", index, self.id)
        self.slots[index] = data

    def first_missing(self) -> Optional[int]:
        for index in range(self.total_chunks):
            if index not in self.slots:
                return index
        return None

    @property
    def is_complete(self) -> bool:
        return self.received_count == self.total_chunks

    def assemble(self) -> str:
        if not self.is_complete:
            raise IncompleteTransfer(
                f"Transfer {self.id} incomplete: {self.total_chunks - self.received_count} of "
                f"{self.total_chunks} chunks missing (first gap at {self.first_missing()})"
            )
        payload = "".join(self.slots[index] for index in range(self.total_chunks))
        if len(payload) != self.total_size:
            raise IncompleteTransfer(
                f"Transfer {self.id} size mismatch: expected {self.total_size}, got {len(payload)}"
            )
        return payload

    def rebuild(self, payload: str) -> Dict[str, Any]:
        data = dict(self.meta)
        data[self.field_name] = payload
        return data


class ChunkAssembler:
    """Receiving side: one buffer per in-flight chunked response."""

    def __init__(self) -> None:
        self._buffers: Dict[str, ChunkBuffer] = {}

    def open(self, header: ChunkHeaderMsg) -> ChunkBuffer:
        if header.id in self._buffers:
            logger.warning("Restarting chunked transfer for %s", header.id)
        buffer = ChunkBuffer(
            id=header.id,
            total_chunks=header.total_chunks,
            total_size=header.total_size,
            field_name=header.field,
            meta=dict(header.meta or {}),
        )
        self._buffers[header.id] = buffer
        logger.info(
            "Starting chunked transfer for %s: %s chunks, %s bytes",
            header.id,
            header.total_chunks,
            header.total_size,
        )
        return buffer

    def add(self, chunk: ChunkDataMsg) -> bool:
        """Store a fragment; False when no transfer is open for its id."""
        buffer = self._buffers.get(chunk.id)
        if buffer is None:
            return False
        buffer.store(chunk.chunk_index, chunk.data)
        if buffer.received_count % 10 == 0:
            logger.debug("Received %s/%s chunks for %s", buffer.received_count, buffer.total_chunks, chunk.id)
        return True

    def complete_response(self, msg_id: str) -> Optional[ResponseMsg]:
        """
        Close the transfer and rebuild the successful response the sender split up.
        Returns None for an unknown id; raises IncompleteTransfer (buffer already dropped) on gaps.
        """
        buffer = self._buffers.pop(msg_id, None)
        if buffer is None:
            return None
        return ResponseMsg.ok(msg_id, buffer.rebuild(buffer.assemble()))

    def discard(self, msg_id: str) -> bool:
        return self._buffers.pop(msg_id, None) is not None

    def clear(self) -> None:
        self._buffers.clear()

    def __contains__(self, msg_id: object) -> bool:
        return msg_id in self._buffers

    def __len__(self) -> int:
        return len(self._buffers)


__all__ = [
    "count_chunks",
    "split_payload",
    "iter_chunk_frames",
    "largest_text_field",
    "iter_response_frames",
    "ChunkBuffer",
    "ChunkAssembler",
]
