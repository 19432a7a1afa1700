from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from shared.utils.common import decode_image

from .commands import Operation, normalize_command
from .errors import MalformedFrame

RESERVED_FIELDS = frozenset({"id", "operation", "type"})

# Response data key streamed when a chunk_header does not name one.
DEFAULT_CHUNK_FIELD = "screenshot"


class BaseFrame(BaseModel):
    """Base envelope shared by every frame kind. Unknown fields are dropped."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise MalformedFrame(f"{cls.__name__} validation failed: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RequestMsg(BaseFrame):
    """Server -> capture agent. Parameters travel flattened beside id/operation."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str = Field(..., min_length=1)
    operation: Union[Operation, str]

    @property
    def operation_text(self) -> str:
        return normalize_command(self.operation)

    @property
    def parameters(self) -> Dict[str, Any]:
        extra = dict(self.model_extra or {})
        extra.pop("type", None)
        return extra

    @classmethod
    def build(cls, msg_id: str, operation: Union[Operation, str], parameters: Optional[Dict[str, Any]] = None) -> "RequestMsg":
        params = dict(parameters or {})
        clashing = RESERVED_FIELDS.intersection(params)
        if clashing:
            raise ValueError(f"Reserved parameter names: {sorted(clashing)}")
        return cls(id=msg_id, operation=normalize_command(operation), **params)


class ResponseMsg(BaseFrame):
    """Capture agent -> server. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, msg_id: str, data: Optional[Dict[str, Any]] = None) -> "ResponseMsg":
        return cls(id=msg_id, success=True, data=data)

    @classmethod
    def fail(cls, msg_id: str, error: str) -> "ResponseMsg":
        return cls(id=msg_id, success=False, error=error)


class ChunkHeaderMsg(BaseFrame):
    """
    Opens a chunked transfer of one large text field of a response's data.

    ``field`` names the data key being streamed and ``meta`` carries the
    remaining (small) data keys so the receiver can rebuild the object.
    """

    type: Literal["chunk_header"] = "chunk_header"
    id: str = Field(..., min_length=1)
    total_chunks: int = Field(..., alias="totalChunks", ge=1)
    total_size: int = Field(..., alias="totalSize", ge=0)
    field: str = Field(DEFAULT_CHUNK_FIELD, min_length=1)
    meta: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _chunks_fit_size(self) -> "ChunkHeaderMsg":
        if self.total_chunks > max(1, self.total_size):
            raise ValueError(f"totalChunks {self.total_chunks} exceeds totalSize {self.total_size}")
        return self


class ChunkDataMsg(BaseFrame):
    type: Literal["chunk_data"] = "chunk_data"
    id: str = Field(..., min_length=1)
    chunk_index: int = Field(..., alias="chunkIndex", ge=0)
    data: str


class ChunkCompleteMsg(BaseFrame):
    type: Literal["chunk_complete"] = "chunk_complete"
    id: str = Field(..., min_length=1)


class PingMsg(BaseFrame):
    type: Literal["ping"] = "ping"


class PongMsg(BaseFrame):
    type: Literal["pong"] = "pong"


class Screenshot(BaseModel):
    """Base64 image returned by the capture operations."""

    data: str
    mime_type: str = "image/png"
    element_bounds: Optional[Dict[str, Any]] = None

    def image_bytes(self) -> bytes:
        return decode_image(self.data)


class PageInfo(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str
    title: str = ""
    width: int = 0
    height: int = 0
    scroll_height: int = Field(0, alias="scrollHeight")
    scroll_width: int = Field(0, alias="scrollWidth")


__all__ = [
    "RESERVED_FIELDS",
    "DEFAULT_CHUNK_FIELD",
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
]
