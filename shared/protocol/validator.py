from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import jsonschema

from .commands import MsgType, normalize_command
from .errors import MalformedFrame

SCHEMA_DIR = Path(__file__).parent / "schemas"

# Mapping frame kind -> schema filename (relative to SCHEMA_DIR)
SCHEMA_REGISTRY: Dict[str, str] = {
    MsgType.REQUEST.value: "request.json",
    MsgType.RESPONSE.value: "response.json",
    MsgType.CHUNK_HEADER.value: "chunk_header.json",
    MsgType.CHUNK_DATA.value: "chunk_data.json",
    MsgType.CHUNK_COMPLETE.value: "chunk_complete.json",
    MsgType.PING.value: "ping.json",
    MsgType.PONG.value: "pong.json",
}


def _schema_path(kind: str) -> Optional[Path]:
    filename = SCHEMA_REGISTRY.get(kind)
    if not filename:
        return None
    path = SCHEMA_DIR / filename
    return path if path.exists() else None


@lru_cache(maxsize=16)
def load_schema(kind: Union[str, MsgType]) -> Optional[dict]:
    """Load JSON schema for a frame kind if present."""
    path = _schema_path(normalize_command(kind))
    if not path:
        return None
    with path.open("r", encoding="utf-8") as fp:
        return json.load(fp)


def validate_frame(msg: Dict[str, Any], kind: Union[str, MsgType], schema: Optional[dict] = None) -> None:
    """Check a decoded frame against the schema of its kind."""
    if not schema:
        schema = load_schema(kind)
    if schema:
        try:
            jsonschema.validate(instance=msg, schema=schema)
        except jsonschema.ValidationError as exc:
            raise MalformedFrame(f"{normalize_command(kind)} schema validation failed: {exc.message}") from exc


__all__ = ["SCHEMA_DIR", "SCHEMA_REGISTRY", "load_schema", "validate_frame"]
