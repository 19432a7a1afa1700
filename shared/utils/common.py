from __future__ import annotations

import base64
import re
import time
from typing import Union

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-z]+;base64,")


def monotonic() -> float:
    """Clock used for deadlines and liveness bookkeeping."""
    return time.monotonic()


def encode_image(data: Union[bytes, str]) -> str:
    """Turn raw image bytes (or a data URL) into bare base64 text for the wire."""
    if isinstance(data, str):
        return _DATA_URL_PREFIX.sub("", data)
    return base64.b64encode(data).decode("ascii")


def decode_image(text: str) -> bytes:
    return base64.b64decode(_DATA_URL_PREFIX.sub("", text))


__all__ = ["monotonic", "encode_image", "decode_image"]
