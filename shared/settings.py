from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from shared.protocol.constants import CHUNK_SIZE, DEFAULT_HOST, DEFAULT_PORT


@dataclass
class Settings:
    """Shared baseline settings (both client/server build on top)."""

    bridge_host: str = DEFAULT_HOST
    bridge_port: int = DEFAULT_PORT
    log_level: str = "INFO"
    chunk_size: int = CHUNK_SIZE


SETTINGS = Settings()


def load_settings(env_path: str = ".env") -> Settings:
    """Load shared settings from env/.env."""
    if Path(env_path).exists():
        load_dotenv(env_path)
    SETTINGS.bridge_host = os.getenv("BRIDGE_HOST", SETTINGS.bridge_host)
    SETTINGS.bridge_port = int(os.getenv("BRIDGE_PORT", SETTINGS.bridge_port))
    SETTINGS.log_level = os.getenv("BRIDGE_LOG_LEVEL", SETTINGS.log_level)
    SETTINGS.chunk_size = int(os.getenv("BRIDGE_CHUNK_SIZE", SETTINGS.chunk_size))
    return SETTINGS


__all__ = ["Settings", "SETTINGS", "load_settings"]
