from __future__ import annotations

import logging
import os
from typing import Any, Dict

from shared.protocol import constants
from shared.settings import load_settings

DEFAULT_CONFIG: Dict[str, Any] = {
    "server_host": constants.DEFAULT_HOST,
    "server_port": constants.DEFAULT_PORT,
    "heartbeat_interval": constants.CLIENT_PING_INTERVAL,
    "reconnect_backoff": constants.RECONNECT_BACKOFF,
    "max_reconnect_backoff": constants.MAX_RECONNECT_BACKOFF,
    "open_timeout": 10.0,
    "chunk_size": constants.CHUNK_SIZE,
    "max_frame_size": constants.MAX_FRAME_SIZE,
    "log_level": "INFO",
}

CLIENT_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load capture-agent configuration from env file/environment variables."""
    settings = load_settings(env_path)
    shared_defaults = {
        "server_host": settings.bridge_host,
        "server_port": settings.bridge_port,
        "chunk_size": settings.chunk_size,
        "log_level": settings.log_level,
    }

    for key, default_value in DEFAULT_CONFIG.items():
        env_key = f"CLIENT_{key.upper()}"
        value = os.getenv(env_key, shared_defaults.get(key, default_value))
        CLIENT_CONFIG[key] = _coerce_type(value, type(default_value))

    _validate_config()
    logging.getLogger().setLevel(CLIENT_CONFIG["log_level"])
    return CLIENT_CONFIG


def _coerce_type(value: Any, target_type: type) -> Any:
    if isinstance(value, target_type):
        return value
    try:
        if target_type is bool:
            return str(value).lower() in ("1", "true", "yes", "on")
        return target_type(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Cannot convert {value} to {target_type}") from exc


def _validate_config() -> None:
    if not (1 <= int(CLIENT_CONFIG["server_port"]) <= 65535):
        raise ConfigError("server_port must be between 1 and 65535")
    if CLIENT_CONFIG["heartbeat_interval"] <= 0:
        raise ConfigError("heartbeat_interval must be positive")
    if CLIENT_CONFIG["reconnect_backoff"] <= 0:
        raise ConfigError("reconnect_backoff must be positive")
    if CLIENT_CONFIG["max_reconnect_backoff"] < CLIENT_CONFIG["reconnect_backoff"]:
        raise ConfigError("max_reconnect_backoff must not be below reconnect_backoff")
    if CLIENT_CONFIG["chunk_size"] <= 0:
        raise ConfigError("chunk_size must be positive")
    # JSON escaping can double a chunk on the wire
    if CLIENT_CONFIG["chunk_size"] * 2 > CLIENT_CONFIG["max_frame_size"]:
        raise ConfigError("chunk_size must be at most half of max_frame_size")


def get(key: str, default: Any = None) -> Any:
    return CLIENT_CONFIG.get(key, default)


__all__ = ["CLIENT_CONFIG", "DEFAULT_CONFIG", "ConfigError", "get", "load_config"]
