from __future__ import annotations

import os
from typing import Any, Dict

from shared.protocol import constants
from shared.settings import load_settings

DEFAULT_SERVER_CONFIG: Dict[str, Any] = {
    "host": constants.DEFAULT_HOST,
    "port": constants.DEFAULT_PORT,
    "log_level": "INFO",
    "request_timeout": constants.DEFAULT_REQUEST_TIMEOUT,
    "ping_interval": constants.SERVER_PING_INTERVAL,
    "heartbeat_grace": constants.HEARTBEAT_GRACE,
    "unavailable_delay": constants.UNAVAILABLE_DELAY,
    "close_timeout": 5.0,
    "max_frame_size": constants.MAX_FRAME_SIZE,
}

SERVER_CONFIG = DEFAULT_SERVER_CONFIG.copy()


def load_server_config(env_path: str = ".env") -> Dict[str, Any]:
    settings = load_settings(env_path)
    SERVER_CONFIG["host"] = os.getenv("SERVER_HOST", settings.bridge_host)
    SERVER_CONFIG["port"] = int(os.getenv("SERVER_PORT", settings.bridge_port))
    SERVER_CONFIG["log_level"] = os.getenv("SERVER_LOG_LEVEL", settings.log_level)
    SERVER_CONFIG["request_timeout"] = float(os.getenv("SERVER_REQUEST_TIMEOUT", SERVER_CONFIG["request_timeout"]))
    SERVER_CONFIG["ping_interval"] = float(os.getenv("SERVER_PING_INTERVAL", SERVER_CONFIG["ping_interval"]))
    SERVER_CONFIG["heartbeat_grace"] = float(os.getenv("SERVER_HEARTBEAT_GRACE", SERVER_CONFIG["heartbeat_grace"]))
    SERVER_CONFIG["unavailable_delay"] = float(
        os.getenv("SERVER_UNAVAILABLE_DELAY", SERVER_CONFIG["unavailable_delay"])
    )
    SERVER_CONFIG["close_timeout"] = float(os.getenv("SERVER_CLOSE_TIMEOUT", SERVER_CONFIG["close_timeout"]))
    return SERVER_CONFIG


__all__ = ["DEFAULT_SERVER_CONFIG", "SERVER_CONFIG", "load_server_config"]
