from __future__ import annotations

from typing import Any, Dict

import pytest
import pytest_asyncio

from client.config import DEFAULT_CONFIG
from client.core import BridgeClient
from client.features import CaptureDispatcher
from server.config import DEFAULT_SERVER_CONFIG
from server.core import BridgeServer


def make_server_config(**overrides: Any) -> Dict[str, Any]:
    config = DEFAULT_SERVER_CONFIG.copy()
    config.update(
        {
            "host": "127.0.0.1",
            "port": 0,
            "request_timeout": 5.0,
            "close_timeout": 0.5,
        }
    )
    config.update(overrides)
    return config


def make_client_config(port: int, **overrides: Any) -> Dict[str, Any]:
    config = DEFAULT_CONFIG.copy()
    config.update(
        {
            "server_host": "127.0.0.1",
            "server_port": port,
            "reconnect_backoff": 0.05,
            "max_reconnect_backoff": 0.2,
            "open_timeout": 2.0,
        }
    )
    config.update(overrides)
    return config


@pytest.fixture
def dispatcher() -> CaptureDispatcher:
    return CaptureDispatcher()


@pytest_asyncio.fixture
async def bridge():
    server = BridgeServer(make_server_config())
    await server.start()
    yield server
    await server.stop()


@pytest_asyncio.fixture
async def agent(bridge, dispatcher):
    client = BridgeClient(dispatcher, make_client_config(bridge.bound_port))
    await client.start()
    await client.wait_connected(5)
    await bridge.wait_connected(5)
    yield client
    await client.stop()
