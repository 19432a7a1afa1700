from __future__ import annotations

import asyncio
import logging

from server.config import SERVER_CONFIG, load_server_config
from server.core import BridgeServer


async def run_server() -> None:
    load_server_config()
    logging.basicConfig(level=SERVER_CONFIG["log_level"])

    bridge = BridgeServer(SERVER_CONFIG)
    await bridge.start()
    try:
        await asyncio.Event().wait()  # keep running
    finally:
        await bridge.stop()


def main() -> None:
    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
