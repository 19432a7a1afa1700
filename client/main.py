from __future__ import annotations

import asyncio
import logging
from typing import Optional

from client.config import CLIENT_CONFIG, load_config
from client.core import BridgeClient
from client.features import CaptureDispatcher

logger = logging.getLogger(__name__)


def _log_status(connected: bool) -> None:
    logger.info("Bridge %s", "connected" if connected else "disconnected")


async def run_client(dispatcher: Optional[CaptureDispatcher] = None) -> None:
    """Keep a capture agent attached to the bridge until cancelled."""
    load_config()
    logging.basicConfig(level=CLIENT_CONFIG["log_level"])
    client = BridgeClient(dispatcher or CaptureDispatcher())
    logger.info("Serving capture operations: %s", ", ".join(client.dispatcher.operations) or "none")
    client.add_observer(_log_status)
    await client.start()
    try:
        await asyncio.Event().wait()  # keep running
    finally:
        await client.stop()


def main() -> None:
    try:
        asyncio.run(run_client())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
