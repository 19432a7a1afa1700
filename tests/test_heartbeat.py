import asyncio

import pytest

from server.core.connection import ConnectionContext
from server.workers.heartbeat import HeartbeatMonitor
from shared.utils.common import monotonic


def _ctx() -> ConnectionContext:
    return ConnectionContext(websocket=None, peername="test-peer", session_id=1)


def test_expired_only_after_grace_window():
    now = [0.0]
    ctx = _ctx()
    ctx.last_seen = 0.0
    monitor = HeartbeatMonitor(ctx, send_ping=None, on_timeout=None, interval=20, grace=40, clock=lambda: now[0])

    now[0] = 40.0
    assert monitor.expired() is False
    now[0] = 41.0
    assert monitor.expired() is True


@pytest.mark.asyncio
async def test_silent_peer_triggers_timeout_without_ping():
    ctx = _ctx()
    ctx.last_seen = monotonic() - 41
    pings, timeouts = [], []

    async def send_ping(c):
        pings.append(c)

    monitor = HeartbeatMonitor(ctx, send_ping, timeouts.append, interval=0.01, grace=40)
    monitor.start()
    await asyncio.sleep(0.1)

    assert timeouts == [ctx]
    assert pings == []
    assert monitor.running is False


@pytest.mark.asyncio
async def test_live_peer_is_pinged_each_interval():
    ctx = _ctx()
    pings, timeouts = [], []

    async def send_ping(c):
        pings.append(c)
        c.touch()

    monitor = HeartbeatMonitor(ctx, send_ping, timeouts.append, interval=0.01, grace=40)
    monitor.start()
    await asyncio.sleep(0.1)
    await monitor.stop()

    assert len(pings) >= 2
    assert timeouts == []
    assert monitor.running is False


@pytest.mark.asyncio
async def test_failing_ping_does_not_stop_monitor():
    ctx = _ctx()
    attempts = []

    async def send_ping(c):
        attempts.append(c)
        raise ConnectionResetError("peer gone")

    monitor = HeartbeatMonitor(ctx, send_ping, lambda c: None, interval=0.01, grace=40)
    monitor.start()
    await asyncio.sleep(0.1)
    await monitor.stop()

    assert len(attempts) >= 2
