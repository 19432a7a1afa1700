import asyncio

import pytest

from server.core.correlator import Correlator
from shared.protocol import (
    ChunkAssembler,
    ChunkHeaderMsg,
    ConnectionLost,
    RequestTimeout,
    ResponseMsg,
)


def _correlator() -> Correlator:
    return Correlator(ChunkAssembler())


@pytest.mark.asyncio
async def test_ids_increase_monotonically():
    correlator = _correlator()
    ids = [correlator.register("get_page_info", 5).id for _ in range(5)]
    assert ids == ["1", "2", "3", "4", "5"]
    correlator.reject_all(ConnectionLost("done"))


@pytest.mark.asyncio
async def test_response_resolves_exactly_once():
    correlator = _correlator()
    call = correlator.register("get_page_source", 5)

    assert correlator.resolve(ResponseMsg.ok(call.id, {"source": "a"})) is True
    assert correlator.resolve(ResponseMsg.ok(call.id, {"source": "b"})) is False

    response = await correlator.wait(call)
    assert response.data == {"source": "a"}
    assert len(correlator) == 0
    assert call.timer.cancelled()


@pytest.mark.asyncio
async def test_timeout_wins_and_late_response_is_noop():
    correlator = _correlator()
    call = correlator.register("capture_viewport", 0.05)

    with pytest.raises(RequestTimeout):
        await correlator.wait(call)

    assert correlator.resolve(ResponseMsg.ok(call.id, {"screenshot": "late"})) is False
    assert correlator.reject(call.id, ConnectionLost("late")) is False


@pytest.mark.asyncio
async def test_timeout_discards_partial_chunks():
    correlator = _correlator()
    call = correlator.register("capture_full_page", 0.05)
    correlator.assembler.open(ChunkHeaderMsg(id=call.id, total_chunks=4, total_size=40))

    with pytest.raises(RequestTimeout):
        await correlator.wait(call)
    assert call.id not in correlator.assembler


@pytest.mark.asyncio
async def test_reject_session_only_touches_that_session():
    correlator = _correlator()
    first = correlator.register("get_page_info", 5, session_id=1)
    second = correlator.register("get_page_info", 5, session_id=2)

    assert correlator.reject_session(1, ConnectionLost("gone")) == 1
    with pytest.raises(ConnectionLost):
        await correlator.wait(first)
    assert correlator.is_pending(second.id)

    correlator.resolve(ResponseMsg.ok(second.id, {}))
    assert (await correlator.wait(second)).success is True


@pytest.mark.asyncio
async def test_abandoned_call_is_still_cleaned_up_by_timer():
    correlator = _correlator()
    call = correlator.register("capture_viewport", 0.05)

    waiter = asyncio.ensure_future(correlator.wait(call))
    await asyncio.sleep(0)
    waiter.cancel()
    await asyncio.sleep(0.1)

    assert not correlator.is_pending(call.id)


@pytest.mark.asyncio
async def test_register_with_reserved_id():
    correlator = _correlator()
    msg_id = correlator.next_id()
    call = correlator.register("get_page_info", 5, msg_id=msg_id)
    assert call.id == msg_id

    with pytest.raises(ValueError):
        correlator.register("get_page_info", 5, msg_id=msg_id)
    assert len(correlator) == 1
    correlator.reject_all(ConnectionLost("done"))
