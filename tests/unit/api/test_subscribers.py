"""Unit tests for the WebSocket subscriber adapter."""

import asyncio

import pytest

from ecp_visual.core.api.subscribers import WebSocketSubscriber
from ecp_visual.core.broadcast import BroadcastLog, Subscriber


class StubSocket:
    """Just enough of web.WebSocketResponse for the adapter."""

    def __init__(self):
        self.closed = False
        self.sent = []
        self.gate = asyncio.Event()
        self.gate.set()
        self.close_code = None

    async def send_str(self, data):
        await self.gate.wait()
        self.sent.append(data)

    async def close(self, *, code=1000, message=b""):
        self.closed = True
        self.close_code = code


@pytest.mark.asyncio
async def test_delivers_in_order():
    ws = StubSocket()
    sub = WebSocketSubscriber(ws)
    assert isinstance(sub, Subscriber)
    for i in range(3):
        sub.deliver(str(i))
    await asyncio.sleep(0.01)
    assert ws.sent == ["0", "1", "2"]
    assert sub.pending == 0


@pytest.mark.asyncio
async def test_not_ready_when_backlogged():
    ws = StubSocket()
    ws.gate.clear()
    sub = WebSocketSubscriber(ws, max_pending=2)
    log = BroadcastLog()
    log.subscribe(sub)

    assert log.send({"type": "reload"}) == 1
    assert log.send({"type": "reload"}) == 1
    assert sub.ready is False
    assert log.send({"type": "reload"}) == 0

    ws.gate.set()
    await asyncio.sleep(0.01)
    assert len(ws.sent) == 2
    assert sub.ready is True


@pytest.mark.asyncio
async def test_not_ready_when_closed():
    ws = StubSocket()
    sub = WebSocketSubscriber(ws)
    ws.closed = True
    assert sub.ready is False


@pytest.mark.asyncio
async def test_close_flushes_pending_sends():
    ws = StubSocket()
    sub = WebSocketSubscriber(ws)
    sub.deliver('{"type": "reload"}')
    await sub.close(code=1001)
    assert ws.sent == ['{"type": "reload"}']
    assert ws.closed is True
    assert ws.close_code == 1001


@pytest.mark.asyncio
async def test_close_gives_up_on_stuck_sends():
    ws = StubSocket()
    ws.gate.clear()
    sub = WebSocketSubscriber(ws)
    sub.deliver("stuck")
    await sub.close(flush_timeout=0.01)
    assert ws.sent == []
    assert sub.pending == 0
    assert ws.closed is True


@pytest.mark.asyncio
async def test_send_failure_is_contained():
    class BrokenSocket(StubSocket):
        async def send_str(self, data):
            raise ConnectionResetError("gone")

    sub = WebSocketSubscriber(BrokenSocket())
    sub.deliver("x")
    await asyncio.sleep(0.01)
    assert sub.pending == 0


@pytest.mark.asyncio
async def test_held_deliveries_go_out_on_release():
    ws = StubSocket()
    sub = WebSocketSubscriber(ws, max_pending=3)
    sub.hold()
    sub.deliver("live-1")
    sub.deliver("live-2")
    await ws.send_str("initial")
    assert ws.sent == ["initial"]

    sub.release()
    await asyncio.sleep(0.01)
    assert ws.sent == ["initial", "live-1", "live-2"]


@pytest.mark.asyncio
async def test_held_backlog_counts_toward_readiness():
    sub = WebSocketSubscriber(StubSocket(), max_pending=2)
    sub.hold()
    sub.deliver("a")
    assert sub.ready is True
    sub.deliver("b")
    assert sub.ready is False


@pytest.mark.asyncio
async def test_close_sends_held_deliveries():
    ws = StubSocket()
    sub = WebSocketSubscriber(ws)
    sub.hold()
    sub.deliver('{"type": "reload"}')
    await sub.close()
    assert ws.sent == ['{"type": "reload"}']
