import asyncio
import json

import websockets

from novos.livereload import RELOAD_MESSAGE, ReloadChannel, reload_script


class DummyWebSocket:
    def __init__(self, fail_after=None):
        self.sent = []
        self.fail_after = fail_after
        self._closed = asyncio.Event()

    async def send(self, message):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise websockets.ConnectionClosed(None, None)
        self.sent.append(message)

    async def wait_closed(self):
        await self._closed.wait()

    def close(self):
        self._closed.set()


def test_reload_script_targets_port():
    script = reload_script(5056)
    assert "location.hostname + ':5056'" in script
    assert "data.type === 'reload'" in script
    assert script.strip().startswith("<script>")


def test_reload_message():
    assert json.loads(RELOAD_MESSAGE) == {"type": "reload"}


def test_publish_wakes_waiters():
    async def scenario():
        channel = ReloadChannel()
        waiters = [asyncio.ensure_future(channel.wait(0)) for _ in range(3)]
        await asyncio.sleep(0)
        assert await channel.publish() == 1
        return await asyncio.gather(*waiters)

    assert asyncio.run(scenario()) == [1, 1, 1]


def test_late_subscriber_only_sees_later_publications():
    async def scenario():
        channel = ReloadChannel()
        await channel.publish()
        ws = DummyWebSocket()
        task = asyncio.ensure_future(channel.serve(ws))
        await asyncio.sleep(0.01)
        assert ws.sent == []
        await channel.publish()
        await asyncio.sleep(0.01)
        await channel.publish()
        await asyncio.sleep(0.01)
        ws.close()
        await asyncio.wait_for(task, 1)
        return ws.sent

    assert asyncio.run(scenario()) == [RELOAD_MESSAGE, RELOAD_MESSAGE]


def test_serve_returns_when_send_fails():
    async def scenario():
        channel = ReloadChannel()
        ws = DummyWebSocket(fail_after=1)
        task = asyncio.ensure_future(channel.serve(ws))
        await asyncio.sleep(0.01)
        await channel.publish()
        await asyncio.sleep(0.01)
        await channel.publish()
        await asyncio.wait_for(task, 1)
        return ws.sent

    assert asyncio.run(scenario()) == [RELOAD_MESSAGE]


def test_serve_returns_when_peer_leaves():
    async def scenario():
        channel = ReloadChannel()
        ws = DummyWebSocket()
        task = asyncio.ensure_future(channel.serve(ws))
        await asyncio.sleep(0.01)
        ws.close()
        await asyncio.wait_for(task, 1)
        return channel.generation

    assert asyncio.run(scenario()) == 0
