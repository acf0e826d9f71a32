"""Live reload for the novos development server.

Browsers load a small script that opens a websocket to the dev server and
reloads the page when a ``{"type": "reload"}`` message arrives. The server
side is a ReloadChannel: a generation counter guarded by an asyncio
condition. Publishing bumps the counter and wakes every waiting client
handler; a handler that connects after a publication only sees later ones.
"""

from __future__ import annotations

import asyncio
import json
import logging

import websockets

logger = logging.getLogger(__name__)

RELOAD_MESSAGE = json.dumps({"type": "reload"})

LIVE_RELOAD_SCRIPT = """
<script>
(() => {{
  const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
  ws.onmessage = (event) => {{
    const data = JSON.parse(event.data || '{{}}');
    if (data.type === 'reload') location.reload();
  }};
}})();
</script>
"""


def reload_script(ws_port: int) -> str:
    """Return the client script for a websocket server on ``ws_port``."""
    return LIVE_RELOAD_SCRIPT.format(ws_port=ws_port)


class ReloadChannel:
    """Broadcasts reload notifications to connected browsers.

    Must be used from the event loop that serves the websockets; other
    threads schedule :meth:`publish` with ``asyncio.run_coroutine_threadsafe``.
    """

    def __init__(self):
        self._generation = 0
        self._condition = asyncio.Condition()

    @property
    def generation(self) -> int:
        return self._generation

    async def publish(self) -> int:
        """Announce a finished rebuild and return the new generation."""
        async with self._condition:
            self._generation += 1
            self._condition.notify_all()
            return self._generation

    async def wait(self, seen: int) -> int:
        """Wait for a generation newer than ``seen`` and return it."""
        async with self._condition:
            await self._condition.wait_for(lambda: self._generation > seen)
            return self._generation

    async def serve(self, websocket) -> None:
        """Websocket handler: forward each publication until the peer leaves."""
        seen = self._generation
        closed = asyncio.ensure_future(websocket.wait_closed())
        try:
            while True:
                update = asyncio.ensure_future(self.wait(seen))
                done, _ = await asyncio.wait(
                    {update, closed}, return_when=asyncio.FIRST_COMPLETED
                )
                if update not in done:
                    update.cancel()
                    return
                seen = update.result()
                try:
                    await websocket.send(RELOAD_MESSAGE)
                except websockets.ConnectionClosed:
                    return
        finally:
            closed.cancel()
