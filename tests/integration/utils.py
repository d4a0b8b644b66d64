"""Integration test utilities for the heartlink relay.

Provides helpers for running a real bridge server and viewer client on one
event loop:
- wait_until: poll a predicate without blocking the loop
- SampleCollector: records every sample a ReconnectingStreamClient delivers
- running_server: websockets server bound to an ephemeral localhost port
"""

import asyncio
from contextlib import asynccontextmanager

from websockets.asyncio.server import serve

from heartlink.client import ReconnectingStreamClient
from heartlink.hub import BroadcastHub


async def wait_until(predicate, timeout=2.0, interval=0.01):
    """Wait for predicate() to become true.

    Raises:
        AssertionError: If the predicate is still false after timeout seconds
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)


class SampleCollector:
    """Client wrapper that records samples and connection events.

    Example:
        collector = SampleCollector(f"ws://127.0.0.1:{port}")
        collector.client.connect()
        await wait_until(lambda: collector.client.connected)
    """

    def __init__(self, url, reconnect_interval=0.1):
        self.client = ReconnectingStreamClient(url, reconnect_interval=reconnect_interval)
        self.samples = []
        self.connects = 0
        self.disconnects = 0
        self.client.on_message(self.samples.append)
        self.client.on_connect(self._connected)
        self.client.on_disconnect(self._disconnected)

    def _connected(self):
        self.connects += 1

    def _disconnected(self):
        self.disconnects += 1

    async def close(self):
        self.client.disconnect()
        await self.client.wait_closed()


@asynccontextmanager
async def running_server(hub: BroadcastHub, port: int = 0):
    """Serve hub.handler on localhost; yields the bound port."""
    async with serve(hub.handler, "127.0.0.1", port) as server:
        yield server.sockets[0].getsockname()[1]
