#!/usr/bin/env python3
"""
Broadcast Hub - Fans decoded samples out to every connected viewer.

ARCHITECTURE:
- Membership is a plain set of Consumer objects (no ordering guarantee)
- broadcast() snapshots the set, so joins/leaves affect the next call only
- Each delivery is its own asyncio task: the caller never awaits a socket
- A consumer that is not open, or whose send fails, is pruned; the others
  still receive the event

The hub runs on the bridge's event loop. handler() is passed straight to
websockets' serve() and owns a consumer for its connected lifetime.
"""

import asyncio
import enum
from functools import partial
from typing import Optional, Set

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from heartlink.decoder import HeartbeatSample
from heartlink.log import get_logger
from heartlink.protocol import MessageStatistics

logger = get_logger(__name__)


class ConsumerState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class Consumer:
    """One connected viewer.

    Wraps a websockets connection (anything with a ``state`` attribute and an
    async ``send``) and maps its transport state onto open/closing/closed.
    A connection still in its handshake counts as closed for delivery.
    """

    def __init__(self, connection, address: Optional[str] = None) -> None:
        self.connection = connection
        self.address = address or str(getattr(connection, "remote_address", "?"))

    @property
    def state(self) -> ConsumerState:
        transport_state = getattr(self.connection, "state", State.CLOSED)
        if transport_state is State.OPEN:
            return ConsumerState.OPEN
        if transport_state is State.CLOSING:
            return ConsumerState.CLOSING
        return ConsumerState.CLOSED

    async def send(self, message: str) -> None:
        await self.connection.send(message)

    def __repr__(self) -> str:
        return f"Consumer({self.address}, {self.state.value})"


class BroadcastHub:
    """Set of live consumers with fire-and-forget fan-out.

    Attributes:
        stats (MessageStatistics): Delivery counters shared with the bridge
    """

    def __init__(self, stats: Optional[MessageStatistics] = None) -> None:
        self._consumers: Set[Consumer] = set()
        self._pending: Set[asyncio.Task] = set()
        self.stats = stats if stats is not None else MessageStatistics()

    @property
    def consumer_count(self) -> int:
        return len(self._consumers)

    @property
    def consumers(self) -> frozenset:
        return frozenset(self._consumers)

    def register(self, consumer: Consumer) -> None:
        """Add a consumer; registering twice is a no-op."""
        if consumer in self._consumers:
            return
        self._consumers.add(consumer)
        logger.info(f"Client connected ({consumer.address}). Total clients: {len(self._consumers)}")

    def unregister(self, consumer: Consumer) -> None:
        """Remove a consumer; unknown consumers are ignored."""
        if consumer not in self._consumers:
            return
        self._consumers.discard(consumer)
        logger.info(f"Client disconnected ({consumer.address}). Total clients: {len(self._consumers)}")

    def broadcast(self, event: HeartbeatSample) -> int:
        """Schedule delivery of one sample to every open consumer.

        Must be called from the running event loop. Consumers that are not
        open are pruned without a send attempt.

        Args:
            event: Decoded sample; serialized once for all consumers

        Returns:
            Number of delivery attempts made
        """
        message = event.to_json()
        attempts = 0

        for consumer in list(self._consumers):
            if consumer.state is not ConsumerState.OPEN:
                self.unregister(consumer)
                continue

            attempts += 1
            try:
                task = asyncio.ensure_future(consumer.send(message))
            except Exception as e:
                logger.warning(f"Delivery to {consumer.address} failed: {e}")
                self.unregister(consumer)
                continue

            self._pending.add(task)
            task.add_done_callback(partial(self._delivery_done, consumer))

        self.stats.increment("delivery_attempts", attempts)
        return attempts

    def _delivery_done(self, consumer: Consumer, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if isinstance(error, ConnectionClosed):
            logger.debug(f"Delivery to {consumer.address} raced a close: {error}")
        else:
            logger.warning(f"Delivery to {consumer.address} failed: {error}")
        self.stats.increment("delivery_failures")
        self.unregister(consumer)

    async def handler(self, connection) -> None:
        """websockets connection handler: membership for the socket's lifetime.

        Viewers have nothing to say to the bridge, so incoming messages are
        read and ignored to keep the connection's receive side drained.
        """
        consumer = Consumer(connection)
        self.register(consumer)
        try:
            async for message in connection:
                logger.debug(f"Ignoring message from {consumer.address}: {message!r}")
        except ConnectionClosed as e:
            logger.debug(f"Connection {consumer.address} closed: {e}")
        finally:
            self.unregister(consumer)

    async def close(self) -> None:
        """Cancel in-flight deliveries and forget every consumer."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
        self._consumers.clear()
