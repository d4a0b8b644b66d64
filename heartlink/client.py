#!/usr/bin/env python3
"""
Reconnecting Stream Client - One logical connection to the bridge.

Keeps a WebSocket connection to the bridge alive across transient failures
and hands decoded samples to application code.

STATE MACHINE:
    disconnected --connect()--> connecting --open--> connected
    connecting/connected --close or error--> disconnected

- Entering disconnected (except through disconnect()) schedules exactly one
  reconnect attempt after a fixed interval (default 3s); a second close before
  it fires does not add another timer
- A successful open cancels any pending reconnect timer
- connect() is a no-op unless disconnected
- disconnect() cancels the timer, closes the connection, and stops all
  further reconnects until connect() is called again

HANDLERS (single slot each; registering replaces the previous handler):
    on_message(handler)     handler(HeartbeatSample)
    on_connect(handler)     handler()
    on_disconnect(handler)  handler(), only when an open connection ends

Messages that are not valid JSON, or not sample objects, are logged and
dropped; they never reach the message handler or close the connection.

USAGE:
    client = ReconnectingStreamClient("ws://localhost:8082")
    client.on_message(lambda sample: print(sample.to_dict()))
    client.connect()          # inside a running event loop
    ...
    client.disconnect()
"""

import asyncio
import enum
import json
from typing import Any, Callable, Optional

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from heartlink.decoder import HeartbeatSample
from heartlink.log import get_logger
from heartlink.protocol import DEFAULT_WS_URL, RECONNECT_INTERVAL_S

logger = get_logger(__name__)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ReconnectingStreamClient:
    """WebSocket consumer with fixed-interval automatic reconnection.

    Must be driven from a running asyncio event loop.

    Attributes:
        url (str): Bridge WebSocket URL
        reconnect_interval (float): Seconds between a close and the retry
        state (ConnectionState): Current connection state
        connection_attempts (int): connect() calls that started an attempt
    """

    def __init__(self, url: str = DEFAULT_WS_URL,
                 reconnect_interval: float = RECONNECT_INTERVAL_S,
                 open_timeout: float = 10.0) -> None:
        self.url = url
        self.reconnect_interval = reconnect_interval
        self.open_timeout = open_timeout

        self.state = ConnectionState.DISCONNECTED
        self.connection_attempts = 0

        self._connection = None
        self._task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._stopped = False

        self._message_handler: Optional[Callable[[HeartbeatSample], None]] = None
        self._connect_handler: Optional[Callable[[], None]] = None
        self._disconnect_handler: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Handler registration
    # ------------------------------------------------------------------

    def on_message(self, handler: Callable[[HeartbeatSample], None]) -> None:
        if self._message_handler is not None:
            logger.debug("Replacing message handler")
        self._message_handler = handler

    def on_connect(self, handler: Callable[[], None]) -> None:
        if self._connect_handler is not None:
            logger.debug("Replacing connect handler")
        self._connect_handler = handler

    def on_disconnect(self, handler: Callable[[], None]) -> None:
        if self._disconnect_handler is not None:
            logger.debug("Replacing disconnect handler")
        self._disconnect_handler = handler

    # ------------------------------------------------------------------
    # Public control
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def connect(self) -> None:
        """Start a connection attempt unless one is already live."""
        if self.state is not ConnectionState.DISCONNECTED:
            return

        self._stopped = False
        self.state = ConnectionState.CONNECTING
        self.connection_attempts += 1
        self._task = asyncio.get_running_loop().create_task(self._run())

    def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._stopped = True
        self._cancel_reconnect()

        if self._connection is not None:
            asyncio.get_running_loop().create_task(self._connection.close())
        elif self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_closed(self) -> None:
        """Wait for the current connection task (if any) to finish."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def send(self, data: Any) -> bool:
        """Send a JSON-encoded message if connected.

        Returns:
            True if the message was queued for sending
        """
        if self._connection is None or self._connection.state is not State.OPEN:
            return False
        asyncio.get_running_loop().create_task(self._connection.send(json.dumps(data)))
        return True

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def handle_open(self) -> None:
        """Transport opened: connected, pending reconnect cancelled."""
        self.state = ConnectionState.CONNECTED
        self._cancel_reconnect()
        logger.info(f"WebSocket connected to {self.url}")
        if self._connect_handler:
            self._connect_handler()

    def handle_close(self) -> None:
        """Transport closed or failed: disconnected, maybe schedule a retry."""
        was_connected = self.state is ConnectionState.CONNECTED
        self.state = ConnectionState.DISCONNECTED
        self._connection = None

        if was_connected:
            logger.info("WebSocket disconnected")
            if self._disconnect_handler:
                self._disconnect_handler()

        if not self._stopped:
            self._schedule_reconnect()

    def handle_message(self, raw) -> None:
        """Decode one message and pass it to the message handler."""
        try:
            data = json.loads(raw)
        except (ValueError, TypeError) as e:
            logger.error(f"Error parsing WebSocket message: {e}")
            return

        if not isinstance(data, dict):
            logger.error(f"Ignoring non-object WebSocket message: {raw!r}")
            return

        sample = HeartbeatSample.from_mapping(data)
        if sample is None:
            logger.warning(f"Ignoring message without sample fields: {raw!r}")
            return

        if self._message_handler:
            try:
                self._message_handler(sample)
            except Exception as e:
                logger.error(f"Message handler failed on {sample.to_dict()}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            connection = await ws_connect(self.url, open_timeout=self.open_timeout)
        except asyncio.CancelledError:
            self.handle_close()
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"Failed to connect to {self.url}: {e}")
            self.handle_close()
            return

        if self._stopped:
            # disconnect() arrived while the handshake was finishing
            await connection.close()
            self.handle_close()
            return

        self._connection = connection
        self.handle_open()
        try:
            async for message in connection:
                self.handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f"WebSocket error: {e}")
        finally:
            await connection.close()
            self.handle_close()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_interval, self._reconnect)
        logger.debug(f"Reconnect scheduled in {self.reconnect_interval:.1f}s")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        if self._stopped:
            return
        logger.info("Attempting to reconnect...")
        self.connect()
