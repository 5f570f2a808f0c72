"""
Connection registry for Media Remote.

Tracks the outbound channel of every live WebSocket session so the host can
push broadcast messages to all connected clients.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ChannelClosed(Exception):
    """Raised when pushing to a channel whose writer has gone away."""


class OutboundChannel:
    """
    Unbounded FIFO of outbound text frames for one connection.

    Any thread may push; only the owning session's writer task consumes.
    Pushing never blocks.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, message: str) -> None:
        """
        Enqueue a message for the writer task.

        Raises:
            ChannelClosed: If the channel (or its event loop) is closed
        """
        if self._closed:
            raise ChannelClosed("channel is closed")

        if self._in_loop_thread():
            self._queue.put_nowait(message)
            return

        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError as e:
            # Event loop already closed
            self._closed = True
            raise ChannelClosed(str(e)) from e

    async def get(self) -> Optional[str]:
        """Wait for the next message. Returns None once the channel is closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        """Close the channel and wake the writer."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._in_loop_thread():
                self._queue.put_nowait(None)
            else:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            pass

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False


class ConnectionRegistry:
    """
    Shared mapping of connection id -> outbound channel.

    All operations hold one lock for O(entries) time at most and perform
    no I/O, so the registry may be used from the server loop and from host
    threads alike.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._channels: Dict[str, OutboundChannel] = {}

    def register(self, connection_id: str, channel: OutboundChannel) -> None:
        """Insert a connection. The last registration for an id wins."""
        with self._lock:
            self._channels[connection_id] = channel
        logger.debug(f"Registered connection {connection_id}")

    def unregister(self, connection_id: str) -> None:
        """Remove a connection if present."""
        with self._lock:
            removed = self._channels.pop(connection_id, None)
        if removed is not None:
            logger.debug(f"Unregistered connection {connection_id}")

    def get(self, connection_id: str) -> Optional[OutboundChannel]:
        with self._lock:
            return self._channels.get(connection_id)

    def count(self) -> int:
        """Number of registered connections (approximate under churn)."""
        with self._lock:
            return len(self._channels)

    def snapshot(self) -> List[Tuple[str, OutboundChannel]]:
        with self._lock:
            return list(self._channels.items())

    def broadcast(self, message: str) -> int:
        """
        Push a message to every registered connection.

        A failed push is logged and skipped; the dead entry is left for its
        own session to remove.

        Returns:
            Number of channels the message was enqueued on
        """
        delivered = 0
        for connection_id, channel in self.snapshot():
            try:
                channel.push(message)
                delivered += 1
            except ChannelClosed:
                logger.debug(f"Skipping closed channel {connection_id}")
        return delivered

    def __len__(self) -> int:
        return self.count()
