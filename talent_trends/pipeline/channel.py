"""
Bounded single-producer / single-consumer channel.

``send()`` waits while the buffer is full, which throttles the producer to
the consumer's pace.  Either side can close:

  - ``close_sender()``   — producer finished; the consumer drains what is
    buffered, then ``receive()`` returns ``None``.
  - ``close_receiver()`` — consumer left; buffered items are dropped and any
    current or future ``send()`` raises ``ChannelClosedError``.

All state changes happen on the event loop thread between awaits, so two
``asyncio.Event`` flags are enough to wake the blocked side.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Generic, Optional, TypeVar

T = TypeVar("T")


class ChannelClosedError(Exception):
    """Raised by ``send()`` once the receiving side has gone away."""


class RecordChannel(Generic[T]):
    """Capacity-limited async channel with receiver-drop detection."""

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}.")
        self.capacity = capacity
        self._buffer: deque[T] = deque()
        self._readable = asyncio.Event()
        self._writable = asyncio.Event()
        self._writable.set()
        self._sender_closed = False
        self._receiver_closed = False

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def sender_closed(self) -> bool:
        return self._sender_closed

    @property
    def receiver_closed(self) -> bool:
        return self._receiver_closed

    # ── Producer side ─────────────────────────────────────────────────────────

    async def send(self, item: T) -> None:
        """Append ``item``, waiting for space if the buffer is full.

        Raises:
            ChannelClosedError: If the receiver closed before or while waiting,
                or if the sender side was already closed.
        """
        while True:
            self._check_sendable()
            if len(self._buffer) < self.capacity:
                self._buffer.append(item)
                self._readable.set()
                return
            self._writable.clear()
            await self._writable.wait()

    def try_send(self, item: T) -> bool:
        """Append ``item`` without waiting; ``False`` if the buffer is full.

        Raises:
            ChannelClosedError: If either side is closed.
        """
        self._check_sendable()
        if len(self._buffer) >= self.capacity:
            return False
        self._buffer.append(item)
        self._readable.set()
        return True

    def close_sender(self) -> None:
        """Mark the stream complete. Idempotent."""
        self._sender_closed = True
        self._readable.set()

    def _check_sendable(self) -> None:
        if self._receiver_closed:
            raise ChannelClosedError("receiver closed")
        if self._sender_closed:
            raise ChannelClosedError("sender already closed")

    # ── Consumer side ─────────────────────────────────────────────────────────

    async def receive(self) -> Optional[T]:
        """Return the next item, or ``None`` once closed and drained."""
        while True:
            if self._buffer:
                item = self._buffer.popleft()
                self._writable.set()
                return item
            if self._sender_closed or self._receiver_closed:
                return None
            self._readable.clear()
            await self._readable.wait()

    def close_receiver(self) -> None:
        """Signal that nobody will read again. Idempotent."""
        self._receiver_closed = True
        self._buffer.clear()
        self._readable.set()
        self._writable.set()

    async def __aiter__(self) -> AsyncIterator[T]:
        while True:
            item = await self.receive()
            if item is None:
                return
            yield item
