"""Per-instrument broadcast hub for live quote fan-out."""

from __future__ import annotations

import asyncio
import logging
import time
from threading import Lock

from .models import Quote

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100

# Queued by Subscription.close() to wake readers blocked in get()
_CLOSED = object()


class Subscription:
    """Live cursor on one channel. Also the cancellation handle.

    Iterate with ``async for`` to receive every quote published for the
    channel's name after the subscription was created. The iteration never
    ends on its own; call close() (or leave ``async with``) to detach from
    the channel and end any iteration in progress.
    """

    def __init__(self, channel: Channel, buffer_size: int) -> None:
        self._channel = channel
        self._queue: asyncio.Queue[Quote | object] = asyncio.Queue(maxsize=buffer_size)
        self._closed = False

    @property
    def name(self) -> str:
        return self._channel.name

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Quotes buffered but not yet consumed."""
        if self._closed:
            return 0
        return self._queue.qsize()

    async def get(self) -> Quote:
        """Wait for the next quote.

        Raises StopAsyncIteration once the subscription is closed, including
        for a reader that was already waiting when close() was called.
        """
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            # Pass the wake-up on to any other waiting reader
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Detach from the channel and wake waiting readers. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._channel.detach(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def _offer(self, quote: Quote) -> bool:
        """Buffer a quote without blocking. Returns False if one was dropped.

        When the buffer is full the oldest quote is discarded, since a newer
        quote for the same name supersedes it.
        """
        if self._closed:
            return True
        dropped = False
        if self._queue.full():
            try:
                self._queue.get_nowait()
                dropped = True
            except asyncio.QueueEmpty:
                pass
        self._queue.put_nowait(quote)
        return not dropped

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Quote:
        return await self.get()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()


class Channel:
    """Multicast stream of quotes for a single instrument name."""

    def __init__(self, name: str, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        self.name = name
        self._buffer_size = buffer_size
        self._subscribers: set[Subscription] = set()
        self._lock = Lock()
        self.published: int = 0
        self.dropped: int = 0
        self.last_active: float = time.monotonic()
        self.evicted = False

    def attach(self) -> Subscription:
        subscription = Subscription(self, self._buffer_size)
        with self._lock:
            self._subscribers.add(subscription)
            self.last_active = time.monotonic()
        return subscription

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)
            self.last_active = time.monotonic()

    def publish(self, quote: Quote) -> int | None:
        """Deliver to every current subscriber. Returns the delivery count.

        Returns None without counting anything if the channel was evicted,
        so the caller can retry on the replacement channel.
        """
        with self._lock:
            if self.evicted:
                return None
            subscribers = list(self._subscribers)
            self.published += 1
            self.last_active = time.monotonic()
        for subscription in subscribers:
            if not subscription._offer(quote):
                with self._lock:
                    self.dropped += 1
        return len(subscribers)

    def try_evict(self, max_idle_seconds: float, now: float) -> bool:
        """Mark the channel evicted if it has no subscribers and has been idle."""
        with self._lock:
            if self._subscribers or now - self.last_active < max_idle_seconds:
                return False
            self.evicted = True
            return True

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def idle_for(self, now: float | None = None) -> float:
        ref = time.monotonic() if now is None else now
        return ref - self.last_active

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "subscribers": self.subscriber_count,
            "published": self.published,
            "dropped": self.dropped,
        }


class BroadcastHub:
    """Registry of name -> Channel, created lazily on first publish or subscribe.

    Writers: QuoteService.save (after the store accepts a quote).
    Readers: SSE endpoint subscriptions, one per connected client.

    The lock guards only the registry map. Fan-out happens under each
    channel's own lock, so unrelated names never serialize on each other.
    Deliveries are asyncio queue puts and must run on the event loop that
    owns the subscribers.
    """

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")
        self._buffer_size = buffer_size
        self._channels: dict[str, Channel] = {}
        self._lock = Lock()

    def channel(self, name: str) -> Channel:
        """Return the channel for ``name``, creating it if absent."""
        with self._lock:
            return self._get_or_create(name)

    def _get_or_create(self, name: str) -> Channel:
        # Caller holds self._lock
        channel = self._channels.get(name)
        if channel is None:
            channel = Channel(name, self._buffer_size)
            self._channels[name] = channel
            logger.info("Created channel for %s", name)
        return channel

    def publish(self, quote: Quote) -> int:
        """Fan a quote out to the current subscribers of its name.

        Fire-and-forget: never blocks and never raises. With no subscribers
        the quote is simply not streamed. Returns the delivery count.
        """
        delivered = None
        while delivered is None:
            # An evicted channel refuses the quote; look the name up again
            delivered = self.channel(quote.name).publish(quote)
        logger.debug("Published %s to %d subscriber(s)", quote.name, delivered)
        return delivered

    def subscribe(self, name: str) -> Subscription:
        """Open a live subscription to ``name`` starting from now (no replay)."""
        # Attach under the registry lock so eviction cannot orphan the channel
        with self._lock:
            subscription = self._get_or_create(name).attach()
        logger.debug("New subscriber for %s", name)
        return subscription

    def evict_idle(self, max_idle_seconds: float, now: float | None = None) -> list[str]:
        """Drop channels with no subscribers and no activity for max_idle_seconds.

        Returns the evicted names. A later publish or subscribe recreates
        the channel.
        """
        ref = time.monotonic() if now is None else now
        evicted: list[str] = []
        with self._lock:
            for name, channel in list(self._channels.items()):
                if channel.try_evict(max_idle_seconds, ref):
                    del self._channels[name]
                    evicted.append(name)
        if evicted:
            logger.info("Evicted %d idle channel(s): %s", len(evicted), ", ".join(evicted))
        return evicted

    def channel_names(self) -> list[str]:
        with self._lock:
            return list(self._channels)

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            channel = self._channels.get(name)
        return channel.subscriber_count if channel else 0

    def published_count(self, name: str) -> int:
        """Quotes published for ``name`` on its current channel (0 if none)."""
        with self._lock:
            channel = self._channels.get(name)
        return channel.published if channel else 0

    def stats(self) -> dict[str, dict]:
        with self._lock:
            channels = list(self._channels.values())
        return {channel.name: channel.to_dict() for channel in channels}

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._channels
