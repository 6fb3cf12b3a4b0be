"""Tests for BroadcastHub, Channel and Subscription."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from app.stocks.hub import BroadcastHub
from app.stocks.models import Quote


def _stored(name: str, price: int, quote_id: str | None = None) -> Quote:
    """A quote as the store would hand it to the hub."""
    return Quote(
        name=name,
        current_price=price,
        dividend=100,
        id=quote_id or f"{name}-{price}",
        created_at=datetime.now(timezone.utc),
    )


class TestBroadcastHubRegistry:
    """Unit tests for the name -> channel registry."""

    def test_subscribe_creates_channel(self):
        hub = BroadcastHub()
        assert "SK" not in hub
        hub.subscribe("SK")
        assert "SK" in hub
        assert hub.subscriber_count("SK") == 1

    def test_publish_creates_channel(self):
        hub = BroadcastHub()
        hub.publish(_stored("LG", 600))
        assert "LG" in hub
        assert hub.published_count("LG") == 1

    def test_publish_without_subscribers(self):
        """Publishing to nobody is fine and delivers to zero subscribers."""
        hub = BroadcastHub()
        assert hub.publish(_stored("SK", 700)) == 0

    def test_channel_is_reused(self):
        hub = BroadcastHub()
        assert hub.channel("SK") is hub.channel("SK")
        hub.subscribe("SK")
        hub.publish(_stored("SK", 700))
        assert len(hub) == 1

    def test_concurrent_channel_creation(self):
        """Racing threads all get the same channel for a name."""
        hub = BroadcastHub()
        with ThreadPoolExecutor(max_workers=8) as pool:
            channels = list(pool.map(lambda _: hub.channel("SK"), range(200)))
        assert all(c is channels[0] for c in channels)
        assert hub.channel_names() == ["SK"]

    def test_unknown_name_counters(self):
        hub = BroadcastHub()
        assert hub.subscriber_count("NOPE") == 0
        assert hub.published_count("NOPE") == 0

    def test_stats(self):
        hub = BroadcastHub()
        hub.subscribe("SK")
        hub.publish(_stored("SK", 700))
        hub.publish(_stored("LG", 600))

        stats = hub.stats()
        assert stats["SK"] == {"name": "SK", "subscribers": 1, "published": 1, "dropped": 0}
        assert stats["LG"]["subscribers"] == 0
        assert stats["LG"]["published"] == 1

    def test_invalid_buffer_size(self):
        with pytest.raises(ValueError):
            BroadcastHub(buffer_size=0)


class TestBroadcastHubEviction:
    """Idle channel eviction."""

    def test_evicts_idle_channel_without_subscribers(self):
        hub = BroadcastHub()
        channel = hub.channel("SK")
        evicted = hub.evict_idle(60.0, now=channel.last_active + 61.0)
        assert evicted == ["SK"]
        assert "SK" not in hub

    def test_keeps_recently_active_channel(self):
        hub = BroadcastHub()
        channel = hub.channel("SK")
        assert hub.evict_idle(60.0, now=channel.last_active + 10.0) == []
        assert "SK" in hub

    def test_keeps_channel_with_subscribers(self):
        hub = BroadcastHub()
        hub.subscribe("SK")
        channel = hub.channel("SK")
        assert hub.evict_idle(60.0, now=channel.last_active + 3600.0) == []
        assert hub.subscriber_count("SK") == 1

    def test_channel_recreated_after_eviction(self):
        hub = BroadcastHub()
        old = hub.channel("SK")
        hub.evict_idle(0.0, now=old.last_active + 1.0)
        new = hub.channel("SK")
        assert new is not old
        assert hub.published_count("SK") == 0

    def test_evicted_channel_refuses_publish(self):
        hub = BroadcastHub()
        old = hub.channel("SK")
        hub.evict_idle(0.0, now=old.last_active + 1.0)

        assert old.evicted
        assert old.publish(_stored("SK", 700)) is None
        assert old.published == 0

    def test_publish_racing_eviction_lands_on_live_channel(self):
        hub = BroadcastHub()
        stale = hub.channel("SK")
        hub.evict_idle(0.0, now=stale.last_active + 1.0)

        # A publisher that looked the channel up just before eviction
        calls = []
        real_channel = hub.channel

        def lookup(name):
            calls.append(name)
            return stale if len(calls) == 1 else real_channel(name)

        hub.channel = lookup
        hub.publish(_stored("SK", 700))

        assert len(calls) == 2
        assert hub.published_count("SK") == 1
        assert stale.published == 0


@pytest.mark.asyncio
class TestBroadcastHubDelivery:
    """Fan-out behavior observed through subscriptions."""

    async def test_subscriber_sees_quotes_in_order(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")
        q1, q2 = _stored("SK", 700), _stored("SK", 710)

        hub.publish(q1)
        hub.publish(q2)

        assert await asyncio.wait_for(sub.get(), timeout=1.0) == q1
        assert await asyncio.wait_for(sub.get(), timeout=1.0) == q2

    async def test_no_replay_for_late_subscriber(self):
        hub = BroadcastHub()
        q1, q2 = _stored("SK", 700), _stored("SK", 710)

        hub.publish(q1)
        sub = hub.subscribe("SK")
        hub.publish(q2)

        assert sub.pending() == 1
        assert await asyncio.wait_for(sub.get(), timeout=1.0) == q2

    async def test_every_subscriber_gets_every_quote(self):
        """Broadcast, not competing consumers."""
        hub = BroadcastHub()
        sub_a = hub.subscribe("SK")
        sub_b = hub.subscribe("SK")
        quote = _stored("SK", 700)

        assert hub.publish(quote) == 2
        assert await asyncio.wait_for(sub_a.get(), timeout=1.0) == quote
        assert await asyncio.wait_for(sub_b.get(), timeout=1.0) == quote

    async def test_names_are_isolated(self):
        hub = BroadcastHub()
        sub_a = hub.subscribe("A")
        sub_b = hub.subscribe("B")

        hub.publish(_stored("B", 500))

        assert sub_a.pending() == 0
        assert sub_b.pending() == 1

    async def test_async_iteration(self):
        hub = BroadcastHub()
        sub = hub.subscribe("LG")
        quotes = [_stored("LG", 600 + i) for i in range(3)]
        for quote in quotes:
            hub.publish(quote)

        received = []
        async for quote in sub:
            received.append(quote)
            if len(received) == 3:
                break
        assert received == quotes

    async def test_waiting_subscriber_is_woken(self):
        hub = BroadcastHub()
        sub = hub.subscribe("LG")
        waiter = asyncio.create_task(sub.get())
        await asyncio.sleep(0)

        quote = _stored("LG", 600)
        hub.publish(quote)

        assert await asyncio.wait_for(waiter, timeout=1.0) == quote

    async def test_full_buffer_drops_oldest(self):
        hub = BroadcastHub(buffer_size=2)
        sub = hub.subscribe("SK")
        q1, q2, q3 = _stored("SK", 1), _stored("SK", 2), _stored("SK", 3)

        hub.publish(q1)
        hub.publish(q2)
        hub.publish(q3)

        assert sub.pending() == 2
        assert await sub.get() == q2
        assert await sub.get() == q3
        assert hub.stats()["SK"]["dropped"] == 1

    async def test_slow_subscriber_does_not_affect_others(self):
        hub = BroadcastHub(buffer_size=1)
        slow = hub.subscribe("SK")
        fast = hub.subscribe("SK")

        for price in (1, 2, 3):
            hub.publish(_stored("SK", price))
            assert (await fast.get()).current_price == price

        assert slow.pending() == 1
        assert (await slow.get()).current_price == 3


@pytest.mark.asyncio
class TestSubscriptionLifecycle:
    """Closing subscriptions releases them from the channel."""

    async def test_close_detaches(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")
        sub.close()

        assert sub.closed
        assert hub.subscriber_count("SK") == 0
        assert hub.publish(_stored("SK", 700)) == 0

    async def test_close_is_idempotent(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")
        sub.close()
        sub.close()  # Should not raise
        assert hub.subscriber_count("SK") == 0

    async def test_close_leaves_other_subscribers(self):
        hub = BroadcastHub()
        gone = hub.subscribe("SK")
        stays = hub.subscribe("SK")
        gone.close()

        quote = _stored("SK", 700)
        assert hub.publish(quote) == 1
        assert await stays.get() == quote

    async def test_context_manager_closes(self):
        hub = BroadcastHub()
        async with hub.subscribe("SK") as sub:
            assert hub.subscriber_count("SK") == 1
        assert sub.closed
        assert hub.subscriber_count("SK") == 0

    async def test_closed_subscription_stops_iteration(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")
        sub.close()
        received = [quote async for quote in sub]
        assert received == []

    async def test_close_ends_iteration_in_progress(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")

        async def drain():
            return [quote async for quote in sub]

        task = asyncio.create_task(drain())
        await asyncio.sleep(0)  # let the reader block on the empty buffer
        sub.close()

        assert await asyncio.wait_for(task, timeout=1.0) == []

    async def test_close_wakes_waiting_get(self):
        hub = BroadcastHub()
        sub = hub.subscribe("SK")
        hub.publish(_stored("SK", 700))
        assert (await sub.get()).current_price == 700

        waiter = asyncio.create_task(sub.get())
        await asyncio.sleep(0)
        sub.close()

        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(waiter, timeout=1.0)
        assert sub.pending() == 0
