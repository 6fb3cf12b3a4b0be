"""Quote service: store-then-publish orchestration."""

from __future__ import annotations

import logging

from .hub import BroadcastHub, Subscription
from .interface import QuoteStore
from .models import Quote

logger = logging.getLogger(__name__)


class QuoteService:
    """Composes a QuoteStore and a BroadcastHub. Owns no state of its own.

    Lifecycle:
        service = QuoteService(store=store, hub=hub)
        stored = await service.save(Quote(name="SK", current_price=700, dividend=200))
        async with service.subscribe("SK") as subscription:
            async for quote in subscription:
                ...
    """

    def __init__(self, store: QuoteStore, hub: BroadcastHub) -> None:
        self._store = store
        self._hub = hub

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    async def save(self, quote: Quote) -> Quote:
        """Persist a quote, then publish the stored copy to live subscribers.

        A StoreError from the insert propagates unchanged and nothing is
        published, so subscribers never see a quote that was not stored.
        """
        stored = await self._store.insert(quote)
        delivered = self._hub.publish(stored)
        logger.debug(
            "Saved %s price=%d dividend=%d (id=%s, %d subscriber(s))",
            stored.name,
            stored.current_price,
            stored.dividend,
            stored.id,
            delivered,
        )
        return stored

    def subscribe(self, name: str) -> Subscription:
        """Live quotes for ``name`` from now on. No history is replayed."""
        return self._hub.subscribe(name)

    async def latest(self, name: str) -> Quote | None:
        """Most recent stored quote for ``name``, straight from the store."""
        return await self._store.find_most_recent_by_name(name)
