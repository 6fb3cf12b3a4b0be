"""Abstract interface for quote stores."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .models import Quote

DEFAULT_MAX_DOCUMENTS = 1000


class QuoteStore(ABC):
    """Contract for durable, append-only quote storage.

    Stores are capped: once ``max_documents`` records are held, the oldest
    record is discarded for every new insert. Records are never updated.

    Lifecycle:
        store = create_quote_store()
        await store.connect()
        stored = await store.insert(Quote(name="SK", current_price=700, dividend=200))
        latest = await store.find_most_recent_by_name("SK")
        await store.close()
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying resources. Must be called before insert/find."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""

    @abstractmethod
    async def insert(self, quote: Quote) -> Quote:
        """Persist a quote and return the stored copy.

        The returned Quote carries a store-assigned ``id`` and ``created_at``;
        any values already present on the input are ignored.

        Raises:
            StoreError: on connectivity or constraint failure.
        """

    @abstractmethod
    async def find_most_recent_by_name(self, name: str) -> Quote | None:
        """Newest stored quote for ``name``, or None if there is none."""
