"""Fixtures for quote streaming tests."""

import pytest
import pytest_asyncio

from app.stocks.exceptions import StoreError
from app.stocks.hub import BroadcastHub
from app.stocks.interface import QuoteStore
from app.stocks.memory_store import MemoryQuoteStore
from app.stocks.models import Quote
from app.stocks.service import QuoteService


class FailingStore(QuoteStore):
    """QuoteStore whose inserts always fail, as if the database were down."""

    def __init__(self) -> None:
        self.insert_calls = 0

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def insert(self, quote: Quote) -> Quote:
        self.insert_calls += 1
        raise StoreError("connection refused")

    async def find_most_recent_by_name(self, name: str) -> Quote | None:
        raise StoreError("connection refused")


@pytest_asyncio.fixture
async def store():
    """Connected in-memory store, closed after the test."""
    memory_store = MemoryQuoteStore()
    await memory_store.connect()
    yield memory_store
    await memory_store.close()


@pytest_asyncio.fixture
async def service(store):
    """QuoteService over a fresh memory store and hub."""
    return QuoteService(store=store, hub=BroadcastHub())


@pytest.fixture
def failing_store():
    """Store that refuses every insert and read."""
    return FailingStore()
