"""Pytest configuration and fixtures."""

import pytest

from app.stocks.models import Quote


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


@pytest.fixture
def make_quote():
    """Build unsaved quotes with sensible defaults."""

    def _make(name: str = "SK", current_price: int = 700, dividend: int = 200) -> Quote:
        return Quote(name=name, current_price=current_price, dividend=dividend)

    return _make
