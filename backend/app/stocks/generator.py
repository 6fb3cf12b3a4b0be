"""Scheduled random quote generator."""

from __future__ import annotations

import asyncio
import logging

import numpy as np

from .models import Quote
from .seed_quotes import DEFAULT_INTERVAL, DEFAULT_NAMES, DIVIDEND_RANGE, PRICE_RANGE
from .service import QuoteService

logger = logging.getLogger(__name__)


class RandomQuoteGenerator:
    """Draws one unsaved Quote per instrument name.

    Prices and dividends are independent uniform integers over PRICE_RANGE
    and DIVIDEND_RANGE. Pass ``seed`` for reproducible draws.
    """

    def __init__(self, names: list[str], seed: int | None = None) -> None:
        self._names: list[str] = []
        for name in names:
            self.add_name(name)
        self._rng = np.random.default_rng(seed)

    def generate(self) -> list[Quote]:
        """Draw a fresh round of quotes, in name order."""
        n = len(self._names)
        if n == 0:
            return []

        prices = self._rng.integers(*PRICE_RANGE, size=n)
        dividends = self._rng.integers(*DIVIDEND_RANGE, size=n)

        return [
            Quote(name=name, current_price=int(prices[i]), dividend=int(dividends[i]))
            for i, name in enumerate(self._names)
        ]

    def add_name(self, name: str) -> None:
        """Add an instrument. No-op if already present."""
        name = name.strip()
        if not name:
            raise ValueError("Instrument name must be non-empty")
        if name not in self._names:
            self._names.append(name)

    def remove_name(self, name: str) -> None:
        """Remove an instrument. No-op if not present."""
        if name in self._names:
            self._names.remove(name)

    def get_names(self) -> list[str]:
        return list(self._names)


class QuoteGeneratorTask:
    """Periodic task that saves a generated round through the QuoteService.

    Runs a background asyncio task that saves one round immediately and then
    one every ``interval`` seconds.
    """

    def __init__(
        self,
        service: QuoteService,
        names: list[str] | None = None,
        interval: float = DEFAULT_INTERVAL,
        seed: int | None = None,
    ) -> None:
        self._service = service
        self._interval = interval
        self._generator = RandomQuoteGenerator(
            names if names is not None else DEFAULT_NAMES, seed=seed
        )
        self._task: asyncio.Task | None = None
        self.rounds: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_names(self) -> list[str]:
        return self._generator.get_names()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_loop(), name="quote-generator")
        logger.info(
            "Quote generator started: %d names, %.1fs interval",
            len(self._generator.get_names()),
            self._interval,
        )

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Quote generator stopped")

    async def run_once(self) -> list[Quote]:
        """Generate and save one round. Returns the stored quotes.

        A failed save is logged and skipped; the rest of the round still runs.
        """
        saved: list[Quote] = []
        for quote in self._generator.generate():
            try:
                saved.append(await self._service.save(quote))
            except Exception:
                logger.exception("Saving generated quote for %s failed", quote.name)
        self.rounds += 1
        return saved

    async def _run_loop(self) -> None:
        """Core loop: save a round, sleep."""
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)
