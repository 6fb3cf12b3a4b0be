"""FastAPI application: composition root for the quote streaming service.

Run with:
    uvicorn app.main:get_app --factory
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.stocks import (
    BroadcastHub,
    QuoteService,
    QuoteStore,
    create_quote_generator,
    create_quote_store,
    create_stock_router,
)
from app.stocks.factory import channel_idle_seconds, generator_enabled

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure the root logger from LOG_LEVEL (default INFO)."""
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, name, None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def _evict_loop(hub: BroadcastHub, idle_seconds: float) -> None:
    """Periodically drop channels nobody has used for idle_seconds."""
    interval = max(idle_seconds / 2, 1.0)
    while True:
        await asyncio.sleep(interval)
        try:
            hub.evict_idle(idle_seconds)
        except Exception:
            logger.exception("Channel eviction failed")


def create_app(
    store: QuoteStore | None = None,
    hub: BroadcastHub | None = None,
    start_generator: bool | None = None,
) -> FastAPI:
    """Build the app. Collaborators default to the environment-selected ones.

    The store is connected and the background tasks started in the lifespan,
    so creating the app has no side effects.
    """
    store = store if store is not None else create_quote_store()
    hub = hub if hub is not None else BroadcastHub()
    service = QuoteService(store=store, hub=hub)
    run_generator = generator_enabled() if start_generator is None else start_generator

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.connect()
        generator = create_quote_generator(service) if run_generator else None
        if generator:
            await generator.start()
        evictor = asyncio.create_task(
            _evict_loop(hub, channel_idle_seconds()), name="channel-evictor"
        )
        app.state.generator = generator
        logger.info("Quote stream service started")

        try:
            yield
        finally:
            evictor.cancel()
            try:
                await evictor
            except asyncio.CancelledError:
                pass
            if generator:
                await generator.stop()
            await store.close()
            logger.info("Quote stream service stopped")

    app = FastAPI(title="Quote Stream", version="0.1.0", lifespan=lifespan)
    app.include_router(create_stock_router(service))
    app.state.store = store
    app.state.hub = hub
    app.state.service = service

    @app.get("/api/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


def get_app() -> FastAPI:
    """Entry point for uvicorn --factory: set up logging, then build the app."""
    configure_logging()
    return create_app()
