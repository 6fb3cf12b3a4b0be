"""HTTP endpoints: quote writes, per-name SSE stream, latest quote lookup."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from .exceptions import StoreError
from .models import Quote, QuoteIn
from .service import QuoteService

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 15.0


def create_stock_router(service: QuoteService) -> APIRouter:
    """Create the stocks router bound to a QuoteService.

    This factory pattern lets us inject the service without globals.
    """
    router = APIRouter(prefix="/api/stocks", tags=["stocks"])

    @router.post("")
    async def save_quote(payload: QuoteIn) -> dict:
        """Store a quote and push it to live subscribers of its name."""
        try:
            stored = await service.save(payload.to_quote())
        except StoreError as e:
            logger.error("Saving quote for %s failed: %s", payload.name, e)
            raise HTTPException(status_code=e.status_code, detail=e.message) from e
        return stored.to_dict()

    @router.get("/sse")
    async def stream_quotes(
        request: Request,
        name: str = Query(min_length=1),
    ) -> StreamingResponse:
        """SSE endpoint for live quotes of one instrument.

        Each stored quote for ``name`` becomes one event:

            id: 6f1c...
            event: quote
            data: {"id": "6f1c...", "name": "SK", "currentPrice": 700, ...}

        Only quotes saved after the client connects are sent.
        """
        return StreamingResponse(
            _generate_events(service, name, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    @router.get("/channels")
    async def channel_stats() -> dict:
        """Live channel counters from the broadcast hub."""
        return service.hub.stats()

    @router.get("/{name}/latest")
    async def latest_quote(name: str) -> dict:
        """Most recently stored quote for ``name``."""
        try:
            quote = await service.latest(name)
        except StoreError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message) from e
        if quote is None:
            raise HTTPException(status_code=404, detail=f"No quotes stored for {name}")
        return quote.to_dict()

    return router


def format_event(quote: Quote) -> str:
    """Render one quote as an SSE frame."""
    payload = json.dumps(quote.to_dict())
    return f"id: {quote.id}\nevent: quote\ndata: {payload}\n\n"


async def _generate_events(
    service: QuoteService,
    name: str,
    request: Request,
    heartbeat: float = HEARTBEAT_INTERVAL,
) -> AsyncGenerator[str, None]:
    """Async generator that yields SSE frames for one instrument name.

    The hub subscription is opened before the first frame goes out, so any
    quote saved after the client sees the retry directive is delivered.
    Waits up to ``heartbeat`` seconds for each quote; on timeout it sends a
    comment line so proxies keep the connection open, and checks whether the
    client has gone. The subscription is closed however the stream ends.
    """
    subscription = service.subscribe(name)
    client_ip = request.client.host if request.client else "unknown"
    logger.info("SSE client connected: %s (%s)", client_ip, name)

    try:
        # Tell the client to retry after 1 second if the connection drops
        yield "retry: 1000\n\n"

        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break

            try:
                quote = await asyncio.wait_for(subscription.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            except StopAsyncIteration:
                # Subscription closed from elsewhere
                break

            yield format_event(quote)
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
    finally:
        subscription.close()
