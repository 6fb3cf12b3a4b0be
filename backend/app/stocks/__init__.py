"""Live stock quote streaming.

Public API:
    Quote               - Immutable quote dataclass
    QuoteIn             - Pydantic write payload
    QuoteStore          - Abstract interface for quote persistence
    StoreError          - Raised when a store insert/read fails
    BroadcastHub        - Per-name multicast registry for live subscribers
    Subscription        - Live async iterator / cancellation handle
    QuoteService        - Store-then-publish orchestration
    QuoteGeneratorTask  - Scheduled random quote generator
    create_quote_store  - Factory that selects the memory or SQLite store
    create_stock_router - FastAPI router factory for the write and SSE endpoints
"""

from .exceptions import QuoteStreamError, StoreError
from .factory import create_quote_generator, create_quote_store
from .generator import QuoteGeneratorTask, RandomQuoteGenerator
from .hub import BroadcastHub, Subscription
from .interface import QuoteStore
from .models import Quote, QuoteIn
from .service import QuoteService
from .stream import create_stock_router

__all__ = [
    "Quote",
    "QuoteIn",
    "QuoteStore",
    "QuoteStreamError",
    "StoreError",
    "BroadcastHub",
    "Subscription",
    "QuoteService",
    "QuoteGeneratorTask",
    "RandomQuoteGenerator",
    "create_quote_generator",
    "create_quote_store",
    "create_stock_router",
]
