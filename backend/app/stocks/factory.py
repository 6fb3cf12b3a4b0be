"""Factories for creating quote stores and the generator from the environment."""

from __future__ import annotations

import logging
import os

from .generator import QuoteGeneratorTask
from .interface import DEFAULT_MAX_DOCUMENTS, QuoteStore
from .seed_quotes import DEFAULT_INTERVAL, DEFAULT_NAMES
from .service import QuoteService

logger = logging.getLogger(__name__)

_FALSY = {"0", "false", "no", "off"}


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %d", key, raw, default)
        return default


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default


def create_quote_store() -> QuoteStore:
    """Create the quote store selected by environment variables.

    - QUOTE_DB_PATH set and non-empty → SqliteQuoteStore (durable)
    - Otherwise → MemoryQuoteStore
    QUOTE_STORE_MAX_DOCUMENTS caps either store (default 1000).

    Returns an unconnected store. Caller must await store.connect().
    """
    db_path = os.environ.get("QUOTE_DB_PATH", "").strip()
    max_documents = _env_int("QUOTE_STORE_MAX_DOCUMENTS", DEFAULT_MAX_DOCUMENTS)

    if db_path:
        from .sqlite_store import SqliteQuoteStore

        logger.info("Quote store: SQLite (%s)", db_path)
        return SqliteQuoteStore(db_path=db_path, max_documents=max_documents)
    else:
        from .memory_store import MemoryQuoteStore

        logger.info("Quote store: in-memory")
        return MemoryQuoteStore(max_documents=max_documents)


def generator_enabled() -> bool:
    """QUOTE_GENERATOR_ENABLED, on unless set to a false-like value."""
    return os.environ.get("QUOTE_GENERATOR_ENABLED", "true").strip().lower() not in _FALSY


def channel_idle_seconds() -> float:
    return _env_float("QUOTE_CHANNEL_IDLE_SECONDS", 300.0)


def create_quote_generator(service: QuoteService) -> QuoteGeneratorTask:
    """Create the random quote generator task from environment variables.

    - QUOTE_GENERATOR_NAMES: comma-separated instruments (default SK,SAMSUNG,LG)
    - QUOTE_GENERATOR_INTERVAL: seconds between rounds (default 10)

    Returns an unstarted task. Caller must await task.start().
    """
    raw_names = os.environ.get("QUOTE_GENERATOR_NAMES", "")
    names = [n.strip() for n in raw_names.split(",") if n.strip()]
    if not names:
        names = list(DEFAULT_NAMES)

    interval = _env_float("QUOTE_GENERATOR_INTERVAL", DEFAULT_INTERVAL)
    return QuoteGeneratorTask(service=service, names=names, interval=interval)
