"""In-memory capped quote store."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from threading import Lock

from .exceptions import StoreError
from .interface import DEFAULT_MAX_DOCUMENTS, QuoteStore
from .models import Quote

logger = logging.getLogger(__name__)


class MemoryQuoteStore(QuoteStore):
    """QuoteStore kept in process memory.

    Records live in a bounded deque in insertion order, so the oldest quote
    falls off once ``max_documents`` is reached. Nothing survives a restart;
    set QUOTE_DB_PATH to get the SQLite store instead.
    """

    def __init__(self, max_documents: int = DEFAULT_MAX_DOCUMENTS) -> None:
        if max_documents < 1:
            raise ValueError("max_documents must be >= 1")
        self._max_documents = max_documents
        self._records: deque[Quote] = deque(maxlen=max_documents)
        self._lock = Lock()
        self._connected = False

    async def connect(self) -> None:
        self._connected = True
        logger.info("Memory quote store ready (max %d documents)", self._max_documents)

    async def close(self) -> None:
        self._connected = False

    async def insert(self, quote: Quote) -> Quote:
        if not self._connected:
            raise StoreError("Quote store is not connected")
        stored = quote.persisted(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._records.append(stored)
        return stored

    async def find_most_recent_by_name(self, name: str) -> Quote | None:
        if not self._connected:
            raise StoreError("Quote store is not connected")
        with self._lock:
            for record in reversed(self._records):
                if record.name == name:
                    return record
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
