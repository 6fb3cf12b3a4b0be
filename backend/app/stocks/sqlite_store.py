"""Durable quote store on SQLite via aiosqlite."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from .exceptions import StoreError
from .interface import DEFAULT_MAX_DOCUMENTS, QuoteStore
from .models import Quote

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS quotes (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    current_price INTEGER NOT NULL CHECK (current_price >= 0),
    dividend INTEGER NOT NULL CHECK (dividend >= 0),
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_quotes_name_seq
    ON quotes (name, seq);
"""


class SqliteQuoteStore(QuoteStore):
    """Capped, append-only quote table.

    ``seq`` gives the insertion order; after each insert any rows older than
    the newest ``max_documents`` are deleted, which mirrors a capped
    collection. All aiosqlite failures surface as StoreError.
    """

    def __init__(
        self,
        db_path: Path | str,
        max_documents: int = DEFAULT_MAX_DOCUMENTS,
    ) -> None:
        if max_documents < 1:
            raise ValueError("max_documents must be >= 1")
        self.db_path = Path(db_path)
        self._max_documents = max_documents
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        try:
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.executescript(SCHEMA_SQL)
            await self._db.commit()
        except aiosqlite.Error as e:
            raise StoreError(f"Could not open quote database {self.db_path}: {e}") from e
        logger.info(
            "SQLite quote store connected: %s (max %d documents)",
            self.db_path,
            self._max_documents,
        )

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("SQLite quote store closed")

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreError("Quote store is not connected")
        return self._db

    async def insert(self, quote: Quote) -> Quote:
        stored = quote.persisted(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
        )
        try:
            await self.db.execute(
                """INSERT INTO quotes (id, name, current_price, dividend, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    stored.id,
                    stored.name,
                    stored.current_price,
                    stored.dividend,
                    stored.created_at.isoformat(),
                ),
            )
            # Cap: keep only the newest max_documents rows
            await self.db.execute(
                """DELETE FROM quotes WHERE seq <= (
                       SELECT MAX(seq) - ? FROM quotes
                   )""",
                (self._max_documents,),
            )
            await self.db.commit()
        except aiosqlite.Error as e:
            await self._rollback()
            raise StoreError(f"Insert failed for {quote.name}: {e}") from e
        return stored

    async def _rollback(self) -> None:
        """Discard an open transaction so a failed insert never commits later."""
        try:
            await self.db.rollback()
        except aiosqlite.Error:
            logger.exception("Rollback after failed insert also failed")

    async def find_most_recent_by_name(self, name: str) -> Quote | None:
        try:
            cursor = await self.db.execute(
                "SELECT * FROM quotes WHERE name = ? ORDER BY seq DESC LIMIT 1",
                (name,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Lookup failed for {name}: {e}") from e
        if row is None:
            return None
        return self._row_to_quote(row)

    async def count(self) -> int:
        """Number of stored rows."""
        try:
            cursor = await self.db.execute("SELECT COUNT(*) FROM quotes")
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StoreError(f"Count failed: {e}") from e
        return int(row[0])

    @staticmethod
    def _row_to_quote(row: aiosqlite.Row) -> Quote:
        return Quote(
            id=row["id"],
            name=row["name"],
            current_price=row["current_price"],
            dividend=row["dividend"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )
