"""Exception hierarchy for the quote streaming subsystem."""

from __future__ import annotations


class QuoteStreamError(Exception):
    """Base exception for quote streaming errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class StoreError(QuoteStreamError):
    """Quote store insert/read failure (connectivity, constraint violation)."""

    status_code = 503
    error_type = "store_error"
