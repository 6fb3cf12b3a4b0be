"""Data models for stock quotes."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True, slots=True)
class Quote:
    """Immutable price/dividend observation for a named instrument.

    ``id`` and ``created_at`` are None until the quote is accepted by a
    QuoteStore, which returns a new Quote with both filled in.
    """

    name: str
    current_price: int  # Minor currency units
    dividend: int
    id: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Quote name must be a non-empty string")
        for field_name in ("current_price", "dividend"):
            value = getattr(self, field_name)
            # bool is an int subclass but never a valid amount
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{field_name} must be an integer, got {value!r}")
            if value < 0:
                raise ValueError(f"{field_name} must be >= 0, got {value}")

    @property
    def is_persisted(self) -> bool:
        """True once a store has assigned an id and creation time."""
        return self.id is not None and self.created_at is not None

    def persisted(self, id: str, created_at: datetime) -> Quote:
        """Copy of this quote with store-assigned fields set."""
        return replace(self, id=id, created_at=created_at)

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "id": self.id,
            "name": self.name,
            "currentPrice": self.current_price,
            "dividend": self.dividend,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class QuoteIn(BaseModel):
    """Write payload accepted by the POST endpoint."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    current_price: int = Field(alias="currentPrice", ge=0, strict=True)
    dividend: int = Field(ge=0, strict=True)

    def to_quote(self) -> Quote:
        return Quote(
            name=self.name,
            current_price=self.current_price,
            dividend=self.dividend,
        )
