"""Edge model for directed user relationships."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt


def utcnow() -> str:
    return datetime.now(UTC).isoformat()


class Edge(BaseModel):
    """A directed, weighted follow edge between two users."""

    model_config = ConfigDict(extra="forbid")

    source_user_id: StrictInt = Field(gt=0)
    target_user_id: StrictInt = Field(gt=0)
    interaction_weight: float = Field(default=0.0, ge=0.0)
    last_interaction_at: str = Field(default_factory=utcnow)
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: dict) -> Edge:
        """Build an edge from a storage row, dropping the surrogate key."""
        data = {k: v for k, v in row.items() if k in cls.model_fields}
        return cls(**data)

    def to_storage(self) -> dict:
        return self.model_dump()

    def to_response(self, *, direction: str = "outgoing") -> dict:
        """Render as ``{userId, weight, since}`` from the listing user's side."""
        other = self.target_user_id if direction == "outgoing" else self.source_user_id
        return {
            "userId": other,
            "weight": round(self.interaction_weight, 4),
            "since": self.created_at,
            "lastInteraction": self.last_interaction_at,
        }
