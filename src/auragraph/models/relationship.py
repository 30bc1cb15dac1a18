"""Read models for relationship strength and connection suggestions."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from auragraph.models.edge import Edge

Strength = Literal["strong", "moderate", "weak", "none"]

STRONG_THRESHOLD = 0.7
MODERATE_THRESHOLD = 0.4


def classify_strength(*, following: bool, followed_by: bool, weight: float) -> Strength:
    if not following and not followed_by:
        return "none"
    mutual = following and followed_by
    if mutual and weight >= STRONG_THRESHOLD:
        return "strong"
    if mutual or weight >= MODERATE_THRESHOLD:
        return "moderate"
    return "weak"


class Relationship(BaseModel):
    """Both directions of the relationship between two users."""

    user_id: int
    other_user_id: int
    outgoing: Edge | None = None
    incoming: Edge | None = None

    @property
    def following(self) -> bool:
        return self.outgoing is not None

    @property
    def followed_by(self) -> bool:
        return self.incoming is not None

    @property
    def mutual(self) -> bool:
        return self.following and self.followed_by

    @property
    def weight(self) -> float:
        """Combined weight of both directions, normalized to at most 1.0."""
        total = 0.0
        if self.outgoing:
            total += self.outgoing.interaction_weight
        if self.incoming:
            total += self.incoming.interaction_weight
        return min(total / 2, 1.0)

    @property
    def last_interaction_at(self) -> str | None:
        stamps = [e.last_interaction_at for e in (self.outgoing, self.incoming) if e]
        return max(stamps) if stamps else None

    @property
    def strength(self) -> Strength:
        return classify_strength(
            following=self.following, followed_by=self.followed_by, weight=self.weight
        )

    def to_response(self) -> dict:
        return {
            "userId": self.user_id,
            "otherUserId": self.other_user_id,
            "following": self.following,
            "followedBy": self.followed_by,
            "mutual": self.mutual,
            "weight": round(self.weight, 4),
            "strength": self.strength,
            "lastInteraction": self.last_interaction_at,
        }


class Suggestion(BaseModel):
    """A ranked second-degree connection candidate."""

    user_id: int
    score: float
    mutual_count: int = 0
    via: list[int] = Field(default_factory=list)
    last_interaction_at: str | None = None
    reason: str = ""

    def to_response(self) -> dict:
        return {
            "userId": self.user_id,
            "score": round(self.score, 4),
            "mutualCount": self.mutual_count,
            "via": self.via,
            "reason": self.reason,
        }


class UserCounts(BaseModel):
    """Follower and following counts for one user."""

    user_id: int
    followers_count: int
    following_count: int
    computed_at: str
