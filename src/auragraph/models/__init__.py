"""auragraph data models."""

from auragraph.models.edge import Edge
from auragraph.models.relationship import Relationship, Suggestion, UserCounts

__all__ = ["Edge", "Relationship", "Suggestion", "UserCounts"]
