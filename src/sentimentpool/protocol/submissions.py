"""
sentimentpool/protocol/submissions.py

A single owner's submission for a single period.
"""

import dataclasses
from dataclasses import dataclass

from ..identity import Identity


@dataclass(frozen=True)
class Submission:
    """
    One sentiment submission, unique per (owner, period).

    Immutable after creation except for the claimed flag, which moves
    from False to True exactly once.
    """
    owner: Identity
    period: int
    sentiment: int
    confidence: int
    stake: int
    timestamp: int
    claimed: bool = False

    def mark_claimed(self) -> "Submission":
        return dataclasses.replace(self, claimed=True)

    def to_dict(self) -> dict:
        return {
            "owner": str(self.owner),
            "period": self.period,
            "sentiment": self.sentiment,
            "confidence": self.confidence,
            "stake": self.stake,
            "timestamp": self.timestamp,
            "claimed": self.claimed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Submission":
        return cls(
            owner=Identity(data["owner"]),
            period=data["period"],
            sentiment=data["sentiment"],
            confidence=data["confidence"],
            stake=data["stake"],
            timestamp=data["timestamp"],
            claimed=data.get("claimed", False),
        )
