"""
sentimentpool/protocol/reputation.py

Per-owner prediction track record.

Reputation is the percentage of an owner's claimed predictions that were
accurate:

    reputation_score = accurate_predictions * 100 // total_submissions

An owner who has never claimed sits at DEFAULT_REPUTATION_SCORE. The
record is only ever changed by settling a claim.
"""

from dataclasses import dataclass

from ..config import DEFAULT_REPUTATION_SCORE
from ..identity import Identity


@dataclass(frozen=True)
class Reputation:
    """Reputation data for a single owner."""
    owner: Identity
    total_submissions: int = 0
    accurate_predictions: int = 0
    reputation_score: int = DEFAULT_REPUTATION_SCORE
    total_rewards: int = 0

    @classmethod
    def default(cls, owner: Identity) -> "Reputation":
        return cls(owner=owner)

    def to_dict(self) -> dict:
        return {
            "owner": str(self.owner),
            "total_submissions": self.total_submissions,
            "accurate_predictions": self.accurate_predictions,
            "reputation_score": self.reputation_score,
            "total_rewards": self.total_rewards,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reputation":
        return cls(
            owner=Identity(data["owner"]),
            total_submissions=data.get("total_submissions", 0),
            accurate_predictions=data.get("accurate_predictions", 0),
            reputation_score=data.get("reputation_score", DEFAULT_REPUTATION_SCORE),
            total_rewards=data.get("total_rewards", 0),
        )


def compute_reputation_score(accurate_predictions: int, total_submissions: int) -> int:
    if total_submissions <= 0:
        return DEFAULT_REPUTATION_SCORE
    return accurate_predictions * 100 // total_submissions


def apply_claim_outcome(reputation: Reputation, is_accurate: bool, reward: int) -> Reputation:
    """Return the record after one settled claim."""
    total = reputation.total_submissions + 1
    accurate = reputation.accurate_predictions + (1 if is_accurate else 0)
    return Reputation(
        owner=reputation.owner,
        total_submissions=total,
        accurate_predictions=accurate,
        reputation_score=compute_reputation_score(accurate, total),
        total_rewards=reputation.total_rewards + reward,
    )
