"""
sentimentpool/protocol/periods.py

Period aggregates and the open -> finalized transition.

A period is Open while it is the engine's current period and its
aggregate has not been finalized. Finalizing fixes final_sentiment and
actual_outcome once; neither value changes afterwards, and no further
submissions may target the period.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import NEUTRAL_SENTIMENT
from ..errors import StateConflictError, ErrorCode


class PeriodState(Enum):
    """Lifecycle state of a period."""
    OPEN = "open"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class PeriodAggregate:
    """Running accumulators for one period."""
    period: int
    total_weighted_sentiment: int = 0
    total_weight: int = 0
    participant_count: int = 0
    finalized: bool = False
    final_sentiment: Optional[int] = None
    actual_outcome: Optional[int] = None

    @property
    def state(self) -> PeriodState:
        return PeriodState.FINALIZED if self.finalized else PeriodState.OPEN

    def replace(self, **changes) -> "PeriodAggregate":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "total_weighted_sentiment": self.total_weighted_sentiment,
            "total_weight": self.total_weight,
            "participant_count": self.participant_count,
            "finalized": self.finalized,
            "final_sentiment": self.final_sentiment,
            "actual_outcome": self.actual_outcome,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PeriodAggregate":
        return cls(
            period=data["period"],
            total_weighted_sentiment=data.get("total_weighted_sentiment", 0),
            total_weight=data.get("total_weight", 0),
            participant_count=data.get("participant_count", 0),
            finalized=data.get("finalized", False),
            final_sentiment=data.get("final_sentiment"),
            actual_outcome=data.get("actual_outcome"),
        )


def compute_final_sentiment(total_weighted_sentiment: int, total_weight: int) -> int:
    """Floor of weighted sum over weight, or the neutral midpoint at zero weight."""
    if total_weight > 0:
        return total_weighted_sentiment // total_weight
    return NEUTRAL_SENTIMENT


def finalize_aggregate(aggregate: PeriodAggregate, actual_outcome: int) -> PeriodAggregate:
    """
    Close a period.

    Args:
        aggregate: The open aggregate
        actual_outcome: Validated outcome supplied by the authority

    Returns:
        New finalized aggregate; the input is unchanged

    Raises:
        StateConflictError: aggregate is already finalized (code 106)
    """
    if aggregate.finalized:
        raise StateConflictError(
            f"Period {aggregate.period} is already finalized",
            ErrorCode.ALREADY_FINALIZED,
        )

    return aggregate.replace(
        finalized=True,
        final_sentiment=compute_final_sentiment(
            aggregate.total_weighted_sentiment,
            aggregate.total_weight,
        ),
        actual_outcome=actual_outcome,
    )
