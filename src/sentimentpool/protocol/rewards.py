"""
sentimentpool/protocol/rewards.py

Post-finalization settlement: accuracy scoring and reward calculation.

    accuracy = max(0, 100 - |prediction - actual_outcome|)
    accurate = accuracy >= ACCURACY_THRESHOLD

    accurate:      reward = stake + stake * (accuracy // 100) // 2
    not accurate:  reward = stake // 2

All division truncates. accuracy // 100 is 0 for every accuracy below
100, so an accurate prediction returns exactly its stake unless it is
perfect, in which case it earns stake + stake // 2.

Usage:
    from sentimentpool.protocol.rewards import settle

    settlement = settle(submission, aggregate)
    settlement.reward
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional

from ..config import ACCURACY_THRESHOLD
from ..errors import NotFoundError, PreconditionError, StateConflictError, ErrorCode
from ..identity import Identity
from .periods import PeriodAggregate
from .submissions import Submission

logger = logging.getLogger("sentimentpool.protocol.rewards")


def calculate_accuracy(prediction: int, actual_outcome: int) -> int:
    """100 minus the absolute miss, floored at 0."""
    return max(0, 100 - abs(prediction - actual_outcome))


def is_accurate(accuracy: int, threshold: int = ACCURACY_THRESHOLD) -> bool:
    return accuracy >= threshold


def calculate_reward(stake: int, accuracy: int, accurate: bool) -> int:
    """
    Reward for a settled submission.

    Args:
        stake: Stake recorded on the submission
        accuracy: Output of calculate_accuracy
        accurate: Whether accuracy met the threshold

    Returns:
        Integer reward amount
    """
    if accurate:
        return stake + stake * (accuracy // 100) // 2
    # Partial refund
    return stake // 2


@dataclass(frozen=True)
class Settlement:
    """Everything a claim computes before it is applied."""
    owner: Identity
    period: int
    prediction: int
    actual_outcome: int
    stake: int
    accuracy: int
    is_accurate: bool
    reward: int

    def to_dict(self) -> dict:
        result = asdict(self)
        result["owner"] = str(self.owner)
        return result


def check_claimable(
    owner: Identity,
    period: int,
    aggregate: Optional[PeriodAggregate],
    submission: Optional[Submission],
) -> None:
    """
    Raise if a claim for (owner, period) cannot proceed.

    Checked in order: period finalized (107), submission exists (105),
    submission not yet claimed (102).
    """
    if aggregate is None or not aggregate.finalized:
        raise PreconditionError(
            f"Period {period} is not finalized",
            ErrorCode.NOT_FINALIZED,
        )
    if submission is None:
        raise NotFoundError(
            f"No submission from {owner} in period {period}",
            ErrorCode.NO_SUBMISSION,
        )
    if submission.claimed:
        raise StateConflictError(
            f"Submission from {owner} in period {period} is already claimed",
            ErrorCode.ALREADY_SUBMITTED,
        )


def settle(
    submission: Submission,
    aggregate: PeriodAggregate,
    threshold: int = ACCURACY_THRESHOLD,
) -> Settlement:
    """Compute the settlement for a submission against its finalized period."""
    accuracy = calculate_accuracy(submission.sentiment, aggregate.actual_outcome)
    accurate = is_accurate(accuracy, threshold)
    reward = calculate_reward(submission.stake, accuracy, accurate)

    logger.debug(
        f"Settled {submission.owner} period {submission.period}: "
        f"prediction={submission.sentiment} actual={aggregate.actual_outcome} "
        f"accuracy={accuracy} accurate={accurate} reward={reward}"
    )

    return Settlement(
        owner=submission.owner,
        period=submission.period,
        prediction=submission.sentiment,
        actual_outcome=aggregate.actual_outcome,
        stake=submission.stake,
        accuracy=accuracy,
        is_accurate=accurate,
        reward=reward,
    )
