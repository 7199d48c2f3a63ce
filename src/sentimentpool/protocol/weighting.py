"""
sentimentpool/protocol/weighting.py

Contribution of a single submission to its period aggregate.

    weighted_score = sentiment * confidence + reputation

The reputation term is an additive bonus, not a percentage multiplier.
Contributions are not clamped, so an aggregate's weighted sum (and the
final sentiment derived from it) may exceed the nominal 1..100 scale.
"""

from .periods import PeriodAggregate


def weighted_score(sentiment: int, confidence: int, reputation: int) -> int:
    """Weighted contribution of one submission."""
    # reputation * 100 // 100 reduces to reputation
    reputation_bonus = reputation * 100 // 100
    return sentiment * confidence + reputation_bonus


def fold_submission(
    aggregate: PeriodAggregate,
    sentiment: int,
    confidence: int,
    reputation: int,
) -> PeriodAggregate:
    """
    Return a new aggregate with one submission folded in.

    The input aggregate is left untouched so callers can discard the
    result if a later check fails.
    """
    return aggregate.replace(
        total_weighted_sentiment=aggregate.total_weighted_sentiment
        + weighted_score(sentiment, confidence, reputation),
        total_weight=aggregate.total_weight + confidence,
        participant_count=aggregate.participant_count + 1,
    )
