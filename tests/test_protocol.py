"""
sentimentpool/tests/test_protocol.py

Unit tests for the engine building blocks:
- score validation
- weighted score and aggregate folding
- period finalization
- reputation feedback
"""

import pytest

from sentimentpool.errors import ErrorCode, StateConflictError, ValidationError
from sentimentpool.identity import Identity
from sentimentpool.protocol.validation import is_valid_score, require_valid_score
from sentimentpool.protocol.weighting import weighted_score, fold_submission
from sentimentpool.protocol.periods import (
    PeriodAggregate,
    PeriodState,
    compute_final_sentiment,
    finalize_aggregate,
)
from sentimentpool.protocol.reputation import (
    Reputation,
    apply_claim_outcome,
    compute_reputation_score,
)


# ============================================================================
# Validation
# ============================================================================

class TestValidation:
    """Tests for score range checks."""

    @pytest.mark.parametrize("value", [1, 50, 100])
    def test_valid_scores(self, value):
        assert is_valid_score(value)
        assert require_valid_score(value) == value

    @pytest.mark.parametrize("value", [0, 101, -5, 1000])
    def test_out_of_range(self, value):
        assert not is_valid_score(value)

    @pytest.mark.parametrize("value", [None, "50", 50.0, True])
    def test_non_integers_rejected(self, value):
        assert not is_valid_score(value)

    def test_require_raises_with_code(self):
        with pytest.raises(ValidationError) as exc_info:
            require_valid_score(0, "sentiment")

        assert exc_info.value.code == ErrorCode.INVALID_SENTIMENT
        assert int(exc_info.value.code) == 101
        assert "sentiment" in str(exc_info.value)


# ============================================================================
# Weighting
# ============================================================================

class TestWeighting:
    """Tests for the weighted score formula."""

    def test_reputation_is_additive_bonus(self):
        """80 * 50 + 50, not a percentage multiplier."""
        assert weighted_score(80, 50, 50) == 4050
        assert weighted_score(60, 30, 50) == 1850

    def test_zero_reputation_adds_nothing(self):
        assert weighted_score(10, 10, 0) == 100

    def test_contribution_not_clamped(self):
        assert weighted_score(100, 100, 100) == 10100

    def test_fold_updates_accumulators(self):
        aggregate = PeriodAggregate(period=1)

        updated = fold_submission(aggregate, 80, 50, 50)

        assert updated.total_weighted_sentiment == 4050
        assert updated.total_weight == 50
        assert updated.participant_count == 1
        # Input untouched
        assert aggregate.total_weighted_sentiment == 0
        assert aggregate.participant_count == 0

    def test_fold_accumulates(self):
        aggregate = PeriodAggregate(period=1)
        aggregate = fold_submission(aggregate, 80, 50, 50)
        aggregate = fold_submission(aggregate, 60, 30, 50)

        assert aggregate.total_weighted_sentiment == 5900
        assert aggregate.total_weight == 80
        assert aggregate.participant_count == 2


# ============================================================================
# Periods
# ============================================================================

class TestPeriods:
    """Tests for period aggregates and finalization."""

    def test_new_aggregate_is_open(self):
        aggregate = PeriodAggregate(period=3)
        assert aggregate.state == PeriodState.OPEN
        assert aggregate.final_sentiment is None
        assert aggregate.actual_outcome is None

    def test_final_sentiment_floors(self):
        assert compute_final_sentiment(5900, 80) == 73

    def test_final_sentiment_neutral_without_weight(self):
        assert compute_final_sentiment(0, 0) == 50

    def test_final_sentiment_can_exceed_scale(self):
        """Reputation bonus is not clamped, so the result may exceed 100."""
        assert compute_final_sentiment(100 * 1 + 100, 1) == 200

    def test_finalize_sets_outcome(self):
        aggregate = PeriodAggregate(
            period=1,
            total_weighted_sentiment=5900,
            total_weight=80,
            participant_count=2,
        )

        finalized = finalize_aggregate(aggregate, 85)

        assert finalized.finalized
        assert finalized.state == PeriodState.FINALIZED
        assert finalized.final_sentiment == 73
        assert finalized.actual_outcome == 85
        assert finalized.participant_count == 2
        assert not aggregate.finalized

    def test_finalize_twice_conflicts(self):
        finalized = finalize_aggregate(PeriodAggregate(period=1), 40)

        with pytest.raises(StateConflictError) as exc_info:
            finalize_aggregate(finalized, 60)

        assert exc_info.value.code == ErrorCode.ALREADY_FINALIZED

    def test_dict_round_trip(self):
        aggregate = finalize_aggregate(
            PeriodAggregate(period=2, total_weighted_sentiment=100, total_weight=2, participant_count=1),
            70,
        )
        data = aggregate.to_dict()

        assert data["state"] == "finalized"
        assert PeriodAggregate.from_dict(data) == aggregate


# ============================================================================
# Reputation
# ============================================================================

class TestReputation:
    """Tests for reputation feedback."""

    @pytest.fixture
    def owner(self):
        return Identity("alice")

    def test_defaults(self, owner):
        rep = Reputation.default(owner)
        assert rep.total_submissions == 0
        assert rep.accurate_predictions == 0
        assert rep.reputation_score == 50
        assert rep.total_rewards == 0

    def test_score_default_when_no_submissions(self):
        assert compute_reputation_score(0, 0) == 50

    def test_score_floors(self):
        assert compute_reputation_score(2, 3) == 66

    def test_accurate_claim(self, owner):
        rep = apply_claim_outcome(Reputation.default(owner), True, 100)

        assert rep.total_submissions == 1
        assert rep.accurate_predictions == 1
        assert rep.reputation_score == 100
        assert rep.total_rewards == 100

    def test_inaccurate_claim(self, owner):
        rep = apply_claim_outcome(Reputation.default(owner), False, 50)

        assert rep.total_submissions == 1
        assert rep.accurate_predictions == 0
        assert rep.reputation_score == 0
        assert rep.total_rewards == 50

    def test_mixed_history(self, owner):
        rep = Reputation.default(owner)
        for accurate in (True, False, True):
            rep = apply_claim_outcome(rep, accurate, 10)

        assert rep.total_submissions == 3
        assert rep.accurate_predictions == 2
        assert rep.reputation_score == 66
        assert rep.total_rewards == 30
