"""
sentimentpool.protocol - engine building blocks

- validation:  score range checks
- weighting:   weighted score and aggregate folding
- periods:     PeriodAggregate and finalization
- submissions: Submission record
- reputation:  Reputation record and claim feedback
- rewards:     accuracy, reward and settlement
- storage:     backends and the typed EngineStore
"""

from .validation import is_valid_score, require_valid_score
from .weighting import weighted_score, fold_submission
from .periods import PeriodAggregate, PeriodState, compute_final_sentiment, finalize_aggregate
from .submissions import Submission
from .reputation import Reputation, apply_claim_outcome, compute_reputation_score
from .rewards import (
    Settlement,
    calculate_accuracy,
    calculate_reward,
    check_claimable,
    is_accurate,
    settle,
)
from .storage import (
    StorageBackend,
    MemoryBackend,
    FileBackend,
    EngineStore,
    WriteBatch,
)

__all__ = [
    "is_valid_score",
    "require_valid_score",
    "weighted_score",
    "fold_submission",
    "PeriodAggregate",
    "PeriodState",
    "compute_final_sentiment",
    "finalize_aggregate",
    "Submission",
    "Reputation",
    "apply_claim_outcome",
    "compute_reputation_score",
    "Settlement",
    "calculate_accuracy",
    "calculate_reward",
    "check_claimable",
    "is_accurate",
    "settle",
    "StorageBackend",
    "MemoryBackend",
    "FileBackend",
    "EngineStore",
    "WriteBatch",
]
