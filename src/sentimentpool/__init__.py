"""
sentimentpool - Reputation-weighted sentiment aggregation with stake rewards

Owners submit a sentiment score and confidence once per period. Each
submission is weighted by confidence plus the owner's reputation. An
authority finalizes the period with the actual outcome, after which each
owner claims a reward based on how close their prediction was, and their
reputation is updated for future periods.

Usage:
    from sentimentpool import SentimentEngine, EngineConfig, Identity

    engine = SentimentEngine(EngineConfig(authority=Identity("oracle")))
    engine.submit(Identity("alice"), sentiment=80, confidence=50)
    engine.finalize(Identity("oracle"), actual_outcome=85)
    engine.claim(Identity("alice"), period=1)

REST API Usage:
    import trio
    from sentimentpool.api import EngineAPI

    api = EngineAPI(engine, host="0.0.0.0", port=8080)
    trio.run(api.start)
"""

__version__ = "1.0.0"

from .identity import Identity
from .config import (
    EngineConfig,
    EngineContext,
    ACCURACY_THRESHOLD,
    DEFAULT_MIN_STAKE_AMOUNT,
    DEFAULT_PERIOD_DURATION,
    DEFAULT_REPUTATION_SCORE,
    NEUTRAL_SENTIMENT,
)
from .errors import (
    ErrorCode,
    SentimentPoolError,
    AuthorizationError,
    ValidationError,
    StateConflictError,
    NotFoundError,
    PreconditionError,
    CustodyError,
)
from .engine import (
    SentimentEngine,
    ValueCustody,
    NullCustody,
    LedgerCustody,
    InsufficientFundsError,
    BlockHeightClock,
)
from .protocol import (
    PeriodAggregate,
    PeriodState,
    Submission,
    Reputation,
    Settlement,
    EngineStore,
    MemoryBackend,
    FileBackend,
)
from .metrics import MetricsCollector
from .api import EngineAPI

__all__ = [
    # Core
    "SentimentEngine",
    "Identity",
    "EngineConfig",
    "EngineContext",
    # Collaborators
    "ValueCustody",
    "NullCustody",
    "LedgerCustody",
    "InsufficientFundsError",
    "BlockHeightClock",
    # Records
    "PeriodAggregate",
    "PeriodState",
    "Submission",
    "Reputation",
    "Settlement",
    # Storage
    "EngineStore",
    "MemoryBackend",
    "FileBackend",
    # Errors
    "ErrorCode",
    "SentimentPoolError",
    "AuthorizationError",
    "ValidationError",
    "StateConflictError",
    "NotFoundError",
    "PreconditionError",
    "CustodyError",
    # API & Metrics
    "EngineAPI",
    "MetricsCollector",
    # Constants
    "ACCURACY_THRESHOLD",
    "DEFAULT_MIN_STAKE_AMOUNT",
    "DEFAULT_PERIOD_DURATION",
    "DEFAULT_REPUTATION_SCORE",
    "NEUTRAL_SENTIMENT",
]
