"""
sentimentpool/engine.py

The sentiment aggregation and reward engine.

Operations:
- submit(owner, sentiment, confidence)  -> True
- finalize(caller, actual_outcome)      -> final_sentiment
- claim(owner, period)                  -> reward

Each operation runs under one lock, checks every precondition first,
stages its writes in a WriteBatch and commits the batch in a single
backend call. A failed check leaves the store untouched.

The engine never moves value itself. A ValueCustody collaborator is told
to debit the stake on submit and credit the reward on claim. It runs
before the commit, so a custody failure aborts the operation; if the
commit then fails, the custody move is reversed before the error
propagates.

Usage:
    from sentimentpool import SentimentEngine, EngineConfig, Identity

    engine = SentimentEngine(EngineConfig(authority=Identity("oracle")))

    engine.submit(Identity("alice"), sentiment=80, confidence=50)
    engine.finalize(Identity("oracle"), actual_outcome=85)
    reward = engine.claim(Identity("alice"), period=1)
"""

import time
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, TYPE_CHECKING

from .config import EngineConfig, EngineContext
from .errors import (
    AuthorizationError,
    CustodyError,
    ErrorCode,
    NotFoundError,
    SentimentPoolError,
    StateConflictError,
)
from .identity import Identity
from .protocol.periods import PeriodAggregate, finalize_aggregate
from .protocol.reputation import Reputation, apply_claim_outcome
from .protocol.rewards import Settlement, check_claimable, settle
from .protocol.storage import EngineStore
from .protocol.submissions import Submission
from .protocol.validation import require_valid_score
from .protocol.weighting import fold_submission

if TYPE_CHECKING:
    from .metrics import MetricsCollector

logger = logging.getLogger("sentimentpool.engine")


# ============================================================================
# EXTERNAL COLLABORATORS
# ============================================================================

class ValueCustody(ABC):
    """Moves real value in step with the engine's bookkeeping."""

    @abstractmethod
    def debit(self, owner: Identity, amount: int) -> None:
        """Take the stake from owner. Raise to refuse."""
        pass

    @abstractmethod
    def credit(self, owner: Identity, amount: int) -> None:
        """Pay a reward to owner."""
        pass


class NullCustody(ValueCustody):
    """Custody that only logs; value is handled entirely by the host."""

    def debit(self, owner: Identity, amount: int) -> None:
        logger.debug(f"Custody debit {amount} from {owner}")

    def credit(self, owner: Identity, amount: int) -> None:
        logger.debug(f"Custody credit {amount} to {owner}")


class InsufficientFundsError(CustodyError):
    """Raised by LedgerCustody when a debit exceeds the balance."""
    default_code = ErrorCode.INSUFFICIENT_STAKE


class LedgerCustody(ValueCustody):
    """In-memory balance book."""

    def __init__(self, balances: Optional[Dict[Identity, int]] = None):
        self._balances: Dict[Identity, int] = dict(balances or {})

    def balance(self, owner: Identity) -> int:
        return self._balances.get(owner, 0)

    def deposit(self, owner: Identity, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Deposit amount must be positive")
        self._balances[owner] = self.balance(owner) + amount

    def debit(self, owner: Identity, amount: int) -> None:
        current = self.balance(owner)
        if current < amount:
            raise InsufficientFundsError(
                f"{owner} has {current}, needs {amount}"
            )
        self._balances[owner] = current - amount

    def credit(self, owner: Identity, amount: int) -> None:
        self._balances[owner] = self.balance(owner) + amount


class BlockHeightClock:
    """Manually advanced height counter, usable as the engine clock."""

    def __init__(self, height: int = 0):
        self.height = height

    def advance(self, blocks: int = 1) -> int:
        self.height += blocks
        return self.height

    def __call__(self) -> int:
        return self.height


def wall_clock() -> int:
    return int(time.time())


# ============================================================================
# ENGINE
# ============================================================================

class SentimentEngine:
    """
    Aggregates weighted sentiment per period and settles rewards.

    Period lifecycle:
        Open(p) --finalize--> Finalized(p), current_period = p + 1

    Reputation feedback:
        Each claim updates the owner's reputation, which is added as a
        bonus to the owner's weighted score in later periods.
    """

    def __init__(
        self,
        config: EngineConfig,
        store: Optional[EngineStore] = None,
        custody: Optional[ValueCustody] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Static engine parameters, including the authority
            store: Record store (in-memory if omitted)
            custody: Value custody collaborator (NullCustody if omitted)
            clock: Callable returning the current timestamp/height
        """
        self.config = config
        self.store = store or EngineStore()
        self.custody = custody or NullCustody()
        self.clock = clock or wall_clock
        self.metrics: Optional["MetricsCollector"] = None  # set by MetricsCollector
        self._lock = threading.Lock()

    # ========== Mutating operations ==========

    def submit(self, owner: Identity, sentiment: int, confidence: int) -> bool:
        """
        Record owner's sentiment for the current period.

        Raises:
            ValidationError: sentiment or confidence outside [1, 100] (101)
            StateConflictError: owner already submitted this period (102),
                or the current period is already finalized (106)
            CustodyError: custody refused the stake (103 or 108)
        """
        with self._lock:
            try:
                require_valid_score(sentiment, "sentiment")
                require_valid_score(confidence, "confidence")

                context = self.store.get_context()
                period = context.current_period

                if self.store.has_submission(owner, period):
                    raise StateConflictError(
                        f"{owner} already submitted in period {period}",
                        ErrorCode.ALREADY_SUBMITTED,
                    )

                aggregate = self.store.get_aggregate(period) or PeriodAggregate(period=period)
                if aggregate.finalized:
                    raise StateConflictError(
                        f"Period {period} is already finalized",
                        ErrorCode.ALREADY_FINALIZED,
                    )

                reputation = self._reputation_or_default(owner)
                stake = self.config.min_stake_amount

                submission = Submission(
                    owner=owner,
                    period=period,
                    sentiment=sentiment,
                    confidence=confidence,
                    stake=stake,
                    timestamp=self.clock(),
                )
                updated = fold_submission(
                    aggregate, sentiment, confidence, reputation.reputation_score
                )
                new_context = EngineContext(
                    current_period=period,
                    total_staked=context.total_staked + stake,
                )

                batch = self.store.batch()
                batch.put_submission(submission)
                batch.put_aggregate(updated)
                batch.put_context(new_context)

                self._move_value("debit", owner, stake)
                try:
                    self.store.commit(batch)
                except Exception as e:
                    logger.error(f"Commit failed for submission from {owner}, returning stake: {e}")
                    self.custody.credit(owner, stake)
                    raise

            except SentimentPoolError as e:
                self._record_rejection("submit", e)
                raise

        logger.info(
            f"Accepted submission from {owner} for period {period}: "
            f"sentiment={sentiment} confidence={confidence} "
            f"reputation={reputation.reputation_score}"
        )
        if self.metrics:
            self.metrics.record_submission(stake)
        return True

    def finalize(self, caller: Identity, actual_outcome: int) -> int:
        """
        Close the current period and open the next one.

        Returns:
            The period's final_sentiment

        Raises:
            AuthorizationError: caller is not the authority (100)
            ValidationError: actual_outcome outside [1, 100] (101)
            NotFoundError: no submissions were recorded this period (105)
            StateConflictError: the period is already finalized (106)
        """
        with self._lock:
            try:
                if not self.config.is_authority(caller):
                    raise AuthorizationError(
                        f"{caller} is not allowed to finalize periods",
                        ErrorCode.OWNER_ONLY,
                    )
                require_valid_score(actual_outcome, "actual_outcome")

                context = self.store.get_context()
                period = context.current_period

                aggregate = self.store.get_aggregate(period)
                if aggregate is None:
                    raise NotFoundError(
                        f"Period {period} has no submissions to finalize",
                        ErrorCode.NO_SUBMISSION,
                    )

                finalized = finalize_aggregate(aggregate, actual_outcome)
                new_context = EngineContext(
                    current_period=period + 1,
                    total_staked=context.total_staked,
                )

                batch = self.store.batch()
                batch.put_aggregate(finalized)
                batch.put_context(new_context)
                self.store.commit(batch)

            except SentimentPoolError as e:
                self._record_rejection("finalize", e)
                raise

        logger.info(
            f"Finalized period {period}: final_sentiment={finalized.final_sentiment} "
            f"actual_outcome={actual_outcome} participants={finalized.participant_count}; "
            f"period {period + 1} is open"
        )
        if self.metrics:
            self.metrics.record_finalization()
        return finalized.final_sentiment

    def claim(self, owner: Identity, period: int) -> int:
        """
        Settle owner's submission in a finalized period.

        Returns:
            The reward credited to owner

        Raises:
            PreconditionError: period is not finalized (107)
            NotFoundError: owner has no submission in period (105)
            StateConflictError: submission already claimed (102)
            CustodyError: custody failed to pay the reward (108)
        """
        with self._lock:
            try:
                aggregate = self.store.get_aggregate(period)
                submission = self.store.get_submission(owner, period)
                check_claimable(owner, period, aggregate, submission)

                settlement = settle(submission, aggregate, self.config.accuracy_threshold)
                reputation = apply_claim_outcome(
                    self._reputation_or_default(owner),
                    settlement.is_accurate,
                    settlement.reward,
                )
                context = self.store.get_context()
                new_context = EngineContext(
                    current_period=context.current_period,
                    total_staked=context.total_staked - submission.stake,
                )

                batch = self.store.batch()
                batch.put_submission(submission.mark_claimed())
                batch.put_reputation(reputation)
                batch.put_context(new_context)

                self._move_value("credit", owner, settlement.reward)
                try:
                    self.store.commit(batch)
                except Exception as e:
                    logger.error(f"Commit failed for claim by {owner}, reversing reward: {e}")
                    self.custody.debit(owner, settlement.reward)
                    raise

            except SentimentPoolError as e:
                self._record_rejection("claim", e)
                raise

        logger.info(
            f"Settled claim for {owner} in period {period}: accuracy={settlement.accuracy} "
            f"accurate={settlement.is_accurate} reward={settlement.reward} "
            f"reputation={reputation.reputation_score}"
        )
        if self.metrics:
            self.metrics.record_claim(settlement.reward, settlement.is_accurate)
        return settlement.reward

    # ========== Read surface ==========

    def get_current_period(self) -> int:
        return self.store.get_context().current_period

    def get_total_staked(self) -> int:
        return self.store.get_context().total_staked

    def get_context(self) -> EngineContext:
        return self.store.get_context()

    def get_config(self) -> EngineConfig:
        return self.config

    def get_period_aggregate(self, period: int) -> Optional[PeriodAggregate]:
        return self.store.get_aggregate(period)

    def get_submission(self, owner: Identity, period: int) -> Optional[Submission]:
        return self.store.get_submission(owner, period)

    def get_reputation(self, owner: Identity) -> Optional[Reputation]:
        return self.store.get_reputation(owner)

    def get_period_submissions(self, period: int) -> List[Submission]:
        return self.store.list_period_submissions(period)

    def preview_claim(self, owner: Identity, period: int) -> Settlement:
        """
        Compute what claim(owner, period) would pay without applying it.

        Raises the same errors as claim.
        """
        with self._lock:
            aggregate = self.store.get_aggregate(period)
            submission = self.store.get_submission(owner, period)
        check_claimable(owner, period, aggregate, submission)
        return settle(submission, aggregate, self.config.accuracy_threshold)

    # ========== Internals ==========

    def _reputation_or_default(self, owner: Identity) -> Reputation:
        return self.store.get_reputation(owner) or Reputation.default(owner)

    def _move_value(self, action: str, owner: Identity, amount: int) -> None:
        """Run a custody debit or credit, surfacing failures as CustodyError."""
        try:
            getattr(self.custody, action)(owner, amount)
        except SentimentPoolError:
            raise
        except Exception as e:
            raise CustodyError(f"Custody {action} of {amount} for {owner} failed: {e}") from e

    def _record_rejection(self, operation: str, error: SentimentPoolError) -> None:
        logger.warning(f"Rejected {operation}: [{int(error.code)}] {error.message}")
        if self.metrics:
            self.metrics.record_rejection(operation, error.code)
