"""
sentimentpool/config.py

Configuration constants and data classes for sentimentpool.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from .identity import Identity

logger = logging.getLogger("sentimentpool.config")


# Score domain shared by sentiment, confidence and actual outcome
MIN_SCORE = 1
MAX_SCORE = 100

# final_sentiment when a period carries no weight
NEUTRAL_SENTIMENT = 50

# Reputation defaults for an owner that has never claimed
DEFAULT_REPUTATION_SCORE = 50

# accuracy >= threshold counts as an accurate prediction
ACCURACY_THRESHOLD = 80

# Fixed stake debited per submission (smallest currency unit)
DEFAULT_MIN_STAKE_AMOUNT = 1_000_000

# Period length in clock ticks. Reported only; periods close via finalize.
DEFAULT_PERIOD_DURATION = 144

# First period opened by a fresh engine
INITIAL_PERIOD = 1

# Environment variables read by EngineConfig.from_env()
ENV_AUTHORITY = "SENTIMENTPOOL_AUTHORITY"
ENV_MIN_STAKE = "SENTIMENTPOOL_MIN_STAKE"
ENV_PERIOD_DURATION = "SENTIMENTPOOL_PERIOD_DURATION"


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}")


@dataclass(frozen=True)
class EngineConfig:
    """Static engine parameters, fixed at initialization."""
    authority: Identity
    min_stake_amount: int = DEFAULT_MIN_STAKE_AMOUNT
    period_duration: int = DEFAULT_PERIOD_DURATION
    accuracy_threshold: int = ACCURACY_THRESHOLD

    def __post_init__(self):
        if self.min_stake_amount <= 0:
            raise ValueError(f"min_stake_amount must be positive, got {self.min_stake_amount}")
        if self.period_duration <= 0:
            raise ValueError(f"period_duration must be positive, got {self.period_duration}")

    def is_authority(self, identity: Identity) -> bool:
        """Check whether identity may finalize periods."""
        return identity == self.authority

    @classmethod
    def from_env(cls, authority: Optional[Identity] = None) -> "EngineConfig":
        """
        Build a config from SENTIMENTPOOL_* environment variables.

        An explicit authority argument wins over SENTIMENTPOOL_AUTHORITY.
        """
        if authority is None:
            raw = os.environ.get(ENV_AUTHORITY, "").strip()
            if not raw:
                raise ValueError(f"{ENV_AUTHORITY} is not set and no authority was given")
            authority = Identity(raw)

        config = cls(
            authority=authority,
            min_stake_amount=_int_from_env(ENV_MIN_STAKE, DEFAULT_MIN_STAKE_AMOUNT),
            period_duration=_int_from_env(ENV_PERIOD_DURATION, DEFAULT_PERIOD_DURATION),
        )
        logger.debug(f"Loaded engine config from environment: {config.to_dict()}")
        return config

    def to_dict(self) -> dict:
        return {
            "authority": str(self.authority),
            "min_stake_amount": self.min_stake_amount,
            "period_duration": self.period_duration,
            "accuracy_threshold": self.accuracy_threshold,
        }


@dataclass
class EngineContext:
    """
    The engine's global scalars.

    current_period starts at 1 and only ever advances by one per finalize.
    total_staked is bookkeeping kept in step with the custody collaborator.
    """
    current_period: int = INITIAL_PERIOD
    total_staked: int = 0

    def to_dict(self) -> dict:
        return {
            "current_period": self.current_period,
            "total_staked": self.total_staked,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EngineContext":
        return cls(
            current_period=data.get("current_period", INITIAL_PERIOD),
            total_staked=data.get("total_staked", 0),
        )
