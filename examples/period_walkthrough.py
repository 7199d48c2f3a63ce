"""
sentimentpool/examples/period_walkthrough.py

Walks three owners through two periods to show how accurate claims
raise reputation and how reputation feeds back into weighting.

Usage:
    python examples/period_walkthrough.py
"""

import logging

from sentimentpool import (
    BlockHeightClock,
    EngineConfig,
    Identity,
    LedgerCustody,
    SentimentEngine,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [WALKTHROUGH] %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)

STAKE = 1_000


def main():
    oracle = Identity("oracle")
    owners = [Identity("alice"), Identity("bob"), Identity("carol")]

    custody = LedgerCustody({owner: 10 * STAKE for owner in owners})
    clock = BlockHeightClock(height=100)
    engine = SentimentEngine(
        EngineConfig(authority=oracle, min_stake_amount=STAKE),
        custody=custody,
        clock=clock,
    )

    # Period 1: everyone starts at the default reputation
    for owner, sentiment, confidence in zip(owners, (80, 60, 20), (50, 30, 90)):
        engine.submit(owner, sentiment, confidence)
        clock.advance()

    final_sentiment = engine.finalize(oracle, actual_outcome=80)
    logger.info(f"Period 1 final sentiment: {final_sentiment}")

    for owner in owners:
        reward = engine.claim(owner, 1)
        reputation = engine.get_reputation(owner)
        logger.info(
            f"{owner}: reward={reward} reputation={reputation.reputation_score} "
            f"balance={custody.balance(owner)}"
        )

    # Period 2: identical submissions now carry different reputation bonuses
    for owner in owners:
        engine.submit(owner, 50, 50)

    aggregate = engine.get_period_aggregate(2)
    logger.info(
        f"Period 2 so far: weighted={aggregate.total_weighted_sentiment} "
        f"weight={aggregate.total_weight} participants={aggregate.participant_count}"
    )
    logger.info(f"Total staked: {engine.get_total_staked()}")


if __name__ == "__main__":
    main()
