"""
sentimentpool/metrics.py

Prometheus metrics collection for sentimentpool.

Exposes the engine's global counters as gauges and keeps running
counters of accepted and rejected operations.
"""

import time
import logging
from typing import TYPE_CHECKING, Dict, Any

from .errors import ErrorCode

if TYPE_CHECKING:
    from .engine import SentimentEngine

logger = logging.getLogger("sentimentpool.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for a SentimentEngine.

    Usage:
        from sentimentpool.metrics import MetricsCollector

        engine = SentimentEngine(config)
        metrics = MetricsCollector(engine)

        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "sentimentpool_current_period": {
            "type": "gauge",
            "help": "Period currently accepting submissions",
        },
        "sentimentpool_total_staked": {
            "type": "gauge",
            "help": "Stake recorded on submissions that are not yet claimed",
        },
        "sentimentpool_submissions_total": {
            "type": "counter",
            "help": "Total accepted submissions",
        },
        "sentimentpool_finalizations_total": {
            "type": "counter",
            "help": "Total finalized periods",
        },
        "sentimentpool_claims_total": {
            "type": "counter",
            "help": "Total settled claims",
        },
        "sentimentpool_accurate_claims_total": {
            "type": "counter",
            "help": "Settled claims that met the accuracy threshold",
        },
        "sentimentpool_rewards_paid_total": {
            "type": "counter",
            "help": "Sum of rewards returned by claims",
        },
        "sentimentpool_rejections_total": {
            "type": "counter",
            "help": "Rejected operations by operation and error code",
        },
        "sentimentpool_uptime_seconds": {
            "type": "counter",
            "help": "Collector uptime in seconds",
        },
    }

    def __init__(self, engine: "SentimentEngine"):
        """
        Initialize metrics collector and attach it to engine.

        Args:
            engine: SentimentEngine to collect metrics from
        """
        self.engine = engine
        engine.metrics = self
        self._start_time = time.time()

        # Counters (persist across collections)
        self._submissions = 0
        self._stake_accepted = 0
        self._finalizations = 0
        self._claims = 0
        self._accurate_claims = 0
        self._rewards_paid = 0
        self._rejections: Dict[tuple, int] = {}

    def record_submission(self, stake: int) -> None:
        """Record an accepted submission."""
        self._submissions += 1
        self._stake_accepted += stake

    def record_finalization(self) -> None:
        """Record a finalized period."""
        self._finalizations += 1

    def record_claim(self, reward: int, accurate: bool) -> None:
        """Record a settled claim."""
        self._claims += 1
        self._rewards_paid += reward
        if accurate:
            self._accurate_claims += 1

    def record_rejection(self, operation: str, code: ErrorCode) -> None:
        """Record a rejected operation."""
        key = (operation, int(code))
        self._rejections[key] = self._rejections.get(key, 0) + 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def add_header(name: str):
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def add_metric(name: str, value: float):
            add_header(name)
            lines.append(f"{name} {value}")

        try:
            context = self.engine.get_context()
            add_metric("sentimentpool_current_period", context.current_period)
            add_metric("sentimentpool_total_staked", context.total_staked)
        except Exception as e:
            logger.error(f"Error reading engine context: {e}")
            lines.append(f"# Error reading engine context: {e}")

        add_metric("sentimentpool_submissions_total", self._submissions)
        add_metric("sentimentpool_finalizations_total", self._finalizations)
        add_metric("sentimentpool_claims_total", self._claims)
        add_metric("sentimentpool_accurate_claims_total", self._accurate_claims)
        add_metric("sentimentpool_rewards_paid_total", self._rewards_paid)

        if self._rejections:
            add_header("sentimentpool_rejections_total")
            for (operation, code), count in sorted(self._rejections.items()):
                lines.append(
                    f'sentimentpool_rejections_total{{operation="{operation}",code="{code}"}} {count}'
                )

        add_metric("sentimentpool_uptime_seconds", time.time() - self._start_time)

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        context = self.engine.get_context()
        return {
            "current_period": context.current_period,
            "total_staked": context.total_staked,
            "submissions": self._submissions,
            "stake_accepted": self._stake_accepted,
            "finalizations": self._finalizations,
            "claims": self._claims,
            "accurate_claims": self._accurate_claims,
            "rewards_paid": self._rewards_paid,
            "rejections": sum(self._rejections.values()),
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._submissions = 0
        self._stake_accepted = 0
        self._finalizations = 0
        self._claims = 0
        self._accurate_claims = 0
        self._rewards_paid = 0
        self._rejections = {}
