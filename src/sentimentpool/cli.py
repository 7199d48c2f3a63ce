"""
sentimentpool/cli.py

Command line entry point.

    sentimentpool serve --authority oracle --state-file ./state.json
    sentimentpool status --state-file ./state.json
"""

import json
import logging
from pathlib import Path

import click
import trio

from .api import EngineAPI
from .config import EngineConfig, DEFAULT_MIN_STAKE_AMOUNT, DEFAULT_PERIOD_DURATION
from .engine import SentimentEngine
from .identity import Identity
from .protocol.storage import EngineStore, FileBackend, MemoryBackend

logger = logging.getLogger("sentimentpool.cli")


def _open_store(state_file) -> EngineStore:
    if state_file:
        return EngineStore(FileBackend(Path(state_file)))
    logger.warning("No --state-file given; state is kept in memory only")
    return EngineStore(MemoryBackend())


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def main(log_level):
    """Sentiment aggregation and reward engine."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8080, show_default=True, type=int)
@click.option("--authority", envvar="SENTIMENTPOOL_AUTHORITY", required=True,
              help="Identity allowed to finalize periods")
@click.option("--state-file", type=click.Path(dir_okay=False), default=None,
              help="JSON file holding engine state")
@click.option("--min-stake", envvar="SENTIMENTPOOL_MIN_STAKE", type=int,
              default=DEFAULT_MIN_STAKE_AMOUNT, show_default=True)
@click.option("--period-duration", envvar="SENTIMENTPOOL_PERIOD_DURATION", type=int,
              default=DEFAULT_PERIOD_DURATION, show_default=True)
@click.option("--no-metrics", is_flag=True, default=False)
def serve(host, port, authority, state_file, min_stake, period_duration, no_metrics):
    """Run the REST API host."""
    config = EngineConfig(
        authority=Identity(authority),
        min_stake_amount=min_stake,
        period_duration=period_duration,
    )
    engine = SentimentEngine(config, store=_open_store(state_file))
    api = EngineAPI(engine, host=host, port=port, enable_metrics=not no_metrics)

    logger.info(f"Engine config: {config.to_dict()}")
    try:
        trio.run(api.start)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


@main.command()
@click.option("--state-file", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--period", type=int, default=None, help="Also show this period's aggregate")
def status(state_file, period):
    """Print engine context (and optionally one period) from a state file."""
    store = EngineStore(FileBackend(Path(state_file)))
    output = store.get_context().to_dict()
    if period is not None:
        aggregate = store.get_aggregate(period)
        output["aggregate"] = aggregate.to_dict() if aggregate else None
    click.echo(json.dumps(output, indent=2))


if __name__ == "__main__":
    main()
