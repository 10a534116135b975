"""
Lester v1 - Tag Worker Process

Command-line entry point that runs the tag worker against the database.

Usage:
    lester-worker                      # poll forever
    lester-worker --once               # drain pending jobs and exit
    python -m enrichment_service.main --batch-size 16 --poll-interval-ms 1000
"""

import logging
import signal
import sys
from typing import Optional

import click

from config import get_config, load_env
from shared.errors import FatalStoreError, StoreError
from shared.log_setup import configure_logging
from shared.store import LesterStore
from shared.tagging import RescalePolicy, TaggingRules

from . import __version__
from .worker import TagWorker

logger = logging.getLogger(__name__)


def build_worker(store: LesterStore) -> TagWorker:
    """Create a worker with the tagging policy from configuration"""
    tagging = get_config().tagging
    rules = TaggingRules(
        domain_confidence=tagging.domain_confidence,
        keyword_confidence=tagging.keyword_confidence,
        min_keyword_length=tagging.min_keyword_length,
    )
    policy = RescalePolicy(scale=tagging.llm_scale, cap=tagging.llm_cap)
    return TagWorker(store, rules=rules, policy=policy)


@click.command()
@click.version_option(version=__version__)
@click.option("--db-url", default=None, help="PostgreSQL connection string (default: DATABASE_URL)")
@click.option("--poll-interval-ms", type=click.IntRange(min=0), default=None,
              help="Wait between empty polls in milliseconds (default: WORKER_POLL_INTERVAL_MS)")
@click.option("--batch-size", type=click.IntRange(min=1), default=None,
              help="Jobs fetched per poll (default: WORKER_BATCH_SIZE)")
@click.option("--once", is_flag=True, default=False,
              help="Process all pending jobs and exit")
def cli(
    db_url: Optional[str],
    poll_interval_ms: Optional[int],
    batch_size: Optional[int],
    once: bool,
):
    """Lester tag worker - enriches new bookmarks with tags"""
    load_env()
    cfg = get_config()
    configure_logging(cfg.app.log_level, cfg.app.log_format)

    db_url = db_url or cfg.database.url
    interval = poll_interval_ms / 1000 if poll_interval_ms is not None else cfg.worker.poll_interval
    batch_size = batch_size or cfg.worker.batch_size
    once = once or cfg.worker.once

    store = LesterStore(
        db_url,
        connect_timeout=cfg.database.connect_timeout,
        connect_retries=cfg.database.connect_retries,
    )
    worker = build_worker(store)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, stopping after the current batch")
        worker.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        store.migrate()
        total = worker.run(batch_size=batch_size, poll_interval=interval, once=once)
    except FatalStoreError as e:
        logger.critical(f"Store is unusable, exiting: {e}")
        sys.exit(1)
    except StoreError as e:
        logger.error(f"Tag worker failed: {e}")
        sys.exit(1)

    logger.info(f"Done, {total} tag jobs processed")


def main():
    """Entry point for the worker"""
    cli()


if __name__ == "__main__":
    main()
