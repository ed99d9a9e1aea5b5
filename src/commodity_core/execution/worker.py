"""Queue worker: async loop that sweeps orphans and processes due items."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import structlog

from commodity_core.config.loader import load_config
from commodity_core.config.schema import AppConfig
from commodity_core.db.engine import init_engine, session_scope
from commodity_core.execution.broker import Broker
from commodity_core.execution.queue import ExecutionQueue
from commodity_core.execution.retry import RetryPolicy
from commodity_core.execution.supervisor import reap_orphans
from commodity_core.logging.setup import setup_logging
from commodity_core.models import QueueItem
from commodity_core.paper.ledger import PositionLedger

log = structlog.get_logger("execution_worker")


def run_once(queue: ExecutionQueue, config: AppConfig, now: datetime | None = None) -> int:
    """One poll: reap orphans, then process up to batch_size items."""
    now = now or datetime.now(timezone.utc)
    with session_scope() as session:
        reap_orphans(session, timedelta(seconds=config.execution.orphan_timeout_s), now)
        processed = queue.run_batch(session, limit=config.execution.batch_size, now=now)
    if processed:
        log.info(
            "batch_processed",
            count=len(processed),
            failed=sum(1 for item in processed if item.status == "FAILED"),
        )
    return len(processed)


def retry_item(item_id: int, config: AppConfig, now: datetime | None = None) -> QueueItem | None:
    """Enqueue a fresh attempt for one FAILED item under the configured retry policy."""
    policy = RetryPolicy.from_config(config.execution.retry)
    with session_scope() as session:
        fresh = ExecutionQueue(paper_config=config.paper).retry(session, item_id, policy, now)
    if fresh is None:
        log.warning("retry_not_enqueued", queue_item_id=item_id, max_attempts=policy.max_attempts)
    return fresh


async def run_loop(config: AppConfig, broker: Broker | None = None) -> None:
    """Main worker loop. Errors are logged and the next poll proceeds."""
    init_engine(config.database.url)
    queue = ExecutionQueue(
        ledger=PositionLedger(config.paper),
        broker=broker,
        paper_config=config.paper,
    )
    log.info(
        "worker_started",
        batch_size=config.execution.batch_size,
        poll_interval_s=config.execution.poll_interval_s,
        live_enabled=broker is not None,
    )

    while True:
        try:
            run_once(queue, config)
        except Exception:
            log.exception("poll_error")
        await asyncio.sleep(config.execution.poll_interval_s)


def main(config_path: str | None = None, retry_id: int | None = None) -> None:
    """Entry point: run the worker loop, or retry one failed item and exit."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    if retry_id is not None:
        init_engine(config.database.url)
        retry_item(retry_id, config)
        return
    asyncio.run(run_loop(config))
