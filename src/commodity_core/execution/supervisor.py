"""Orphan sweep: fail PROCESSING items whose worker never finished them."""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy import update
from sqlalchemy.orm import Session

from commodity_core.db.tables.execution import QueueItemRow

log = structlog.get_logger("queue_supervisor")


def reap_orphans(session: Session, timeout: timedelta, now: datetime) -> int:
    """Move PROCESSING items claimed before ``now - timeout`` to FAILED.

    Returns the number of items reaped. Items are never returned to
    PENDING; a retry is a fresh item.
    """
    cutoff = now - timeout
    reaped = session.execute(
        update(QueueItemRow)
        .where(
            QueueItemRow.status == "PROCESSING",
            QueueItemRow.claimed_at < cutoff,
        )
        .values(
            status="FAILED",
            processed_at=now,
            error_message=f"Orphaned: no result within {int(timeout.total_seconds())}s of claim",
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    session.commit()
    if reaped:
        log.warning("orphans_reaped", count=reaped, timeout_s=timeout.total_seconds())
    return reaped
