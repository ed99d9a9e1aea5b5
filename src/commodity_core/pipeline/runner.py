"""Pipeline runner: one pass per tick from price window to published signal."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from commodity_core.analysis.bank import ScorerBank
from commodity_core.analysis.combiner import Combiner
from commodity_core.config.loader import load_config
from commodity_core.config.schema import AppConfig
from commodity_core.db.engine import init_engine, session_scope
from commodity_core.errors import AggregationError, InsufficientDataError
from commodity_core.events import EventChannel
from commodity_core.logging import bind_context
from commodity_core.logging.setup import setup_logging
from commodity_core.models import CombinedRecommendation, InstrumentType, Position, Signal
from commodity_core.paper.ledger import PositionLedger
from commodity_core.pipeline.snapshot import build_context
from commodity_core.signals.publisher import SignalPublisher

log = structlog.get_logger("pipeline")


@dataclass
class PassResult:
    ts: datetime
    recommendation: CombinedRecommendation
    signal: Signal | None = None
    exits: list[Position] = field(default_factory=list)


class Pipeline:
    """IndicatorEngine -> scorer bank -> combiner -> publisher, plus exit checks."""

    def __init__(
        self,
        config: AppConfig | None = None,
        bank: ScorerBank | None = None,
        events: EventChannel | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.bank = bank or ScorerBank.from_registry(self.config.scoring)
        self.combiner = Combiner(self.config.combiner)
        self.publisher = SignalPublisher(self.config.publisher, events)
        self.ledger = PositionLedger(self.config.paper)

    def run_pass(
        self,
        session: Session,
        *,
        ts: datetime | None = None,
        macro: dict[str, float] | None = None,
        holding: InstrumentType | None = None,
    ) -> PassResult | None:
        """Run one pass. Returns None when there is nothing to score.

        An AggregationError aborts the pass and leaves the active signal
        as it was.
        """
        try:
            context = build_context(
                session,
                window=self.config.indicators.window,
                ts=ts,
                macro=macro,
            )
        except InsufficientDataError as e:
            log.info("pass_skipped", reason=str(e))
            return None

        bind_context(pass_ts=context.ts.isoformat())
        results = self.bank.score_all(context)
        try:
            recommendation = self.combiner.combine(results, context.current_price, holding=holding)
        except AggregationError:
            log.exception("aggregation_failed", result_count=len(results))
            return None

        log.info(
            "recommendation",
            action=recommendation.action,
            composite=round(recommendation.composite, 2),
            confidence=round(recommendation.confidence, 2),
        )
        signal = self.publisher.publish(session, recommendation, context.ts, context.indicators)
        exits = self.ledger.check_exits(session, context.current_price, context.ts)
        return PassResult(ts=context.ts, recommendation=recommendation, signal=signal, exits=exits)


async def run_loop(config: AppConfig) -> None:
    """Main pipeline loop. A failing pass is logged; the loop carries on."""
    init_engine(config.database.url)
    pipeline = Pipeline(config)
    log.info(
        "pipeline_started",
        tools=pipeline.bank.names,
        interval_s=config.pipeline.interval_s,
        weighting=pipeline.combiner.weighting.name,
    )

    while True:
        try:
            with session_scope() as session:
                pipeline.run_pass(session)
        except Exception:
            log.exception("pass_error")
        await asyncio.sleep(config.pipeline.interval_s)


def main(config_path: str | None = None) -> None:
    """Entry point: load config, set up logging, run the async loop."""
    config = load_config(config_path)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    asyncio.run(run_loop(config))
