"""FastAPI application: read-only status for signals, queue and positions."""

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generator, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

# Ensure all tool modules are imported so @register fires
import commodity_core.analysis.tools  # noqa: F401
from commodity_core.analysis.registry import TOOL_REGISTRY
from commodity_core.config.loader import load_config
from commodity_core.db.engine import get_session as _get_session, init_engine
from commodity_core.execution.queue import ExecutionQueue
from commodity_core.feed import get_latest_price
from commodity_core.models import Position, QueueItem, Signal
from commodity_core.paper.ledger import PositionLedger
from commodity_core.signals.store import get_active_signal, list_signals

logger = structlog.get_logger("api")

app = FastAPI(
    title="Commodity Signal API",
    description="Read-only view of the active signal, execution queue and positions",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# COMMODITY_CONFIG names the YAML file; defaults otherwise
config = load_config(os.environ.get("COMMODITY_CONFIG"))


def get_db() -> Generator[Session, None, None]:
    """Dependency to get DB session."""
    gen = _get_session()
    session = next(gen)
    try:
        yield session
    finally:
        try:
            next(gen)
        except StopIteration:
            pass


@app.on_event("startup")
async def startup_event():
    init_engine(config.database.url)
    logger.info("database_engine_initialized")


def _num(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _signal_json(s: Signal) -> dict:
    return {
        "id": s.id,
        "timestamp": s.timestamp.isoformat(),
        "signalType": s.signal_type,
        "strength": s.strength,
        "probabilityUp": s.probability_up,
        "probabilityDown": s.probability_down,
        "confidence": s.confidence,
        "currentPrice": _num(s.current_price),
        "targetPrice": _num(s.target_price),
        "stopLoss": _num(s.stop_loss),
        "reasoning": s.reasoning,
        "indicatorsUsed": s.indicators_used or {},
        "isActive": s.is_active,
        "autoExecuted": s.auto_executed,
        "executedAt": s.executed_at.isoformat() if s.executed_at else None,
    }


def _queue_json(item: QueueItem) -> dict:
    return {
        "id": item.id,
        "signalId": item.signal_id,
        "userId": item.user_id,
        "status": item.status,
        "attempt": item.attempt,
        "createdAt": item.created_at.isoformat(),
        "processedAt": item.processed_at.isoformat() if item.processed_at else None,
        "errorMessage": item.error_message,
        "result": item.result,
    }


def _position_json(p: Position) -> dict:
    return {
        "id": p.id,
        "userId": p.user_id,
        "signalId": p.signal_id,
        "direction": p.direction,
        "instrumentType": p.instrument_type,
        "isPaper": p.is_paper,
        "status": p.status,
        "entryPrice": _num(p.entry_price),
        "entryTimestamp": p.entry_timestamp.isoformat(),
        "exitPrice": _num(p.exit_price),
        "exitTimestamp": p.exit_timestamp.isoformat() if p.exit_timestamp else None,
        "exitReason": p.exit_reason,
        "positionValue": _num(p.position_value),
        "targetPrice": _num(p.target_price),
        "stopLoss": _num(p.stop_loss),
        "profitLoss": _num(p.profit_loss),
        "profitLossPercent": _num(p.profit_loss_percent),
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}


# ═══════════════════════════════════════════════════════════════
# Signals
# ═══════════════════════════════════════════════════════════════


@app.get("/api/signals/active")
async def active_signal(session: Session = Depends(get_db)):
    """The single active signal, or null."""
    signal = get_active_signal(session)
    return {"signal": _signal_json(signal) if signal else None}


@app.get("/api/signals")
async def recent_signals(limit: int = 50, session: Session = Depends(get_db)):
    return {"signals": [_signal_json(s) for s in list_signals(session, limit=limit)]}


# ═══════════════════════════════════════════════════════════════
# Execution queue
# ═══════════════════════════════════════════════════════════════


@app.get("/api/queue/stats")
async def queue_stats(session: Session = Depends(get_db)):
    """Item counts per status."""
    return ExecutionQueue.stats(session).model_dump()


@app.get("/api/queue/recent")
async def queue_recent(limit: int = 20, session: Session = Depends(get_db)):
    return {"items": [_queue_json(i) for i in ExecutionQueue.recent(session, limit=limit)]}


# ═══════════════════════════════════════════════════════════════
# Positions
# ═══════════════════════════════════════════════════════════════


@app.get("/api/positions")
async def positions(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    limit: int = 100,
    session: Session = Depends(get_db),
):
    rows = PositionLedger.list_positions(session, user_id=user_id, status=status, limit=limit)
    return {"positions": [_position_json(p) for p in rows]}


@app.get("/api/positions/{position_id}/pl")
async def position_pl(position_id: int, session: Session = Depends(get_db)):
    """Unrealized P/L of an open position against the latest tick.

    Closed positions report their realized result.
    """
    position = PositionLedger.get_position(session, position_id)
    if position is None:
        raise HTTPException(status_code=404, detail="Position not found")

    if position.status == "CLOSED":
        return {
            "id": position.id,
            "status": position.status,
            "price": _num(position.exit_price),
            "plPercent": _num(position.profit_loss_percent),
            "plAbsolute": _num(position.profit_loss),
        }

    price = get_latest_price(session)
    if price is None:
        raise HTTPException(status_code=503, detail="No market price available")
    pl = PositionLedger.unrealized_pl(position, price)
    return {
        "id": position.id,
        "status": position.status,
        "price": float(pl.price),
        "plPercent": float(pl.pl_percent),
        "plAbsolute": float(pl.pl_absolute),
    }


# ═══════════════════════════════════════════════════════════════
# Tools
# ═══════════════════════════════════════════════════════════════


@app.get("/api/tools")
async def list_tools():
    """Registered tool scorers and whether config disables them."""
    disabled = set(config.scoring.disabled)
    return {
        "tools": [
            {
                "name": name,
                "label": cls.label,
                "enabled": name not in disabled,
                "minTicks": cls.min_ticks,
            }
            for name, cls in sorted(TOOL_REGISTRY.items())
        ]
    }


@app.get("/api/tools/{tool_name}/docs")
async def tool_docs(tool_name: str):
    """Get structured documentation for a tool scorer."""
    if tool_name not in TOOL_REGISTRY:
        raise HTTPException(status_code=404, detail=f"Tool {tool_name!r} not found")

    cls = TOOL_REGISTRY[tool_name]
    return {
        "name": cls.name,
        "label": cls.label,
        "description": (cls.__doc__ or "").strip(),
        "docs": cls.docs,
    }
