"""Correlation radar: oil against the dollar, equities and geopolitics."""

from __future__ import annotations

from commodity_core.analysis.base import ToolScorer
from commodity_core.analysis.registry import register
from commodity_core.errors import InsufficientDataError
from commodity_core.models import MarketContext, ToolResult

MACRO_FACTORS = ("usd_strength", "equity_sentiment", "geopolitical_risk")


@register
class CorrelationRadar(ToolScorer):
    """Reads externally supplied readings from ``context.macro``.

    ``usd_strength`` is a percent change, ``equity_sentiment`` and
    ``geopolitical_risk`` are in [-1, 1].
    """

    name = "correlation_radar"
    label = "Correlation Radar"
    docs = {
        "thesis": "Oil trades against the dollar, with risk appetite, and up on supply scares.",
        "data": "Macro factor readings passed in with the market context; no price history is used.",
        "risk": "Correlations break down in oil-specific shocks; readings are only as fresh as their source.",
    }

    def score(self, context: MarketContext) -> ToolResult:
        readings = {k: context.macro[k] for k in MACRO_FACTORS if k in context.macro}
        if not readings:
            raise InsufficientDataError("no macro factor readings supplied")

        score = 0.0
        reasons: list[str] = []

        usd = readings.get("usd_strength")
        if usd is not None:
            if usd < -1:
                score += 10
                reasons.append("Weak USD supports oil")
            elif usd > 1:
                score -= 10
                reasons.append("Strong USD pressures oil")

        equity = readings.get("equity_sentiment")
        if equity is not None:
            if equity > 0.5:
                score += 5
                reasons.append("Risk-on equities")
            elif equity < -0.5:
                score -= 5
                reasons.append("Risk-off equities")

        geo = readings.get("geopolitical_risk")
        if geo is not None and geo > 0.5:
            score += 8
            reasons.append("Elevated geopolitical risk")

        score = max(-20.0, min(20.0, score))
        if score > 10:
            signal = "BUY"
        elif score < -10:
            signal = "SELL"
        else:
            signal = "HOLD"
        return self.result(
            score=score,
            confidence=60,
            signal=signal,
            reasoning=", ".join(reasons) or "Macro factors neutral",
        )
