"""Performance-level interpretive flags attached to analysis results."""

from __future__ import annotations

from typing import Any

from portfolio_valuation_engine import config as engine_config
from portfolio_valuation_engine._vendor import _to_float


def generate_performance_flags(snapshot: dict) -> list[dict]:
    """Generate actionable flags from a performance snapshot payload.

    ``snapshot`` carries ``metrics`` (``PerformanceMetrics.to_dict()``) and
    ``data_quality`` (counts of over-sells, skipped records, unpriced months).
    """
    flags: list[dict] = []
    thresholds = engine_config.PERFORMANCE_FLAG_THRESHOLDS
    metrics = snapshot.get("metrics", {}) if isinstance(snapshot, dict) else {}
    data_quality = snapshot.get("data_quality", {}) if isinstance(snapshot, dict) else {}

    total_return = _to_float(metrics.get("total_return_pct"))
    max_drawdown = _to_float(metrics.get("max_drawdown_pct"))
    volatility = _to_float(metrics.get("volatility_pct"))
    sharpe_ratio = _to_float(metrics.get("sharpe"))
    months = int(metrics.get("months_elapsed") or 0)

    if metrics.get("insufficient_data"):
        flags.append(
            {
                "type": "insufficient_data",
                "severity": "info",
                "message": f"Only {months} month(s) of returns; risk ratios are not meaningful yet",
                "months_elapsed": months,
            }
        )

    if months and not metrics.get("cagr_reliable", False):
        flags.append(
            {
                "type": "cagr_unreliable",
                "severity": "info",
                "message": "Less than a year of history; prefer total return over CAGR",
                "total_return_pct": round(total_return, 2) if total_return is not None else None,
            }
        )

    if total_return is not None and total_return < 0:
        flags.append(
            {
                "type": "negative_total_return",
                "severity": "warning",
                "message": f"Portfolio is down {abs(total_return):.1f}% on invested capital",
                "total_return_pct": round(total_return, 2),
            }
        )

    if max_drawdown is not None and max_drawdown > thresholds.get("deep_drawdown_pct", 20.0):
        recovered = bool(metrics.get("recovered", True))
        flags.append(
            {
                "type": "deep_drawdown",
                "severity": "warning",
                "message": (
                    f"Max drawdown of {max_drawdown:.1f}% experienced"
                    + ("" if recovered else " (not yet recovered)")
                ),
                "max_drawdown_pct": round(max_drawdown, 2),
            }
        )

    if volatility is not None and volatility > thresholds.get("high_volatility_pct", 25.0):
        flags.append(
            {
                "type": "high_volatility",
                "severity": "info",
                "message": f"Portfolio volatility is {volatility:.1f}% (above average)",
                "volatility_pct": round(volatility, 2),
            }
        )

    if (
        sharpe_ratio is not None
        and metrics.get("sharpe_defined")
        and months >= 12
        and sharpe_ratio < thresholds.get("low_sharpe", 0.3)
    ):
        flags.append(
            {
                "type": "low_sharpe",
                "severity": "warning" if sharpe_ratio < 0 else "info",
                "message": f"Sharpe ratio is {sharpe_ratio:.2f} (poor risk-adjusted returns)",
                "sharpe_ratio": round(sharpe_ratio, 3),
            }
        )

    oversold = _count(data_quality.get("oversold_count"))
    if oversold > 0:
        flags.append(
            {
                "type": "oversold_positions",
                "severity": "warning",
                "message": f"{oversold} sell(s) exceed the quantity held; ledger may be incomplete",
                "oversold_count": oversold,
            }
        )

    skipped = _count(data_quality.get("skipped_records"))
    if skipped > 0:
        flags.append(
            {
                "type": "skipped_records",
                "severity": "warning",
                "message": f"{skipped} malformed ledger record(s) excluded from the analysis",
                "skipped_records": skipped,
            }
        )

    cost_basis_priced = _count(data_quality.get("cost_basis_priced"))
    if cost_basis_priced > 0:
        flags.append(
            {
                "type": "cost_basis_pricing",
                "severity": "info",
                "message": f"{cost_basis_priced} month/position value(s) fell back to average cost",
                "cost_basis_priced": cost_basis_priced,
            }
        )

    return flags


def _count(value: Any) -> int:
    return int(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0
