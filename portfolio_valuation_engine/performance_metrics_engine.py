"""Shared performance-metrics computation engine.

Called by:
- ``performance_analysis.analyze_ledger_performance``.
- Any presentation surface that needs CAGR/drawdown/Sharpe/Sortino from a
  MonthlyReturn series; wrappers should not duplicate this math.

Contract notes:
- Input is the cash-flow-neutral MonthlyReturn series (percent returns).
- Drawdown and recovery use the curve compounded from those returns, not the
  raw valuation, so deposits never look like gains.
- Degenerate inputs (empty, single month, zero variance, no losing months)
  produce sentinels and flags, never exceptions.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pandas as pd

from portfolio_valuation_engine import config as engine_config
from portfolio_valuation_engine.data_objects import MonthlyReturn, PerformanceMetrics, parse_month_key


_EPS = 1e-12


def compute_cagr(initial_value: float, final_value: float, months_elapsed: int) -> float:
    """Annualized growth in percent; 0 when any input is non-positive."""
    if initial_value <= 0 or final_value <= 0 or months_elapsed <= 0:
        return 0.0
    periods = engine_config.ENGINE_DEFAULTS.get("months_per_year", 12)
    return ((final_value / initial_value) ** (periods / months_elapsed) - 1.0) * 100.0


def compute_max_drawdown(returns: pd.Series) -> Dict[str, Any]:
    """
    Largest peak-to-trough decline of the compounded return curve.

    The curve starts at 1.0 one month before the first return, so a loss in
    the very first month counts as a drawdown from the starting value.

    Returns:
        Dict with ``max_drawdown_pct`` (non-negative), ``peak_index``,
        ``trough_index`` (positions on the curve) and ``peak_value``,
        ``trough_value`` (curve levels), plus the ``curve`` array.
    """
    growth = 1.0 + returns.to_numpy(dtype=float)
    curve = np.concatenate([[1.0], np.cumprod(growth)])
    running_max = np.maximum.accumulate(curve)
    drawdowns = np.where(running_max > 0, (running_max - curve) / running_max, 0.0)

    trough_index = int(np.argmax(drawdowns))
    max_drawdown = float(drawdowns[trough_index])
    if max_drawdown <= _EPS:
        return {
            "max_drawdown_pct": 0.0,
            "peak_index": 0,
            "trough_index": 0,
            "peak_value": float(curve[0]),
            "trough_value": float(curve[0]),
            "curve": curve,
        }

    peak_index = int(np.argmax(curve[: trough_index + 1]))
    return {
        "max_drawdown_pct": max_drawdown * 100.0,
        "peak_index": peak_index,
        "trough_index": trough_index,
        "peak_value": float(curve[peak_index]),
        "trough_value": float(curve[trough_index]),
        "curve": curve,
    }


def compute_recovery_time(curve: np.ndarray, drawdown: Dict[str, Any]) -> Optional[int]:
    """Months from the trough until the curve exceeds the pre-drawdown peak.

    Returns 0 when there was no drawdown and None when not yet recovered.
    """
    if drawdown.get("max_drawdown_pct", 0.0) <= 0:
        return 0
    trough = drawdown["trough_index"]
    peak_value = drawdown["peak_value"]
    for i in range(trough + 1, len(curve)):
        if curve[i] > peak_value:
            return i - trough
    return None


def compute_volatility(returns: pd.Series) -> float:
    """Annualized standard deviation of monthly returns, in percent."""
    if len(returns) < 2:
        return 0.0
    periods = engine_config.ENGINE_DEFAULTS.get("months_per_year", 12)
    return float(returns.std(ddof=0)) * math.sqrt(periods) * 100.0


def compute_sharpe_ratio(returns: pd.Series, risk_free_rate_pct: float) -> Optional[float]:
    """(annualized mean - rf) / annualized std; None when std is zero."""
    periods = engine_config.ENGINE_DEFAULTS.get("months_per_year", 12)
    std = float(returns.std(ddof=0)) if len(returns) else 0.0
    if std <= _EPS:
        return None
    annual_mean_pct = float(returns.mean()) * periods * 100.0
    return (annual_mean_pct - risk_free_rate_pct) / (std * math.sqrt(periods) * 100.0)


def compute_sortino_ratio(returns: pd.Series, risk_free_rate_pct: float) -> float:
    """Sharpe numerator over annualized downside deviation; +inf without losing months."""
    periods = engine_config.ENGINE_DEFAULTS.get("months_per_year", 12)
    downside = returns[returns < 0]
    if downside.empty:
        return math.inf
    downside_deviation = math.sqrt(float((downside**2).mean())) * math.sqrt(periods) * 100.0
    if downside_deviation <= _EPS:
        return math.inf
    annual_mean_pct = float(returns.mean()) * periods * 100.0
    return (annual_mean_pct - risk_free_rate_pct) / downside_deviation


def _month_label(months: Sequence[str], curve_index: int) -> Optional[str]:
    # Curve position 0 is the baseline one month before the first return.
    if not months:
        return None
    if curve_index == 0:
        return (parse_month_key(months[0]) - 1).strftime("%Y-%m")
    return months[curve_index - 1]


def compute_performance_metrics(
    monthly_returns: Sequence[MonthlyReturn],
    risk_free_rate_pct: Optional[float] = None,
    total_invested: Optional[float] = None,
) -> PerformanceMetrics:
    """Compute CAGR, drawdown, recovery, Sharpe, Sortino and volatility.

    Ownership:
    - This is the canonical metrics engine; callers should not re-derive
      these ratios with different conventions.

    Args:
        monthly_returns: Output of ``returns.compute_monthly_returns``.
        risk_free_rate_pct: Annual risk-free rate in percent (defaults to
            ``ENGINE_DEFAULTS["risk_free_rate_pct"]``).
        total_invested: Capital committed, used as the CAGR starting value;
            falls back to the first return's ``invested``.

    Returns:
        PerformanceMetrics. ``insufficient_data`` is set for fewer than
        ``DATA_QUALITY_THRESHOLDS["min_returns_for_ratios"]`` returns.
    """
    thresholds = engine_config.DATA_QUALITY_THRESHOLDS
    if risk_free_rate_pct is None:
        risk_free_rate_pct = float(engine_config.ENGINE_DEFAULTS.get("risk_free_rate_pct", 0.0))
    periods = engine_config.ENGINE_DEFAULTS.get("months_per_year", 12)

    series = list(monthly_returns or [])
    if not series:
        return PerformanceMetrics(risk_free_rate_pct=risk_free_rate_pct, insufficient_data=True)

    months = [r.month_key for r in series]
    returns = pd.Series([r.return_pct / 100.0 for r in series], index=months, dtype=float)
    total_months = len(returns)

    # CAGR on invested capital (money view) plus the pure TWR equivalent
    initial_value = float(total_invested) if total_invested is not None else float(series[0].invested)
    if initial_value <= 0 and total_invested is None:
        initial_value = float(series[0].value)
    final_value = float(series[-1].value)
    cagr_pct = compute_cagr(initial_value, final_value, total_months)
    cagr_reliable = total_months >= thresholds.get("min_months_for_reliable_cagr", 12)
    total_return_pct = (final_value - initial_value) / initial_value * 100.0 if initial_value > 0 else 0.0

    growth = float((1.0 + returns).prod())
    twr_total_return_pct = (growth - 1.0) * 100.0
    twr_annualized_pct = (growth ** (periods / total_months) - 1.0) * 100.0 if growth > 0 else 0.0

    # Drawdown and recovery on the compounded curve
    drawdown = compute_max_drawdown(returns)
    recovery = compute_recovery_time(drawdown["curve"], drawdown)
    recovered = recovery is not None
    drawdown_details = {
        "peak_month": _month_label(months, drawdown["peak_index"]),
        "trough_month": _month_label(months, drawdown["trough_index"]),
        "peak_value": drawdown["peak_value"],
        "trough_value": drawdown["trough_value"],
        "recovery_month": (
            _month_label(months, drawdown["trough_index"] + recovery)
            if recovered and recovery
            else None
        ),
    }

    # Win/loss statistics
    positive = returns[returns > 0]
    negative = returns[returns < 0]
    best_key = returns.idxmax()
    worst_key = returns.idxmin()

    metrics = PerformanceMetrics(
        cagr_pct=cagr_pct,
        cagr_reliable=cagr_reliable,
        max_drawdown_pct=drawdown["max_drawdown_pct"],
        recovery_months=recovery or 0,
        total_return_pct=total_return_pct,
        twr_total_return_pct=twr_total_return_pct,
        twr_annualized_pct=twr_annualized_pct,
        recovered=recovered,
        months_elapsed=total_months,
        average_monthly_return_pct=float(returns.mean()) * 100.0,
        best_month={"month": best_key, "return_pct": float(returns[best_key]) * 100.0},
        worst_month={"month": worst_key, "return_pct": float(returns[worst_key]) * 100.0},
        positive_months=int(len(positive)),
        negative_months=int(len(negative)),
        win_rate_pct=len(positive) / total_months * 100.0,
        risk_free_rate_pct=risk_free_rate_pct,
        initial_value=initial_value,
        final_value=final_value,
        drawdown=drawdown_details,
    )

    if drawdown["max_drawdown_pct"] > 0.1:
        metrics.calmar_ratio = twr_annualized_pct / drawdown["max_drawdown_pct"]

    if total_months < thresholds.get("min_returns_for_ratios", 2):
        metrics.insufficient_data = True
        return metrics

    metrics.insufficient_data = False
    metrics.volatility_pct = compute_volatility(returns)

    sharpe = compute_sharpe_ratio(returns, risk_free_rate_pct)
    metrics.sharpe_defined = sharpe is not None
    metrics.sharpe = sharpe if sharpe is not None else 0.0

    sortino = compute_sortino_ratio(returns, risk_free_rate_pct)
    metrics.sortino_unbounded = math.isinf(sortino)
    metrics.sortino = sortino
    if not negative.empty:
        metrics.downside_deviation_pct = (
            math.sqrt(float((negative**2).mean())) * math.sqrt(periods) * 100.0
        )

    return metrics
