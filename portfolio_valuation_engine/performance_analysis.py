#!/usr/bin/env python3
# coding: utf-8

"""
Core ledger performance analysis business logic.

Agent orientation:
    Canonical pure-function entrypoint used beneath the CLI wrapper. Start
    here when valuation, return or metric outputs diverge.

Called by:
    - ``run_valuation.run_ledger_performance`` (dual-mode wrapper)

Primary flow:
    1) Validate the ledger and derive the continuous month axis.
    2) Build one ValuationSnapshot per month.
    3) Convert snapshots to time-weighted MonthlyReturns.
    4) Compute metrics, category attribution, cash flow and flags.
    5) Return ``PerformanceResult``.
"""

from typing import Any, Iterable, Mapping, Optional, Sequence

from portfolio_valuation_engine._logging import (
    log_critical_alert,
    log_errors,
    log_operation,
    log_portfolio_operation,
    log_timing,
)
from portfolio_valuation_engine.category_attribution import attribute_performance
from portfolio_valuation_engine.constants import ATTRIBUTION_DIMENSIONS, PRICE_TIER_COST_BASIS
from portfolio_valuation_engine.data_objects import coerce_transactions, month_end
from portfolio_valuation_engine.holdings import summarize_cash_flows
from portfolio_valuation_engine.performance_flags import generate_performance_flags
from portfolio_valuation_engine.performance_metrics_engine import compute_performance_metrics
from portfolio_valuation_engine.projections import project_goal_achievement
from portfolio_valuation_engine.results import PerformanceResult
from portfolio_valuation_engine.returns import compute_monthly_returns
from portfolio_valuation_engine.valuation import build_snapshots_with_warnings, observation_months


def _goal_projection(goal: Mapping[str, Any], current_value: float, annual_return_pct: float, end_month: str):
    target = goal.get("target_amount")
    if target is None:
        return None
    age = goal.get("current_age")
    return project_goal_achievement(
        current_value=current_value,
        target_value=float(target),
        monthly_contribution=float(goal.get("monthly_contribution") or 0.0),
        annual_return_pct=annual_return_pct,
        current_age=int(age) if age is not None else None,
        start_year=int(end_month[:4]),
    )


@log_errors("high")
@log_operation("ledger_performance_analysis")
@log_timing(5.0)
def analyze_ledger_performance(
    transactions: Iterable[Any],
    price_series: Optional[Mapping[str, Mapping[str, Any]]] = None,
    live_cache: Optional[Mapping[str, Any]] = None,
    *,
    end_month: Optional[str] = None,
    risk_free_rate_pct: Optional[float] = None,
    dimensions: Sequence[str] = ATTRIBUTION_DIMENSIONS,
    goal: Optional[Mapping[str, Any]] = None,
    portfolio_name: Optional[str] = None,
) -> PerformanceResult:
    """
    Run the full valuation and performance pipeline for one ledger.

    Contract notes:
    - Pure: identical inputs produce an identical result (no timestamps,
      no provider calls, no module-level caches).
    - Malformed records are skipped and reported in ``warnings``.
    - An empty or fully invalid ledger yields an empty result, not an error.

    Parameters
    ----------
    transactions : iterable
        ``Transaction`` objects, mappings or a DataFrame of ledger records.
    price_series : dict, optional
        ``{ticker: {YYYY-MM: price}}`` historical month-end prices.
    live_cache : dict, optional
        ``{ticker: {"price": ...}}`` current quotes; applied to the last month.
    end_month : str, optional
        Last month of the axis (defaults to the last transaction's month).
    risk_free_rate_pct : float, optional
        Annual rate for Sharpe/Sortino (defaults to config).
    dimensions : sequence of str
        Attribution dimensions to compute.
    goal : dict, optional
        ``target_amount``, ``monthly_contribution``, ``current_age``.

    Returns
    -------
    PerformanceResult
    """
    ledger, warnings = coerce_transactions(transactions)
    months = observation_months(ledger, end_month)
    if not months:
        metrics = compute_performance_metrics([], risk_free_rate_pct)
        data_quality = {"oversold_count": 0, "skipped_records": len(warnings), "cost_basis_priced": 0}
        return PerformanceResult(
            metrics=metrics,
            warnings=warnings,
            data_quality=data_quality,
            flags=generate_performance_flags({"metrics": metrics.to_dict(), "data_quality": data_quality}),
            portfolio_name=portfolio_name,
        )

    snapshots, snapshot_warnings = build_snapshots_with_warnings(ledger, price_series, live_cache, months)
    for message in snapshot_warnings:
        if message not in warnings:
            warnings.append(message)

    monthly_returns = compute_monthly_returns(snapshots)
    latest = snapshots[-1]
    metrics = compute_performance_metrics(
        monthly_returns,
        risk_free_rate_pct=risk_free_rate_pct,
        total_invested=latest.total_invested,
    )

    attribution = {dim: attribute_performance(snapshots, ledger, dim) for dim in dimensions}
    cash_flow = summarize_cash_flows(ledger, month_end(months[-1]))

    data_quality = {
        "oversold_count": sum(1 for w in warnings if w.startswith("Over-sold position")),
        "skipped_records": sum(1 for w in warnings if w.startswith("Skipped ledger record")),
        "cost_basis_priced": sum(
            1 for s in snapshots for tier in s.price_sources.values() if tier == PRICE_TIER_COST_BASIS
        ),
        "raw_delta_months": sum(1 for r in monthly_returns if r.method != "twr"),
        "undefined_months": max(len(snapshots) - 1 - len(monthly_returns), 0),
    }
    flags = generate_performance_flags({"metrics": metrics.to_dict(), "data_quality": data_quality})
    if data_quality["oversold_count"]:
        log_critical_alert(
            "ledger_integrity",
            "medium",
            f"{data_quality['oversold_count']} sell(s) exceed the quantity held",
            action="Check the ledger for missing buys or split adjustments",
        )

    goal_projection = None
    if goal:
        goal_projection = _goal_projection(goal, latest.total_value, metrics.preferred_return_pct(), months[-1])

    log_portfolio_operation(
        "ledger_performance_analysis",
        {
            "months": len(months),
            "transactions": len(ledger),
            "warnings": len(warnings),
            "flags": len(flags),
        },
    )

    return PerformanceResult(
        snapshots=snapshots,
        monthly_returns=monthly_returns,
        metrics=metrics,
        attribution=attribution,
        cash_flow=cash_flow,
        goal_projection=goal_projection,
        warnings=warnings,
        flags=flags,
        data_quality=data_quality,
        analysis_period={
            "start_month": months[0],
            "end_month": months[-1],
            "total_months": len(months),
            "years": round(len(months) / 12, 2),
        },
        portfolio_name=portfolio_name,
    )
