"""
Category Attribution - month-by-category performance for heat-map reports.

Pure functions over ValuationSnapshots and the ledger. Each cell applies the
same time-weighted rule as the portfolio-level ReturnCalculator, scoped to one
category's subtotal and that category's net trade flow in the month.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from portfolio_valuation_engine import config as engine_config
from portfolio_valuation_engine.constants import (
    ATTRIBUTION_DIMENSIONS,
    CELL_NO_POSITION,
    CELL_OK,
    CELL_UNDEFINED,
    EPSILON,
)
from portfolio_valuation_engine.data_objects import (
    CategoryPerformance,
    Transaction,
    ValuationSnapshot,
    coerce_transactions,
)
from portfolio_valuation_engine.holdings import latest_categories
from portfolio_valuation_engine.returns import time_weighted_return


def _category_of(tx: Transaction, dimension: str, categories: Mapping[str, tuple]) -> str:
    if dimension == "ticker":
        return tx.ticker
    macro, micro = categories.get(tx.ticker, (tx.macro_category, tx.micro_category))
    return macro if dimension == "macro" else micro


def monthly_category_flows(
    transactions: Iterable[Transaction],
    dimension: str,
) -> Dict[str, Dict[str, float]]:
    """Net invested flow per (month, category) from non-cash trades."""
    ledger = list(transactions)
    categories = latest_categories(ledger)
    flows: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for tx in ledger:
        if tx.is_cash_movement:
            continue
        flows[tx.month_key][_category_of(tx, dimension, categories)] += tx.invested_flow
    return flows


def group_snapshot_values(
    snapshots: Sequence[ValuationSnapshot],
    dimension: str,
) -> Dict[str, Dict[str, float]]:
    """Category -> month -> subtotal, for allocation tables and stacked charts."""
    grouped: Dict[str, Dict[str, float]] = {}
    for snapshot in snapshots:
        for category, value in snapshot.breakdown(dimension).items():
            grouped.setdefault(category, {})[snapshot.month_key] = value
    return grouped


def attribute_performance(
    snapshots: Sequence[ValuationSnapshot],
    transactions: Iterable[Any],
    dimension: str,
) -> CategoryPerformance:
    """Build the month-by-category return matrix for ``dimension``.

    Args:
        snapshots: Ascending ValuationSnapshots (``valuation.build_snapshots``).
        transactions: The ledger the snapshots were built from.
        dimension: ``ticker``, ``macro`` or ``micro``.

    Returns:
        CategoryPerformance covering every month after the first. A cell is
        ``None`` with status ``no_position`` when the category held nothing in
        both the previous and the current month, and ``undefined`` when the
        time-weighted rule has no baseline.

    Raises:
        ValueError: If ``dimension`` is not supported.
    """
    if dimension not in ATTRIBUTION_DIMENSIONS:
        raise ValueError(f"Unknown attribution dimension: {dimension!r}")

    ordered = list(snapshots)
    ledger, _ = coerce_transactions(transactions)
    flows = monthly_category_flows(ledger, dimension)

    category_names = set()
    for snapshot in ordered:
        category_names.update(snapshot.breakdown(dimension).keys())
    result = CategoryPerformance(
        dimension=dimension,
        months=[s.month_key for s in ordered[1:]],
        categories=sorted(category_names),
    )

    for category in result.categories:
        row: Dict[str, Optional[float]] = {}
        status_row: Dict[str, str] = {}
        for prev, curr in zip(ordered, ordered[1:]):
            prev_breakdown = prev.breakdown(dimension)
            curr_breakdown = curr.breakdown(dimension)
            present = category in prev_breakdown or category in curr_breakdown
            prev_value = prev_breakdown.get(category, 0.0)
            curr_value = curr_breakdown.get(category, 0.0)
            if not present or (abs(prev_value) < EPSILON and abs(curr_value) < EPSILON):
                row[curr.month_key] = None
                status_row[curr.month_key] = CELL_NO_POSITION
                continue

            net_flow = flows.get(curr.month_key, {}).get(category, 0.0)
            outcome = time_weighted_return(prev_value, curr_value, net_flow)
            if outcome is None:
                row[curr.month_key] = None
                status_row[curr.month_key] = CELL_UNDEFINED
            else:
                row[curr.month_key] = outcome[0]
                status_row[curr.month_key] = CELL_OK
        result.cells[category] = row
        result.status[category] = status_row

    return result


def classify_performance_change(return_pct: Optional[float]) -> str:
    """Classify a percent return as positive/negative/neutral for heat-map colouring."""
    if return_pct is None:
        return "neutral"
    band = engine_config.PERFORMANCE_FLAG_THRESHOLDS.get("neutral_band_pct", 0.5)
    if return_pct > band:
        return "positive"
    if return_pct < -band:
        return "negative"
    return "neutral"
