"""Cash-flow-neutral (time-weighted) monthly returns from valuation snapshots.

Called by:
- ``performance_analysis.analyze_ledger_performance``.
- ``category_attribution.attribute_performance`` (single-period helper).

Per consecutive pair (prev, curr):
- net_cash_flow = curr.invested - prev.invested
- expected = prev.value + net_cash_flow
- expected > 0           -> (curr.value - expected) / expected * 100
- expected <= 0, prev > 0 -> (curr.value - prev.value) / prev.value * 100
- otherwise               -> undefined, month dropped (never coerced to 0)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from portfolio_valuation_engine.constants import RETURN_METHOD_RAW_DELTA, RETURN_METHOD_TWR
from portfolio_valuation_engine.data_objects import MonthlyReturn, ValuationSnapshot


logger = logging.getLogger(__name__)


def time_weighted_return(
    prev_value: float,
    curr_value: float,
    net_cash_flow: float,
) -> Optional[Tuple[float, str]]:
    """Single-period return in percent and the method used, or None if undefined."""
    expected = prev_value + net_cash_flow
    if expected > 0:
        return (curr_value - expected) / expected * 100.0, RETURN_METHOD_TWR
    if prev_value > 0:
        return (curr_value - prev_value) / prev_value * 100.0, RETURN_METHOD_RAW_DELTA
    return None


def compute_monthly_returns(snapshots: Sequence[ValuationSnapshot]) -> List[MonthlyReturn]:
    """Convert consecutive snapshots into MonthlyReturn records.

    The first snapshot is the baseline and produces no return; months whose
    return is undefined are excluded.
    """
    ordered = list(snapshots)
    results: List[MonthlyReturn] = []
    for prev, curr in zip(ordered, ordered[1:]):
        net_cash_flow = curr.total_invested - prev.total_invested
        outcome = time_weighted_return(prev.total_value, curr.total_value, net_cash_flow)
        if outcome is None:
            logger.debug("Return undefined for %s (no prior value, no inflow)", curr.month_key)
            continue
        return_pct, method = outcome
        if method == RETURN_METHOD_RAW_DELTA:
            logger.info(
                "Return for %s uses raw value delta (expected value %.2f <= 0)",
                curr.month_key,
                prev.total_value + net_cash_flow,
            )
        results.append(
            MonthlyReturn(
                month_key=curr.month_key,
                return_pct=return_pct,
                value=curr.total_value,
                invested=curr.total_invested,
                net_cash_flow=net_cash_flow,
                method=method,
            )
        )
    return results
