"""Month-end valuation snapshots over a continuous monthly axis.

Called by:
- ``performance_analysis.analyze_ledger_performance``.

Primary flow (per month, ascending):
1. Replay the ledger to the month-end cutoff (``holdings.replay_ledger``).
2. Resolve a price per held ticker (``price_resolver``).
3. Aggregate ``quantity * price`` by ticker / macro / micro category.

Contract notes:
- Every month in ``months`` yields a snapshot, including empty ones.
- Values keep full float precision; rounding is a presentation concern.
- Categories are fixed from each ticker's latest ledger tags so a re-tag
  does not move history between buckets.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from portfolio_valuation_engine.data_objects import (
    Transaction,
    ValuationSnapshot,
    coerce_transactions,
    month_end,
    month_key,
    month_range,
)
from portfolio_valuation_engine.holdings import latest_categories, replay_ledger
from portfolio_valuation_engine.price_resolver import resolve_price_with_source


logger = logging.getLogger(__name__)


def _normalize_tickers(mapping: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Key a price map by ticker the way ``Transaction`` normalizes tickers."""
    return {str(ticker).strip().upper(): value for ticker, value in (mapping or {}).items()}


def observation_months(
    transactions: Iterable[Transaction],
    end_month: Optional[str] = None,
) -> List[str]:
    """Continuous ``YYYY-MM`` axis from the first transaction's month to ``end_month``.

    ``end_month`` defaults to the last transaction's month. An empty ledger
    yields an empty axis.
    """
    keys = [tx.month_key for tx in transactions]
    if not keys:
        return []
    start = min(keys)
    end = month_key(end_month) if end_month else max(keys)
    if end < start:
        logger.warning("end_month %s precedes first transaction month %s", end, start)
        return []
    return month_range(start, end)


def _value_month(
    transactions: List[Transaction],
    key: str,
    price_series: Optional[Mapping[str, Mapping[str, Any]]],
    live_cache: Optional[Mapping[str, Any]],
    categories: Mapping[str, Tuple[str, str]],
    live_as_of: Optional[str],
) -> Tuple[ValuationSnapshot, List[str]]:
    replay = replay_ledger(transactions, month_end(key), categories)

    by_ticker: dict = {}
    by_macro: dict = defaultdict(float)
    by_micro: dict = defaultdict(float)
    sources: dict = {}
    total = 0.0

    for ticker in sorted(replay.holdings):
        holding = replay.holdings[ticker]
        price, tier = resolve_price_with_source(
            ticker,
            key,
            price_series,
            live_cache,
            holding.cost_basis_per_unit,
            live_as_of=live_as_of,
        )
        value = holding.quantity * price
        by_ticker[ticker] = value
        by_macro[holding.macro_category] += value
        by_micro[holding.micro_category] += value
        sources[ticker] = tier
        total += value

    snapshot = ValuationSnapshot(
        month_key=key,
        by_ticker=by_ticker,
        by_macro=dict(by_macro),
        by_micro=dict(by_micro),
        total_value=total,
        total_invested=replay.total_invested,
        price_sources=sources,
    )
    return snapshot, replay.warnings


def build_snapshots_with_warnings(
    transactions: Iterable[Any],
    price_series: Optional[Mapping[str, Mapping[str, Any]]],
    live_cache: Optional[Mapping[str, Any]],
    months: Iterable[str],
    *,
    live_as_of: Optional[str] = None,
) -> Tuple[List[ValuationSnapshot], List[str]]:
    """``build_snapshots`` plus de-duplicated data-integrity warnings.

    ``live_as_of`` defaults to the last month of the window: the live cache is
    a "now" quote, so earlier months fall through to carry-forward/cost basis.
    """
    ledger, warnings = coerce_transactions(transactions)
    axis = sorted({month_key(m) for m in months})
    if not axis:
        return [], warnings
    as_of = month_key(live_as_of) if live_as_of else axis[-1]
    categories = latest_categories(ledger)
    price_series = _normalize_tickers(price_series)
    live_cache = _normalize_tickers(live_cache)

    snapshots: List[ValuationSnapshot] = []
    seen = set(warnings)
    for key in axis:
        snapshot, month_warnings = _value_month(ledger, key, price_series, live_cache, categories, as_of)
        snapshots.append(snapshot)
        for message in month_warnings:
            if message not in seen:
                seen.add(message)
                warnings.append(message)
    return snapshots, warnings


def build_snapshots(
    transactions: Iterable[Any],
    price_series: Optional[Mapping[str, Mapping[str, Any]]],
    live_cache: Optional[Mapping[str, Any]],
    months: Iterable[str],
    *,
    live_as_of: Optional[str] = None,
) -> List[ValuationSnapshot]:
    """One ``ValuationSnapshot`` per month in ``months``, ascending."""
    snapshots, _ = build_snapshots_with_warnings(
        transactions, price_series, live_cache, months, live_as_of=live_as_of
    )
    return snapshots
