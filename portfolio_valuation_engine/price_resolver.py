"""Month-level price resolution with a fixed fallback chain.

Called by:
- ``valuation.build_snapshots`` once per (month, holding).

Resolution order (first usable hit wins):
1. Exact historical price for the month.
2. Live cached quote (only for months at or after ``live_as_of`` when given).
3. Carry-forward: latest historical price at or before the month.
4. Average cost per unit.

Pure function: no I/O, no ambient caches. Never raises and never returns a
non-finite number.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional, Tuple

import pandas as pd

from portfolio_valuation_engine.constants import (
    PRICE_TIER_CARRY_FORWARD,
    PRICE_TIER_COST_BASIS,
    PRICE_TIER_HISTORICAL,
    PRICE_TIER_LIVE,
    PRICE_TIER_UNRESOLVED,
)


logger = logging.getLogger(__name__)

PriceSeries = Mapping[str, Mapping[str, Any]]


def _usable(value: Any) -> Optional[float]:
    """Finite, strictly positive price or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 0:
        return None
    return price


def _live_price(live_cache: Optional[Mapping[str, Any]], ticker: str) -> Optional[float]:
    if not live_cache:
        return None
    quote = live_cache.get(ticker)
    if isinstance(quote, Mapping):
        return _usable(quote.get("price"))
    return _usable(quote)


def _carry_forward(series: Mapping[str, Any], month_key: str) -> Optional[float]:
    # Month keys are zero-padded YYYY-MM, so string order is calendar order.
    usable = pd.Series(
        {k: _usable(v) for k, v in series.items() if isinstance(k, str)}, dtype=float
    ).dropna()
    if usable.empty:
        return None
    prior = usable[usable.index <= month_key].sort_index()
    if prior.empty:
        return None
    return float(prior.iloc[-1])


def resolve_price_with_source(
    ticker: str,
    month_key: str,
    historical_series: Optional[PriceSeries],
    live_cache: Optional[Mapping[str, Any]],
    cost_basis_per_unit: Optional[float],
    *,
    live_as_of: Optional[str] = None,
) -> Tuple[float, str]:
    """Resolve a usable price and report which tier produced it.

    Args:
        ticker: Ticker symbol as it appears in the ledger.
        month_key: Target month, ``YYYY-MM``.
        historical_series: ``{ticker: {month_key: price}}``; may be sparse or empty.
        live_cache: ``{ticker: {"price": ..., ...}}`` or ``{ticker: price}`` for "now".
        cost_basis_per_unit: Average purchase price; last resort.
        live_as_of: When given, live quotes apply only to months ``>= live_as_of``.

    Returns:
        (price, tier) with tier one of ``historical``, ``live``,
        ``carry_forward``, ``cost_basis`` or ``unresolved`` (price 0.0).
    """
    series = (historical_series or {}).get(ticker) or {}

    exact = _usable(series.get(month_key))
    if exact is not None:
        return exact, PRICE_TIER_HISTORICAL

    if live_as_of is None or month_key >= live_as_of:
        live = _live_price(live_cache, ticker)
        if live is not None:
            return live, PRICE_TIER_LIVE

    carried = _carry_forward(series, month_key)
    if carried is not None:
        return carried, PRICE_TIER_CARRY_FORWARD

    if cost_basis_per_unit is not None:
        try:
            fallback = float(cost_basis_per_unit)
        except (TypeError, ValueError):
            fallback = math.nan
        if math.isfinite(fallback) and fallback >= 0:
            return fallback, PRICE_TIER_COST_BASIS

    logger.warning("No usable price for %s in %s; valuing at 0", ticker, month_key)
    return 0.0, PRICE_TIER_UNRESOLVED


def resolve_price(
    ticker: str,
    month_key: str,
    historical_series: Optional[PriceSeries],
    live_cache: Optional[Mapping[str, Any]],
    cost_basis_per_unit: Optional[float],
    *,
    live_as_of: Optional[str] = None,
) -> float:
    """Resolve a single usable price for ``ticker`` in ``month_key``."""
    price, _ = resolve_price_with_source(
        ticker,
        month_key,
        historical_series,
        live_cache,
        cost_basis_per_unit,
        live_as_of=live_as_of,
    )
    return price
