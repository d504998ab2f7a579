"""Provider protocols for historical and live market prices."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple, runtime_checkable

import pandas as pd

from portfolio_valuation_engine.data_objects import month_key


logger = logging.getLogger(__name__)

PriceSeries = Dict[str, Dict[str, float]]
LiveQuotes = Dict[str, Dict[str, Any]]


@runtime_checkable
class HistoricalPriceProvider(Protocol):
    def fetch_monthly_prices(
        self, ticker: str, start_month: Optional[str], end_month: Optional[str]
    ) -> Mapping[str, float]: ...


@runtime_checkable
class LivePriceCache(Protocol):
    def get_quote(self, ticker: str) -> Optional[Mapping[str, Any]]: ...


def normalize_price_series(series: Any) -> Dict[str, float]:
    """Coerce a price series to ``{YYYY-MM: price}``.

    Accepts a mapping keyed by month keys or date-likes, or a pandas Series
    with a date/period index. Later dates inside the same month win, so a
    daily series collapses to its last observation per month. Non-numeric and
    non-finite prices are dropped.
    """
    if series is None:
        return {}
    if isinstance(series, pd.Series):
        items: Iterable[Tuple[Any, Any]] = series.sort_index().items()
    elif isinstance(series, Mapping):
        items = sorted(series.items(), key=lambda kv: str(kv[0]))
    else:
        raise TypeError(f"Unsupported price series type: {type(series).__name__}")

    normalized: Dict[str, float] = {}
    for key, value in items:
        if isinstance(key, pd.Period):
            key = key.strftime("%Y-%m")
        try:
            month = month_key(key)
            price = float(value)
        except (TypeError, ValueError):
            logger.debug("Dropping price point %r=%r", key, value)
            continue
        if math.isfinite(price):
            normalized[month] = price
    return normalized


def _normalize_quote(quote: Any) -> Optional[Dict[str, Any]]:
    if quote is None:
        return None
    if isinstance(quote, Mapping):
        data = dict(quote)
    else:
        data = {"price": quote}
    try:
        data["price"] = float(data.get("price"))
    except (TypeError, ValueError):
        return None
    return data


class InMemoryPriceProvider:
    """Dict-backed historical prices and live quotes.

    Satisfies both ``HistoricalPriceProvider`` and ``LivePriceCache``; used by
    the YAML runner and in tests.
    """

    def __init__(
        self,
        historical: Optional[Mapping[str, Any]] = None,
        live: Optional[Mapping[str, Any]] = None,
    ):
        self._historical: PriceSeries = {
            str(t).strip().upper(): normalize_price_series(s) for t, s in (historical or {}).items()
        }
        self._live: LiveQuotes = {}
        for ticker, quote in (live or {}).items():
            normalized = _normalize_quote(quote)
            if normalized is not None:
                self._live[str(ticker).strip().upper()] = normalized

    def fetch_monthly_prices(
        self, ticker: str, start_month: Optional[str], end_month: Optional[str]
    ) -> Dict[str, float]:
        """Stored prices in ``[start_month, end_month]``; a None bound is open."""
        series = self._historical.get(ticker.upper(), {})
        start = month_key(start_month) if start_month else None
        end = month_key(end_month) if end_month else None
        return {
            k: v
            for k, v in series.items()
            if (start is None or k >= start) and (end is None or k <= end)
        }

    def get_quote(self, ticker: str) -> Optional[Dict[str, Any]]:
        quote = self._live.get(ticker.upper())
        return dict(quote) if quote is not None else None


def collect_price_inputs(
    tickers: Iterable[str],
    start_month: Optional[str],
    end_month: Optional[str],
    historical_provider: Optional[HistoricalPriceProvider] = None,
    live_cache: Optional[LivePriceCache] = None,
) -> Tuple[PriceSeries, LiveQuotes]:
    """
    Pull price inputs for ``tickers`` into the plain mappings the engine reads.

    The engine itself never calls providers; callers gather inputs up front so
    a run stays a pure function of its arguments.

    Returns:
        (price_series, live_quotes): ``{ticker: {YYYY-MM: price}}`` and
        ``{ticker: {"price": ..., ...}}``. Tickers without data are omitted.
    """
    price_series: PriceSeries = {}
    live_quotes: LiveQuotes = {}
    for ticker in sorted({str(t).strip().upper() for t in tickers if t}):
        if historical_provider is not None:
            series = normalize_price_series(historical_provider.fetch_monthly_prices(ticker, start_month, end_month))
            if series:
                price_series[ticker] = series
        if live_cache is not None:
            quote = _normalize_quote(live_cache.get_quote(ticker))
            if quote is not None:
                live_quotes[ticker] = quote
    return price_series, live_quotes
