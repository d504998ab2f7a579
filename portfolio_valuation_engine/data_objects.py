"""
Core Data Objects Module

Data structures flowing through the valuation engine, plus month-key helpers.

Classes:
- Transaction: One immutable ledger record (buy/sell/deposit/withdrawal)
- Holding: Derived position (quantity and cost basis) at a cutoff
- LedgerReplay: Full bookkeeping state after replaying the ledger to a cutoff
- ValuationSnapshot: Month-end valuation aggregated by ticker/macro/micro
- MonthlyReturn: Cash-flow-neutral return between two consecutive snapshots
- PerformanceMetrics: CAGR, drawdown, recovery, Sharpe, Sortino, volatility
- CategoryPerformance: Month-by-category return matrix for heat maps

Usage: Every engine stage consumes and produces these objects; none of them is
mutated after construction by the engine.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from portfolio_valuation_engine.constants import (
    CASH_MACRO_CATEGORY,
    DEFAULT_CATEGORY,
    KIND_ALIASES,
    VALID_KINDS,
)


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Month keys
# ---------------------------------------------------------------------------

def to_date(value: Any) -> date:
    """Coerce ISO strings, datetimes and pandas Timestamps to ``date``.

    Raises:
        ValueError: If the value cannot be parsed.
    """
    # NaT is a datetime subclass, so check for missing values first
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        raise ValueError("Transaction date is missing")
    if isinstance(value, str) and not value.strip():
        raise ValueError("Transaction date is missing")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unparseable date: {value!r}") from exc
    if pd.isna(ts):
        raise ValueError(f"Unparseable date: {value!r}")
    return ts.date()


def month_key(value: Any) -> str:
    """Return the canonical ``YYYY-MM`` key for a date-like value."""
    if isinstance(value, str) and len(value) == 7 and value[4] == "-":
        return parse_month_key(value).strftime("%Y-%m")
    return to_date(value).strftime("%Y-%m")


def parse_month_key(key: str) -> pd.Period:
    try:
        return pd.Period(key, freq="M")
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid month key: {key!r}") from exc


def month_end(key: str) -> date:
    """Last calendar day of the month identified by ``key``."""
    return parse_month_key(key).end_time.date()


def month_range(start_key: str, end_key: str) -> List[str]:
    """Continuous ascending list of month keys from start to end, inclusive."""
    start = parse_month_key(start_key)
    end = parse_month_key(end_key)
    if end < start:
        return []
    return [p.strftime("%Y-%m") for p in pd.period_range(start, end, freq="M")]


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------

def _non_negative(name: str, value: Any) -> float:
    try:
        number = float(value if value is not None else 0.0)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    if number < 0:
        raise ValueError(f"{name} must be >= 0, got {number}")
    return number


@dataclass(frozen=True)
class Transaction:
    """
    One immutable ledger record.

    Normalization on construction:
    - ``kind`` is lower-cased; ``type``-style aliases are accepted via ``coerce_transactions``
    - ``ticker`` is stripped and upper-cased
    - ``date`` accepts ``date``, ``datetime``, ISO strings and pandas Timestamps
    - a macro category of ``"Cash"`` marks the record as cash

    Raises:
        ValueError: On unknown kind, empty ticker, bad date or negative amounts.
    """

    date: date
    kind: str
    ticker: str
    quantity: float
    price: float
    commission: float = 0.0
    macro_category: str = DEFAULT_CATEGORY
    micro_category: str = DEFAULT_CATEGORY
    is_cash: bool = False

    def __post_init__(self):
        kind = KIND_ALIASES.get(str(self.kind or "").strip().lower(), str(self.kind or "").strip().lower())
        if kind not in VALID_KINDS:
            raise ValueError(f"Unknown transaction kind: {self.kind!r}")
        ticker = str(self.ticker or "").strip().upper()
        if not ticker:
            raise ValueError("Ticker cannot be empty")

        macro = str(self.macro_category).strip() if self.macro_category else DEFAULT_CATEGORY
        micro = str(self.micro_category).strip() if self.micro_category else DEFAULT_CATEGORY

        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "ticker", ticker)
        object.__setattr__(self, "quantity", _non_negative("quantity", self.quantity))
        object.__setattr__(self, "price", _non_negative("price", self.price))
        object.__setattr__(self, "commission", _non_negative("commission", self.commission))
        object.__setattr__(self, "macro_category", macro)
        object.__setattr__(self, "micro_category", micro)
        object.__setattr__(self, "is_cash", bool(self.is_cash) or macro == CASH_MACRO_CATEGORY)

    @property
    def month_key(self) -> str:
        return self.date.strftime("%Y-%m")

    @property
    def gross_amount(self) -> float:
        return self.quantity * self.price

    @property
    def is_cash_movement(self) -> bool:
        """Deposits/withdrawals, and buys/sells booked against a cash account."""
        return self.is_cash or self.kind in ("deposit", "withdrawal")

    @property
    def invested_flow(self) -> float:
        """Signed capital committed by a non-cash trade, commission included."""
        if self.is_cash_movement:
            return 0.0
        if self.kind == "buy":
            return self.gross_amount + self.commission
        return -(self.gross_amount - self.commission)


_FIELD_ALIASES = {
    "type": "kind",
    "macroCategory": "macro_category",
    "microCategory": "micro_category",
    "category": "macro_category",
    "isCash": "is_cash",
    "symbol": "ticker",
    "qty": "quantity",
    "fee": "commission",
    "fees": "commission",
}

_TRANSACTION_FIELDS = (
    "date",
    "kind",
    "ticker",
    "quantity",
    "price",
    "commission",
    "macro_category",
    "micro_category",
    "is_cash",
)


def _record_to_transaction(record: Mapping[str, Any]) -> Transaction:
    normalized: Dict[str, Any] = {}
    for key, value in record.items():
        target = _FIELD_ALIASES.get(key, key)
        # DataFrame rows carry NaN for empty cells
        if value is None or (isinstance(value, float) and math.isnan(value)):
            continue
        if target in _TRANSACTION_FIELDS and target not in normalized:
            normalized[target] = value
    for required in ("date", "kind", "ticker", "quantity", "price"):
        if required not in normalized:
            raise KeyError(required)
    return Transaction(**normalized)


def coerce_transactions(records: Any) -> Tuple[List[Transaction], List[str]]:
    """Build validated ``Transaction`` objects, skipping malformed records.

    Accepts an iterable of ``Transaction``/mappings or a pandas DataFrame.
    Insertion order is preserved so that same-date ties keep ledger order.

    Returns:
        (transactions, warnings) where each warning names a skipped record.
    """
    if records is None:
        return [], []
    if isinstance(records, pd.DataFrame):
        records = records.to_dict("records")

    transactions: List[Transaction] = []
    warnings: List[str] = []
    for position, record in enumerate(records):
        if isinstance(record, Transaction):
            transactions.append(record)
            continue
        try:
            if not isinstance(record, Mapping):
                raise TypeError(f"expected a mapping, got {type(record).__name__}")
            transactions.append(_record_to_transaction(record))
        except KeyError as exc:
            message = f"Skipped ledger record #{position}: missing field {exc.args[0]!r}"
            logger.warning(message)
            warnings.append(message)
        except (TypeError, ValueError) as exc:
            message = f"Skipped ledger record #{position}: {exc}"
            logger.warning(message)
            warnings.append(message)
    return transactions, warnings


def sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Chronological order; ``sorted`` is stable so ties keep insertion order."""
    return sorted(transactions, key=lambda tx: tx.date)


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------

@dataclass
class Holding:
    """Position derived from replaying the ledger; never stored."""

    ticker: str
    quantity: float = 0.0
    cost_basis: float = 0.0
    macro_category: str = DEFAULT_CATEGORY
    micro_category: str = DEFAULT_CATEGORY

    @property
    def cost_basis_per_unit(self) -> Optional[float]:
        if self.quantity <= 0:
            return None
        return self.cost_basis / self.quantity


@dataclass
class LedgerReplay:
    """Bookkeeping state after replaying the ledger up to a cutoff date."""

    cutoff: date
    positions: Dict[str, Holding] = field(default_factory=dict)
    total_invested: float = 0.0
    deposits: float = 0.0
    withdrawals: float = 0.0
    asset_purchases: float = 0.0
    asset_sales_net: float = 0.0
    commissions: float = 0.0
    realized_pnl: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def holdings(self) -> Dict[str, Holding]:
        """Positions with positive quantity; flat or over-sold ones carry no value."""
        return {t: h for t, h in self.positions.items() if h.quantity > 0}

    @property
    def net_cash(self) -> float:
        return self.deposits - self.withdrawals - self.asset_purchases + self.asset_sales_net


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class ValuationSnapshot:
    """Month-end valuation; produced fresh each run and never mutated."""

    month_key: str
    by_ticker: Mapping[str, float]
    by_macro: Mapping[str, float]
    by_micro: Mapping[str, float]
    total_value: float
    total_invested: float
    price_sources: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "by_ticker", _freeze(self.by_ticker))
        object.__setattr__(self, "by_macro", _freeze(self.by_macro))
        object.__setattr__(self, "by_micro", _freeze(self.by_micro))
        object.__setattr__(self, "price_sources", _freeze(self.price_sources))

    def breakdown(self, dimension: str) -> Mapping[str, float]:
        """Subtotals for ``ticker``, ``macro`` or ``micro``."""
        if dimension == "ticker":
            return self.by_ticker
        if dimension == "macro":
            return self.by_macro
        if dimension == "micro":
            return self.by_micro
        raise ValueError(f"Unknown dimension: {dimension!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month_key,
            "by_ticker": dict(self.by_ticker),
            "by_macro": dict(self.by_macro),
            "by_micro": dict(self.by_micro),
            "total_value": self.total_value,
            "total_invested": self.total_invested,
            "price_sources": dict(self.price_sources),
        }


@dataclass(frozen=True)
class MonthlyReturn:
    month_key: str
    return_pct: float
    value: float
    invested: float
    net_cash_flow: float
    method: str = "twr"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "month": self.month_key,
            "return_pct": self.return_pct,
            "value": self.value,
            "invested": self.invested,
            "net_cash_flow": self.net_cash_flow,
            "method": self.method,
        }


@dataclass
class PerformanceMetrics:
    """
    Risk/return statistics derived from a MonthlyReturn series.

    Sentinels:
    - ``insufficient_data``: fewer returns than needed for ratios; ratios are 0
    - ``sharpe_defined`` False: zero volatility, ``sharpe`` reported as 0
    - ``sortino_unbounded`` True: no negative months, ``sortino`` is +inf
    - ``recovered`` False: the curve never regained its pre-drawdown peak,
      ``recovery_months`` is 0
    """

    cagr_pct: float = 0.0
    cagr_reliable: bool = False
    max_drawdown_pct: float = 0.0
    recovery_months: int = 0
    sharpe: float = 0.0
    sortino: float = 0.0
    volatility_pct: float = 0.0

    total_return_pct: float = 0.0
    twr_total_return_pct: float = 0.0
    twr_annualized_pct: float = 0.0
    recovered: bool = True
    months_elapsed: int = 0
    insufficient_data: bool = True
    sharpe_defined: bool = False
    sortino_unbounded: bool = False
    downside_deviation_pct: float = 0.0
    average_monthly_return_pct: float = 0.0
    best_month: Optional[Dict[str, Any]] = None
    worst_month: Optional[Dict[str, Any]] = None
    positive_months: int = 0
    negative_months: int = 0
    win_rate_pct: float = 0.0
    calmar_ratio: float = 0.0
    risk_free_rate_pct: float = 0.0
    final_value: float = 0.0
    initial_value: float = 0.0
    drawdown: Dict[str, Any] = field(default_factory=dict)

    def preferred_return_pct(self) -> float:
        """CAGR when it spans at least a year, otherwise the simple total return."""
        return self.cagr_pct if self.cagr_reliable else self.total_return_pct

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cagr_pct": self.cagr_pct,
            "cagr_reliable": self.cagr_reliable,
            "total_return_pct": self.total_return_pct,
            "twr_total_return_pct": self.twr_total_return_pct,
            "twr_annualized_pct": self.twr_annualized_pct,
            "max_drawdown_pct": self.max_drawdown_pct,
            "recovery_months": self.recovery_months,
            "recovered": self.recovered,
            "sharpe": self.sharpe,
            "sharpe_defined": self.sharpe_defined,
            "sortino": self.sortino,
            "sortino_unbounded": self.sortino_unbounded,
            "volatility_pct": self.volatility_pct,
            "downside_deviation_pct": self.downside_deviation_pct,
            "calmar_ratio": self.calmar_ratio,
            "months_elapsed": self.months_elapsed,
            "insufficient_data": self.insufficient_data,
            "average_monthly_return_pct": self.average_monthly_return_pct,
            "best_month": self.best_month,
            "worst_month": self.worst_month,
            "positive_months": self.positive_months,
            "negative_months": self.negative_months,
            "win_rate_pct": self.win_rate_pct,
            "risk_free_rate_pct": self.risk_free_rate_pct,
            "initial_value": self.initial_value,
            "final_value": self.final_value,
            "drawdown": dict(self.drawdown),
        }


@dataclass
class CategoryPerformance:
    """Month-by-category TWR matrix; ``None`` cells carry their reason in ``status``."""

    dimension: str
    months: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    cells: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)
    status: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        """Categories as rows, months as columns; NaN where there is no value."""
        frame = pd.DataFrame(
            {m: [self.cells.get(c, {}).get(m) for c in self.categories] for m in self.months},
            index=pd.Index(self.categories, name=self.dimension),
            dtype=float,
        )
        return frame

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "months": list(self.months),
            "categories": list(self.categories),
            "cells": {c: dict(row) for c, row in self.cells.items()},
            "status": {c: dict(row) for c, row in self.status.items()},
        }
