"""Public API for portfolio_valuation_engine."""

from portfolio_valuation_engine.category_attribution import (
    attribute_performance,
    classify_performance_change,
    group_snapshot_values,
)
from portfolio_valuation_engine.data_objects import (
    CategoryPerformance,
    Holding,
    LedgerReplay,
    MonthlyReturn,
    PerformanceMetrics,
    Transaction,
    ValuationSnapshot,
    coerce_transactions,
)
from portfolio_valuation_engine.holdings import (
    latest_categories,
    reconstruct_holdings,
    replay_ledger,
    summarize_cash_flows,
)
from portfolio_valuation_engine.ledger_config import load_ledger_config
from portfolio_valuation_engine.performance_analysis import analyze_ledger_performance
from portfolio_valuation_engine.performance_flags import generate_performance_flags
from portfolio_valuation_engine.performance_metrics_engine import compute_performance_metrics
from portfolio_valuation_engine.price_resolver import resolve_price, resolve_price_with_source
from portfolio_valuation_engine.projections import project_goal_achievement
from portfolio_valuation_engine.providers import (
    HistoricalPriceProvider,
    InMemoryPriceProvider,
    LivePriceCache,
    collect_price_inputs,
)
from portfolio_valuation_engine.results import PerformanceResult
from portfolio_valuation_engine.returns import compute_monthly_returns
from portfolio_valuation_engine.valuation import build_snapshots, observation_months

__all__ = [
    "Transaction",
    "Holding",
    "LedgerReplay",
    "ValuationSnapshot",
    "MonthlyReturn",
    "PerformanceMetrics",
    "CategoryPerformance",
    "PerformanceResult",
    "coerce_transactions",
    "resolve_price",
    "resolve_price_with_source",
    "reconstruct_holdings",
    "replay_ledger",
    "latest_categories",
    "summarize_cash_flows",
    "observation_months",
    "build_snapshots",
    "compute_monthly_returns",
    "compute_performance_metrics",
    "attribute_performance",
    "group_snapshot_values",
    "classify_performance_change",
    "analyze_ledger_performance",
    "project_goal_achievement",
    "generate_performance_flags",
    "HistoricalPriceProvider",
    "LivePriceCache",
    "InMemoryPriceProvider",
    "collect_price_inputs",
    "load_ledger_config",
]
