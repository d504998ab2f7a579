"""YAML ledger loader used by the CLI runner."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from portfolio_valuation_engine._logging import log_errors, log_operation, log_timing
from portfolio_valuation_engine.data_objects import coerce_transactions, month_key
from portfolio_valuation_engine.providers import InMemoryPriceProvider, collect_price_inputs


_PROJECT_ROOT = Path(__file__).resolve().parent.parent


@log_errors("high")
@log_operation("ledger_loading")
@log_timing(0.5)
def load_ledger_config(filepath: str = "ledger.yaml", end_month: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML ledger and return a dict with parsed + normalised fields.
    No printing, no side effects.

    ``end_month`` overrides the file's ``end_month`` key.

    Relative paths that do not exist from the working directory are retried
    from the project root. ``FileNotFoundError`` and ``yaml.YAMLError``
    propagate to the caller.

    Returns:
        Dict with ``transactions`` (validated ``Transaction`` list),
        ``price_series``, ``live_cache``, ``risk_free_rate_pct``,
        ``end_month``, ``goal``, ``name`` and ``warnings`` (skipped records).
    """
    resolved_path = Path(filepath)
    if not resolved_path.is_absolute() and not resolved_path.exists():
        candidate = _PROJECT_ROOT / resolved_path
        if candidate.exists():
            resolved_path = candidate

    with open(resolved_path, "r") as f:
        cfg_raw = yaml.safe_load(f) or {}
    if not isinstance(cfg_raw, dict):
        raise ValueError(f"{resolved_path}: top-level YAML must be a mapping")

    transactions, warnings = coerce_transactions(cfg_raw.get("transactions") or [])

    provider = InMemoryPriceProvider(cfg_raw.get("historical_prices"), cfg_raw.get("live_prices"))
    tickers = {tx.ticker for tx in transactions if not tx.is_cash_movement}
    end_month = end_month or cfg_raw.get("end_month")
    if end_month is not None:
        end_month = month_key(str(end_month))

    price_series: Dict[str, Any] = {}
    live_cache: Dict[str, Any] = {}
    if transactions:
        # Open start: prices before the first trade still feed carry-forward
        end = end_month or max(tx.month_key for tx in transactions)
        price_series, live_cache = collect_price_inputs(tickers, None, end, provider, provider)

    risk_free = cfg_raw.get("risk_free_rate_pct")
    return {
        "name": cfg_raw.get("name") or resolved_path.stem,
        "transactions": transactions,
        "price_series": price_series,
        "live_cache": live_cache,
        "risk_free_rate_pct": float(risk_free) if risk_free is not None else None,
        "end_month": end_month,
        "goal": cfg_raw.get("goal"),
        "warnings": warnings,
    }
