"""Standalone-safe configuration surface for portfolio_valuation_engine.

Values come from environment variables (``.env`` is honoured through the
root ``settings`` module) and may be replaced wholesale by attributes of the
same name on ``settings``. Engine modules read these at call time, so
``configure()`` takes effect for subsequent runs.
"""

from __future__ import annotations

import os
from typing import Any

try:  # pragma: no cover - project-level settings, loads .env first
    import settings as _settings  # type: ignore
except Exception:
    _settings = None


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return default


_DEFAULTS: dict[str, Any] = {
    "ENGINE_DEFAULTS": {
        "risk_free_rate_pct": _env_float("ENGINE_RISK_FREE_RATE_PCT", 2.0),
        # "proceeds" removes qty * sell price on a sell,
        # "average" removes proportional average cost.
        "sell_cost_basis": os.getenv("ENGINE_SELL_COST_BASIS", "proceeds").lower(),
        "months_per_year": 12,
    },
    "DATA_QUALITY_THRESHOLDS": {
        "min_months_for_reliable_cagr": _env_int("ENGINE_MIN_MONTHS_RELIABLE_CAGR", 12),
        "min_returns_for_ratios": 2,
        "goal_projection_max_months": 1200,
    },
    "PERFORMANCE_FLAG_THRESHOLDS": {
        "deep_drawdown_pct": 20.0,
        "high_volatility_pct": 25.0,
        "low_sharpe": 0.3,
        "neutral_band_pct": 0.5,
    },
    "LOG_LEVEL": os.getenv("LOG_LEVEL", "WARNING").upper(),
}


if _settings is not None:
    for key in list(_DEFAULTS.keys()):
        if hasattr(_settings, key):
            _DEFAULTS[key] = getattr(_settings, key)


ENGINE_DEFAULTS = _DEFAULTS["ENGINE_DEFAULTS"]
DATA_QUALITY_THRESHOLDS = _DEFAULTS["DATA_QUALITY_THRESHOLDS"]
PERFORMANCE_FLAG_THRESHOLDS = _DEFAULTS["PERFORMANCE_FLAG_THRESHOLDS"]
LOG_LEVEL = str(_DEFAULTS["LOG_LEVEL"])

_CONFIG_KEYS = frozenset(_DEFAULTS.keys())


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in _CONFIG_KEYS:
            raise KeyError(f"Unknown config key: {key}")
        globals_dict[key] = value
