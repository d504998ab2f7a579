#Project-level tuning for the valuation engine lives here.
import os
from pathlib import Path

# Ensure local ".env" is loaded even for direct Python invocations
# (e.g., scripts that import the engine without going through run_valuation.py).
try:
    from dotenv import load_dotenv

    load_dotenv(Path(__file__).resolve().parent / ".env", override=False)
except Exception:
    # Fail open: settings still support explicit process env.
    pass


# Thresholds used by performance_flags when interpreting a result.
PERFORMANCE_FLAG_THRESHOLDS = {
    "deep_drawdown_pct": float(os.getenv("FLAG_DEEP_DRAWDOWN_PCT", "20")),    # max drawdown (%) considered deep
    "high_volatility_pct": float(os.getenv("FLAG_HIGH_VOLATILITY_PCT", "25")),  # annualized volatility (%) considered high
    "low_sharpe": 0.3,          # Sharpe below this (with >= 1y of data) is flagged
    "neutral_band_pct": 0.5,    # +/- band (percentage points) rendered as neutral in heat maps
}
