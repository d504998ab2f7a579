#!/usr/bin/env python3
# coding: utf-8

# File: run_valuation.py

import argparse
import json
import logging
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv

load_dotenv()

from portfolio_valuation_engine import config as engine_config
from portfolio_valuation_engine._logging import log_errors, log_operation
from portfolio_valuation_engine.ledger_config import load_ledger_config
from portfolio_valuation_engine.performance_analysis import analyze_ledger_performance
from portfolio_valuation_engine.performance_flags import generate_performance_flags
from portfolio_valuation_engine.results import PerformanceResult

"""
Ledger Valuation CLI & API Interface Module

DUAL-MODE wrapper around ``analyze_ledger_performance``:

    run_ledger_performance(filepath, *, return_data: bool = False)

CLI Mode (default, return_data=False):
    - Prints the formatted report (or JSON with ``--json``) to stdout
    - Example: python run_valuation.py --ledger ledger.yaml

API Mode (return_data=True):
    - Returns the ``PerformanceResult`` (or an error dict)
    - Example: result = run_ledger_performance("ledger.yaml", return_data=True)

Both modes share the same analysis and formatting code paths.
"""


@log_errors("medium")
@log_operation("run_ledger_performance")
def run_ledger_performance(
    filepath: str,
    *,
    return_data: bool = False,
    risk_free_rate_pct: Optional[float] = None,
    end_month: Optional[str] = None,
    as_json: bool = False,
) -> Union[None, PerformanceResult, Dict[str, Any]]:
    """
    Value a YAML ledger month by month and report its performance.

    Parameters
    ----------
    filepath : str
        Path to the ledger YAML file.
    return_data : bool, optional
        If True, return the PerformanceResult. If False, print the report.
    risk_free_rate_pct : float, optional
        Overrides the file's ``risk_free_rate_pct`` and the config default.
    end_month : str, optional
        Overrides the file's ``end_month`` (``YYYY-MM``).
    as_json : bool, optional
        In CLI mode, print ``to_api_response()`` as JSON instead of the report.

    Returns
    -------
    PerformanceResult, dict or None
        PerformanceResult in data mode; ``{"error": ...}`` when the file is
        missing or not valid YAML; None in CLI mode.
    """
    try:
        ledger = load_ledger_config(filepath, end_month=end_month)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        error = {"error": f"{type(e).__name__}: {e}", "filepath": filepath}
        if return_data:
            return error
        print(f"❌ Ledger loading failed: {error['error']}")
        return None

    result = analyze_ledger_performance(
        ledger["transactions"],
        ledger["price_series"],
        ledger["live_cache"],
        end_month=ledger["end_month"],
        risk_free_rate_pct=risk_free_rate_pct if risk_free_rate_pct is not None else ledger["risk_free_rate_pct"],
        goal=ledger["goal"],
        portfolio_name=ledger["name"],
    )
    # Records skipped while loading never reach the engine
    if ledger["warnings"]:
        result.warnings = ledger["warnings"] + [w for w in result.warnings if w not in ledger["warnings"]]
        result.data_quality["skipped_records"] = result.data_quality.get("skipped_records", 0) + len(ledger["warnings"])
        result.flags = generate_performance_flags(
            {"metrics": result.metrics.to_dict(), "data_quality": result.data_quality}
        )

    if return_data:
        return result
    if as_json:
        print(json.dumps(result.to_api_response(), indent=2, sort_keys=True))
    else:
        print(result.to_cli_report())
    return None


def main() -> None:
    parser = argparse.ArgumentParser(description="Month-by-month valuation and performance for a transaction ledger")
    parser.add_argument("--ledger", type=str, help="Path to YAML ledger file")
    parser.add_argument("--risk-free", type=float, default=None, help="Annual risk-free rate in percent")
    parser.add_argument("--end-month", type=str, default=None, help="Last month to value (YYYY-MM)")
    parser.add_argument("--json", action="store_true", help="Print the API payload as JSON")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, engine_config.LOG_LEVEL, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.ledger:
        run_ledger_performance(
            args.ledger,
            risk_free_rate_pct=args.risk_free,
            end_month=args.end_month,
            as_json=args.json,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
