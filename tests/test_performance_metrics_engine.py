import math

import pandas as pd
import pytest

from portfolio_valuation_engine._vendor import make_json_safe
from portfolio_valuation_engine.data_objects import MonthlyReturn, month_range
from portfolio_valuation_engine.performance_metrics_engine import (
    compute_cagr,
    compute_max_drawdown,
    compute_performance_metrics,
    compute_recovery_time,
)


def build_series(returns_pct, invested=1000.0, start="2023-01"):
    months = month_range(start, "2099-12")[: len(returns_pct)]
    value = invested
    series = []
    for month, pct in zip(months, returns_pct):
        value *= 1 + pct / 100.0
        series.append(
            MonthlyReturn(month_key=month, return_pct=pct, value=value, invested=invested, net_cash_flow=0.0)
        )
    return series


def test_compute_cagr():
    assert compute_cagr(1000, 1210, 24) == pytest.approx(10.0)
    assert compute_cagr(0, 1210, 24) == 0.0
    assert compute_cagr(1000, 1210, 0) == 0.0


def test_scenario_d_eighteen_months():
    # mean 1% a month, population std 3%
    series = build_series([-2.0, 4.0] * 9)
    metrics = compute_performance_metrics(series, risk_free_rate_pct=2.0, total_invested=1000.0)

    assert metrics.cagr_reliable is True
    assert metrics.months_elapsed == 18
    assert metrics.cagr_pct == pytest.approx((1.0192 ** 6 - 1) * 100, rel=1e-6)
    assert abs(metrics.cagr_pct - (1.01 ** 12 - 1) * 100) < 1.0
    assert metrics.volatility_pct == pytest.approx(3.0 * math.sqrt(12))
    assert metrics.sharpe == pytest.approx((12.0 - 2.0) / (3.0 * math.sqrt(12)))
    assert metrics.sharpe_defined is True
    assert metrics.sortino == pytest.approx((12.0 - 2.0) / (2.0 * math.sqrt(12)))
    assert metrics.max_drawdown_pct == pytest.approx(2.0)
    assert metrics.recovered is True
    assert metrics.recovery_months == 1
    assert metrics.insufficient_data is False


def test_empty_series_is_insufficient():
    metrics = compute_performance_metrics([], risk_free_rate_pct=2.0)
    assert metrics.insufficient_data is True
    assert metrics.sharpe == 0.0
    assert metrics.cagr_pct == 0.0


def test_single_return_has_no_ratios():
    metrics = compute_performance_metrics(build_series([5.0]))
    assert metrics.insufficient_data is True
    assert metrics.sharpe == 0.0
    assert metrics.sortino == 0.0
    assert metrics.volatility_pct == 0.0
    assert metrics.cagr_reliable is False
    assert metrics.preferred_return_pct() == pytest.approx(metrics.total_return_pct)


def test_zero_variance_sentinels_stay_json_safe():
    metrics = compute_performance_metrics(build_series([1.0, 1.0, 1.0]), risk_free_rate_pct=2.0)
    assert metrics.sharpe == 0.0
    assert metrics.sharpe_defined is False
    assert math.isinf(metrics.sortino)
    assert metrics.sortino_unbounded is True
    payload = make_json_safe(metrics.to_dict())
    assert payload["sortino"] is None
    assert payload["sortino_unbounded"] is True


def test_unrecovered_drawdown():
    metrics = compute_performance_metrics(build_series([10.0, -50.0, 20.0]))
    assert metrics.max_drawdown_pct == pytest.approx(50.0)
    assert metrics.recovered is False
    assert metrics.recovery_months == 0
    assert metrics.drawdown["peak_month"] == "2023-01"
    assert metrics.drawdown["trough_month"] == "2023-02"


def test_first_month_loss_counts_from_baseline():
    metrics = compute_performance_metrics(build_series([-10.0, 5.0, 10.0]))
    assert metrics.max_drawdown_pct == pytest.approx(10.0)
    assert metrics.recovery_months == 2
    assert metrics.drawdown["peak_month"] == "2022-12"
    assert metrics.drawdown["recovery_month"] == "2023-03"


def test_drawdown_helpers_bounds():
    drawdown = compute_max_drawdown(pd.Series([0.05, -0.99, -0.5, 0.3]))
    assert 0.0 <= drawdown["max_drawdown_pct"] <= 100.0
    assert compute_recovery_time(drawdown["curve"], drawdown) is None
    flat = compute_max_drawdown(pd.Series([0.01, 0.02]))
    assert flat["max_drawdown_pct"] == 0.0
    assert compute_recovery_time(flat["curve"], flat) == 0


def test_best_worst_and_win_rate():
    metrics = compute_performance_metrics(build_series([3.0, -1.0, 2.0, -4.0]))
    assert metrics.best_month == {"month": "2023-01", "return_pct": pytest.approx(3.0)}
    assert metrics.worst_month["month"] == "2023-04"
    assert metrics.positive_months == 2
    assert metrics.negative_months == 2
    assert metrics.win_rate_pct == pytest.approx(50.0)
