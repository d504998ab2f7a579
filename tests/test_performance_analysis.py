import json

import pandas as pd
import pytest

from portfolio_valuation_engine.performance_analysis import analyze_ledger_performance


def test_scenario_a_live_price_in_last_month(make_tx):
    ledger = [make_tx("2024-01-10", "buy", "AAA", 10, 100)]
    result = analyze_ledger_performance(ledger, {}, {"AAA": {"price": 110.0}}, end_month="2024-02")

    assert [s.month_key for s in result.snapshots] == ["2024-01", "2024-02"]
    assert result.snapshots[1].total_value == pytest.approx(1100)
    assert result.monthly_returns[0].return_pct == pytest.approx(10.0)


def test_scenario_b_second_purchase_is_not_performance(make_tx):
    ledger = [
        make_tx("2024-01-10", "buy", "AAA", 10, 100),
        make_tx("2024-02-10", "buy", "AAA", 10, 100),
    ]
    prices = {"AAA": {"2024-01": 100.0, "2024-02": 100.0}}
    result = analyze_ledger_performance(ledger, prices)

    feb = result.monthly_returns[0]
    assert result.snapshots[1].total_value == pytest.approx(2000)
    assert feb.net_cash_flow == pytest.approx(1000)
    assert feb.return_pct == pytest.approx(0.0)


def test_scenario_c_full_liquidation_uses_raw_delta(make_tx):
    ledger = [
        make_tx("2024-01-10", "buy", "AAA", 10, 100),
        make_tx("2024-03-10", "sell", "AAA", 10, 110),
    ]
    prices = {"AAA": {"2024-01": 100.0, "2024-02": 110.0, "2024-03": 110.0}}
    result = analyze_ledger_performance(ledger, prices)

    march = result.monthly_returns[-1]
    assert march.month_key == "2024-03"
    assert march.method == "raw_delta"
    assert march.return_pct == pytest.approx(-100.0)
    assert result.data_quality["raw_delta_months"] == 1


def test_deposits_do_not_move_returns(make_tx):
    ledger = [
        make_tx("2024-01-10", "buy", "AAA", 10, 100),
        make_tx("2024-02-03", "deposit", "BROKER", 10_000, 1, macro="Cash", micro="Cash"),
    ]
    prices = {"AAA": {"2024-01": 100.0, "2024-02": 100.0}}
    result = analyze_ledger_performance(ledger, prices)
    assert result.monthly_returns[0].return_pct == pytest.approx(0.0)
    assert result.cash_flow["deposits"] == pytest.approx(10_000)


def test_full_pipeline(two_asset_ledger, two_asset_prices):
    result = analyze_ledger_performance(
        two_asset_ledger,
        two_asset_prices,
        None,
        end_month="2024-03",
        risk_free_rate_pct=2.0,
        goal={"target_amount": 50_000, "monthly_contribution": 500, "current_age": 40},
    )
    assert result.has_data
    assert result.analysis_period == {
        "start_month": "2024-01",
        "end_month": "2024-03",
        "total_months": 3,
        "years": 0.25,
    }
    assert set(result.attribution) == {"macro", "micro", "ticker"}
    assert result.metrics.months_elapsed == 2
    assert result.metrics.cagr_reliable is False
    assert result.goal_projection["reachable"] is True
    assert result.goal_projection["year_at_goal"] > 2024
    assert "cagr_unreliable" in {f["type"] for f in result.flags}
    assert "Portfolio Performance Analysis" in result.to_cli_report()


def test_monthly_axis_is_strictly_increasing(two_asset_ledger, two_asset_prices):
    result = analyze_ledger_performance(two_asset_ledger, two_asset_prices, end_month="2024-06")
    keys = [s.month_key for s in result.snapshots]
    assert keys == sorted(set(keys))
    assert len(keys) == 6


def test_results_are_idempotent(two_asset_ledger, two_asset_prices):
    first = analyze_ledger_performance(two_asset_ledger, two_asset_prices, {"BBB": 215}, end_month="2024-04")
    second = analyze_ledger_performance(two_asset_ledger, two_asset_prices, {"BBB": 215}, end_month="2024-04")
    assert json.dumps(first.to_api_response(), sort_keys=True) == json.dumps(
        second.to_api_response(), sort_keys=True
    )


def test_empty_ledger_returns_empty_result():
    result = analyze_ledger_performance([])
    assert not result.has_data
    assert result.snapshots == []
    assert result.metrics.insufficient_data is True
    assert "No transactions" in result.to_cli_report()
    assert result.to_api_response()["has_data"] is False


def test_malformed_and_oversold_records_surface_as_warnings(make_tx):
    records = [
        {"date": "2024-01-10", "kind": "buy", "ticker": "AAA", "quantity": 5, "price": 100},
        {"date": "2024-01-11", "kind": "buy", "ticker": "AAA", "quantity": "many", "price": 100},
        {"date": "2024-02-11", "kind": "sell", "ticker": "AAA", "quantity": 7, "price": 100},
    ]
    result = analyze_ledger_performance(records, {"AAA": {"2024-01": 100, "2024-02": 100}})
    assert result.data_quality["skipped_records"] == 1
    assert result.data_quality["oversold_count"] == 1
    assert {"skipped_records", "oversold_positions"} <= {f["type"] for f in result.flags}


def test_api_response_is_json_serializable(two_asset_ledger, two_asset_prices):
    payload = analyze_ledger_performance(two_asset_ledger, two_asset_prices).to_api_response()
    text = json.dumps(payload, allow_nan=False)
    assert "generated_at" not in text
    assert payload["summary"]["total_value"] == pytest.approx(2100)


def test_parsed_dataframe_with_missing_date_is_analyzed(tmp_path):
    path = tmp_path / "ledger.csv"
    path.write_text(
        "date,kind,ticker,quantity,price\n"
        "2024-01-05,buy,AAA,1,100\n"
        ",buy,AAA,2,100\n"
    )
    frame = pd.read_csv(path, parse_dates=["date"])
    result = analyze_ledger_performance(frame, {"AAA": {"2024-01": 100}})
    assert result.has_data
    assert result.data_quality["skipped_records"] == 1
    assert result.snapshots[-1].total_value == pytest.approx(100)
