import pytest

from portfolio_valuation_engine.valuation import (
    build_snapshots,
    build_snapshots_with_warnings,
    observation_months,
)


def test_observation_months_are_continuous(make_tx):
    ledger = [
        make_tx("2023-11-03", "buy", "AAA", 1, 10),
        make_tx("2024-02-03", "buy", "AAA", 1, 10),
    ]
    assert observation_months(ledger) == ["2023-11", "2023-12", "2024-01", "2024-02"]
    assert observation_months(ledger, end_month="2024-04")[-1] == "2024-04"
    assert observation_months([]) == []


def test_snapshots_aggregate_by_category(two_asset_ledger, two_asset_prices):
    months = observation_months(two_asset_ledger, end_month="2024-03")
    snapshots = build_snapshots(two_asset_ledger, two_asset_prices, None, months)

    assert [s.month_key for s in snapshots] == ["2024-01", "2024-02", "2024-03"]
    jan, feb, mar = snapshots
    assert jan.total_value == pytest.approx(1000)
    assert jan.total_invested == pytest.approx(1000)
    assert dict(feb.by_ticker) == {"AAA": pytest.approx(1100), "BBB": pytest.approx(1000)}
    assert dict(feb.by_macro) == {"Equity": pytest.approx(1100), "Bonds": pytest.approx(1000)}
    assert feb.by_micro["Treasury"] == pytest.approx(1000)
    assert mar.total_value == pytest.approx(990 + 1050)
    # cash movements are never valued
    assert "BROKER" not in mar.by_ticker
    assert sum(mar.by_macro.values()) == pytest.approx(mar.total_value)


def test_empty_months_still_get_snapshots(make_tx):
    ledger = [
        make_tx("2024-01-02", "deposit", "BROKER", 100, 1, macro="Cash"),
        make_tx("2024-03-02", "buy", "AAA", 1, 50),
    ]
    snapshots = build_snapshots(ledger, {}, {}, observation_months(ledger))
    assert [s.total_value for s in snapshots] == [0.0, 0.0, pytest.approx(50.0)]
    assert dict(snapshots[2].price_sources) == {"AAA": "cost_basis"}


def test_live_quote_applies_only_to_last_month(make_tx):
    ledger = [make_tx("2024-01-10", "buy", "AAA", 10, 100)]
    snapshots = build_snapshots(ledger, {}, {"AAA": {"price": 110}}, ["2024-01", "2024-02"])
    assert snapshots[0].total_value == pytest.approx(1000)
    assert snapshots[0].price_sources["AAA"] == "cost_basis"
    assert snapshots[1].total_value == pytest.approx(1100)
    assert snapshots[1].price_sources["AAA"] == "live"


def test_categories_fixed_from_latest_tags(make_tx):
    ledger = [
        make_tx("2024-01-10", "buy", "AAA", 1, 100, macro="Equity", micro="Growth"),
        make_tx("2024-02-10", "buy", "AAA", 1, 100, macro="Equity", micro="Value"),
    ]
    snapshots = build_snapshots(ledger, {"AAA": {"2024-01": 100, "2024-02": 100}}, None, ["2024-01", "2024-02"])
    assert dict(snapshots[0].by_micro) == {"Value": pytest.approx(100)}


def test_oversell_warnings_are_deduplicated(make_tx):
    ledger = [
        make_tx("2024-01-10", "buy", "AAA", 1, 100),
        make_tx("2024-01-20", "sell", "AAA", 2, 100),
    ]
    snapshots, warnings = build_snapshots_with_warnings(ledger, {}, None, ["2024-01", "2024-02", "2024-03"])
    assert len(snapshots) == 3
    assert len(warnings) == 1
    assert all(s.total_value == 0.0 for s in snapshots)


def test_snapshots_are_idempotent(two_asset_ledger, two_asset_prices):
    months = ["2024-01", "2024-02", "2024-03"]
    first = build_snapshots(two_asset_ledger, two_asset_prices, {"AAA": {"price": 101}}, months)
    second = build_snapshots(two_asset_ledger, two_asset_prices, {"AAA": {"price": 101}}, months)
    assert [s.to_dict() for s in first] == [s.to_dict() for s in second]


def test_price_maps_match_tickers_case_insensitively(make_tx):
    ledger = [make_tx("2024-01-10", "buy", "bitcoin", 1, 100, macro="Crypto", micro="Coin")]
    assert ledger[0].ticker == "BITCOIN"
    snapshots = build_snapshots(ledger, {"bitcoin": {"2024-02": 150}}, None, ["2024-01", "2024-02"])
    assert snapshots[1].total_value == pytest.approx(150)
    assert snapshots[1].price_sources["BITCOIN"] == "historical"

    live_only = build_snapshots(ledger, {}, {"Bitcoin": {"price": 175}}, ["2024-01", "2024-02"])
    assert live_only[1].total_value == pytest.approx(175)
    assert live_only[1].price_sources["BITCOIN"] == "live"
