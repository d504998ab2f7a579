import math

import pytest

from portfolio_valuation_engine.category_attribution import (
    attribute_performance,
    classify_performance_change,
    group_snapshot_values,
)
from portfolio_valuation_engine.valuation import build_snapshots


MONTHS = ["2024-01", "2024-02", "2024-03", "2024-04"]


@pytest.fixture
def snapshots_and_ledger(two_asset_ledger, two_asset_prices, make_tx):
    ledger = two_asset_ledger + [make_tx("2024-03-20", "sell", "BBB", 5, 210, macro="Bonds", micro="Treasury")]
    return build_snapshots(ledger, two_asset_prices, None, MONTHS), ledger


def test_macro_attribution_neutralizes_new_money(snapshots_and_ledger):
    snapshots, ledger = snapshots_and_ledger
    result = attribute_performance(snapshots, ledger, "macro")

    assert result.months == ["2024-02", "2024-03", "2024-04"]
    assert result.categories == ["Bonds", "Equity"]
    assert result.cells["Equity"]["2024-02"] == pytest.approx(10.0)
    assert result.cells["Equity"]["2024-03"] == pytest.approx(-10.0)
    # bought at the month-end price: no performance
    assert result.cells["Bonds"]["2024-02"] == pytest.approx(0.0)
    assert result.status["Bonds"]["2024-02"] == "ok"


def test_liquidated_category_reports_no_position(snapshots_and_ledger):
    snapshots, ledger = snapshots_and_ledger
    result = attribute_performance(snapshots, ledger, "ticker")
    # sold in March: the raw delta captures the exit, April has nothing held
    assert result.status["BBB"]["2024-03"] == "ok"
    assert result.cells["BBB"]["2024-04"] is None
    assert result.status["BBB"]["2024-04"] == "no_position"


def test_to_frame_shape(snapshots_and_ledger):
    snapshots, ledger = snapshots_and_ledger
    frame = attribute_performance(snapshots, ledger, "micro").to_frame()
    assert list(frame.columns) == ["2024-02", "2024-03", "2024-04"]
    assert set(frame.index) == {"Treasury", "US Large Cap"}
    assert math.isnan(frame.loc["Treasury", "2024-04"])


def test_unknown_dimension_raises(snapshots_and_ledger):
    snapshots, ledger = snapshots_and_ledger
    with pytest.raises(ValueError):
        attribute_performance(snapshots, ledger, "sector")


def test_group_snapshot_values(snapshots_and_ledger):
    snapshots, _ = snapshots_and_ledger
    grouped = group_snapshot_values(snapshots, "macro")
    assert grouped["Equity"]["2024-01"] == pytest.approx(1000)
    assert "2024-01" not in grouped["Bonds"]


@pytest.mark.parametrize(
    "value, expected",
    [(2.0, "positive"), (-0.7, "negative"), (0.3, "neutral"), (None, "neutral")],
)
def test_classify_performance_change(value, expected):
    assert classify_performance_change(value) == expected
