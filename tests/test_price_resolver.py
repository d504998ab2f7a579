import math

import pytest

from portfolio_valuation_engine.price_resolver import resolve_price, resolve_price_with_source


HISTORY = {"AAA": {"2024-01": 100.0, "2024-03": 120.0, "2024-04": 0.0}}


def test_exact_historical_price_wins():
    assert resolve_price_with_source("AAA", "2024-03", HISTORY, {"AAA": {"price": 999}}, 50.0) == (
        120.0,
        "historical",
    )


def test_live_quote_used_without_historical_price():
    price, tier = resolve_price_with_source("AAA", "2024-05", HISTORY, {"AAA": {"price": 130.0}}, 50.0)
    assert (price, tier) == (130.0, "live")


def test_live_quote_accepts_bare_number():
    assert resolve_price("BBB", "2024-05", {}, {"BBB": 42}, None) == 42.0


def test_live_quote_ignored_before_live_as_of():
    price, tier = resolve_price_with_source(
        "AAA", "2024-02", HISTORY, {"AAA": {"price": 130.0}}, 50.0, live_as_of="2024-05"
    )
    assert (price, tier) == (100.0, "carry_forward")


def test_non_positive_historical_price_falls_through():
    # 2024-04 is stored as 0, so the March price carries forward
    price, tier = resolve_price_with_source("AAA", "2024-04", HISTORY, None, 50.0)
    assert (price, tier) == (120.0, "carry_forward")


def test_cost_basis_is_last_resort():
    price, tier = resolve_price_with_source("CCC", "2024-01", HISTORY, {"CCC": {"price": float("nan")}}, 75.5)
    assert (price, tier) == (75.5, "cost_basis")


@pytest.mark.parametrize("cost_basis", [None, float("nan"), -1.0])
def test_unresolved_price_is_zero_never_nan(cost_basis):
    price, tier = resolve_price_with_source("ZZZ", "2024-01", None, None, cost_basis)
    assert price == 0.0
    assert tier == "unresolved"
    assert math.isfinite(price)


def test_carry_forward_ignores_key_order_and_unusable_prices():
    history = {"AAA": {"2024-03": 120, "2023-11": 90, "2024-01": None, "2023-12": "n/a"}}
    assert resolve_price_with_source("AAA", "2024-02", history, None, 50.0) == (90.0, "carry_forward")
    assert resolve_price_with_source("AAA", "2024-05", history, None, 50.0) == (120.0, "carry_forward")
    assert resolve_price_with_source("AAA", "2023-10", history, None, 50.0) == (50.0, "cost_basis")
