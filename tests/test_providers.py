import pandas as pd

from portfolio_valuation_engine.providers import (
    HistoricalPriceProvider,
    InMemoryPriceProvider,
    LivePriceCache,
    collect_price_inputs,
    normalize_price_series,
)


def test_normalize_price_series_from_daily_pandas_series():
    series = pd.Series(
        [10.0, 11.0, float("nan"), 12.5],
        index=pd.to_datetime(["2024-01-05", "2024-01-31", "2024-02-15", "2024-03-28"]),
    )
    assert normalize_price_series(series) == {"2024-01": 11.0, "2024-03": 12.5}


def test_in_memory_provider_satisfies_both_protocols():
    provider = InMemoryPriceProvider({"aaa": {"2024-01": 10, "2024-02": 11}}, {"AAA": 12})
    assert isinstance(provider, HistoricalPriceProvider)
    assert isinstance(provider, LivePriceCache)
    assert provider.fetch_monthly_prices("AAA", "2024-02", None) == {"2024-02": 11.0}
    assert provider.get_quote("aaa") == {"price": 12.0}
    assert provider.get_quote("ZZZ") is None


def test_collect_price_inputs_skips_tickers_without_data():
    provider = InMemoryPriceProvider(
        {"AAA": {"2023-12": 9, "2024-01": 10}},
        {"AAA": {"price": 12, "changePercent": 1.2}, "BBB": {"price": "n/a"}},
    )
    prices, live = collect_price_inputs(["AAA", "BBB", "CCC"], "2024-01", "2024-06", provider, provider)
    assert prices == {"AAA": {"2024-01": 10.0}}
    assert live == {"AAA": {"price": 12.0, "changePercent": 1.2}}
