import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from portfolio_valuation_engine.data_objects import Transaction  # noqa: E402


def tx(date, kind, ticker, quantity, price, commission=0.0, macro="Equity", micro="US Large Cap", **extra):
    return Transaction(
        date=date,
        kind=kind,
        ticker=ticker,
        quantity=quantity,
        price=price,
        commission=commission,
        macro_category=macro,
        micro_category=micro,
        **extra,
    )


@pytest.fixture
def two_asset_ledger():
    """Equity bought in January, a bond added in February, a cash deposit up front."""
    return [
        tx("2024-01-02", "deposit", "BROKER", 5000, 1, macro="Cash", micro="Cash"),
        tx("2024-01-15", "buy", "AAA", 10, 100),
        tx("2024-02-10", "buy", "BBB", 5, 200, macro="Bonds", micro="Treasury"),
    ]


@pytest.fixture
def two_asset_prices():
    return {
        "AAA": {"2024-01": 100.0, "2024-02": 110.0, "2024-03": 99.0},
        "BBB": {"2024-02": 200.0, "2024-03": 210.0},
    }


@pytest.fixture
def make_tx():
    return tx
