"""Ledger replay: holdings, invested capital and cash bookkeeping at a cutoff.

Called by:
- ``valuation.build_snapshots`` once per month-end cutoff.
- ``performance_analysis.analyze_ledger_performance`` for the cash-flow summary.

Contract notes:
- Only non-cash trades dated on/before the cutoff touch positions.
- Cash movements feed ``net_cash`` bookkeeping only; they are never priced.
- Over-sells are surfaced as warnings and left negative (not clamped);
  such positions are excluded from ``LedgerReplay.holdings``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from portfolio_valuation_engine import config as engine_config
from portfolio_valuation_engine.constants import EPSILON
from portfolio_valuation_engine.data_objects import (
    Holding,
    LedgerReplay,
    Transaction,
    sort_transactions,
    to_date,
)


logger = logging.getLogger(__name__)

CategoryMap = Dict[str, Tuple[str, str]]


def latest_categories(transactions: Iterable[Transaction]) -> CategoryMap:
    """Map ticker -> (macro, micro) from each ticker's most recent trade."""
    categories: CategoryMap = {}
    for tx in sort_transactions(transactions):
        if tx.is_cash_movement:
            continue
        categories[tx.ticker] = (tx.macro_category, tx.micro_category)
    return categories


def _apply_sell(position: Holding, tx: Transaction, mode: str, replay: LedgerReplay) -> None:
    held = position.quantity
    gross = tx.gross_amount

    if tx.quantity > held + EPSILON:
        message = (
            f"Over-sold position: {tx.ticker} sold {tx.quantity:g} on "
            f"{tx.date.isoformat()} with only {held:g} held"
        )
        logger.warning(message)
        replay.warnings.append(message)

    average_cost = position.cost_basis * min(tx.quantity / held, 1.0) if held > EPSILON else 0.0
    removed = gross if mode == "proceeds" else average_cost

    # Realized P&L is always measured against average cost
    replay.realized_pnl += (gross - tx.commission) - average_cost
    position.cost_basis -= removed
    position.quantity = held - tx.quantity
    if abs(position.quantity) < EPSILON:
        position.quantity = 0.0
        if mode != "proceeds":
            position.cost_basis = 0.0


def replay_ledger(
    transactions: Iterable[Transaction],
    cutoff_date: Any,
    category_map: Optional[CategoryMap] = None,
    *,
    sell_cost_basis: Optional[str] = None,
) -> LedgerReplay:
    """
    Replay the ledger in date order up to ``cutoff_date`` (inclusive).

    Buys add quantity and ``qty*price + commission`` of cost. Sells remove
    quantity and cost according to ``sell_cost_basis``: ``"proceeds"`` (the
    default) removes ``qty*price``, ``"average"`` removes the proportional
    average cost. Commission on a sell reduces realized proceeds and is
    tracked in ``commissions``.

    Args:
        transactions: Validated ledger records in any order.
        cutoff_date: Date-like cutoff; records dated after it are ignored.
        category_map: Optional ticker -> (macro, micro) override so categories
            stay fixed across cutoffs; defaults to the latest tags seen so far.
        sell_cost_basis: Overrides ``ENGINE_DEFAULTS["sell_cost_basis"]``.

    Returns:
        LedgerReplay with every position touched (including flat/over-sold).
    """
    cutoff = to_date(cutoff_date)
    mode = (sell_cost_basis or engine_config.ENGINE_DEFAULTS.get("sell_cost_basis") or "proceeds").lower()
    replay = LedgerReplay(cutoff=cutoff)

    for tx in sort_transactions(transactions):
        if tx.date > cutoff:
            break

        if tx.is_cash_movement:
            if tx.kind in ("deposit", "buy"):
                replay.deposits += tx.gross_amount
            else:
                replay.withdrawals += tx.gross_amount
            continue

        position = replay.positions.get(tx.ticker)
        if position is None:
            position = Holding(ticker=tx.ticker)
            replay.positions[tx.ticker] = position
        position.macro_category = tx.macro_category
        position.micro_category = tx.micro_category

        replay.commissions += tx.commission
        replay.total_invested += tx.invested_flow

        if tx.kind == "buy":
            position.quantity += tx.quantity
            position.cost_basis += tx.gross_amount + tx.commission
            replay.asset_purchases += tx.gross_amount + tx.commission
        else:
            replay.asset_sales_net += tx.gross_amount - tx.commission
            _apply_sell(position, tx, mode, replay)

    if category_map:
        for ticker, position in replay.positions.items():
            if ticker in category_map:
                position.macro_category, position.micro_category = category_map[ticker]

    return replay


def reconstruct_holdings(
    transactions: Iterable[Transaction],
    cutoff_date: Any,
    category_map: Optional[CategoryMap] = None,
) -> Dict[str, Holding]:
    """Positions with positive quantity at ``cutoff_date``, keyed by ticker."""
    return replay_ledger(transactions, cutoff_date, category_map).holdings


def summarize_cash_flows(
    transactions: Iterable[Transaction],
    cutoff: Any = None,
) -> Dict[str, Any]:
    """Liquidity view of the ledger: deposits, withdrawals, trades, cash accounts.

    Available cash = deposits - withdrawals - purchases (incl. commission)
    + sales (net of commission).
    """
    cutoff_date: Optional[date] = to_date(cutoff) if cutoff is not None else None
    accounts: Dict[str, Dict[str, float]] = {}
    movements: List[Dict[str, Any]] = []
    totals = {"deposits": 0.0, "withdrawals": 0.0, "asset_purchases": 0.0, "asset_sales": 0.0}

    for tx in sort_transactions(transactions):
        if cutoff_date is not None and tx.date > cutoff_date:
            break
        if tx.is_cash_movement:
            account = accounts.setdefault(tx.ticker, {"deposits": 0.0, "withdrawals": 0.0, "balance": 0.0})
            amount = tx.gross_amount
            if tx.kind in ("deposit", "buy"):
                totals["deposits"] += amount
                account["deposits"] += amount
                account["balance"] += amount
                movement_type, signed = "deposit", amount
            else:
                totals["withdrawals"] += amount
                account["withdrawals"] += amount
                account["balance"] -= amount
                movement_type, signed = "withdrawal", -amount
        elif tx.kind == "buy":
            signed = -(tx.gross_amount + tx.commission)
            totals["asset_purchases"] -= signed
            movement_type = "purchase"
        else:
            signed = tx.gross_amount - tx.commission
            totals["asset_sales"] += signed
            movement_type = "sale"
        movements.append(
            {"date": tx.date.isoformat(), "type": movement_type, "ticker": tx.ticker, "amount": signed}
        )

    running = 0.0
    for movement in movements:
        running += movement["amount"]
        movement["balance"] = running

    available = (
        totals["deposits"] - totals["withdrawals"] - totals["asset_purchases"] + totals["asset_sales"]
    )
    return {
        **totals,
        "available_cash": available,
        "net_deposits": totals["deposits"] - totals["withdrawals"],
        "accounts": accounts,
        "movements": movements,
    }
