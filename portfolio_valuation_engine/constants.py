"""
Core Constants Module

Centralized definitions for ledger kinds, category labels, price tiers and
attribution dimensions used throughout the engine.
"""

# Transaction Kinds
# =================
# Canonical kinds accepted on a Transaction. Aliases cover ledgers exported
# with Italian or broker-style labels.

VALID_KINDS = {
    'buy',          # asset purchase (or deposit when booked on a cash account)
    'sell',         # asset sale (or withdrawal when booked on a cash account)
    'deposit',      # external cash inflow
    'withdrawal',   # external cash outflow
}

KIND_ALIASES = {
    'purchase': 'buy',
    'acquisto': 'buy',
    'sale': 'sell',
    'vendita': 'sell',
    'deposito': 'deposit',
    'withdraw': 'withdrawal',
    'prelievo': 'withdrawal',
}

# Category Labels
# ===============

CASH_MACRO_CATEGORY = 'Cash'      # macro category that marks a record as cash
DEFAULT_CATEGORY = 'Other'        # label for records without a category tag

# Price Resolution Tiers
# ======================
# Names reported in ValuationSnapshot.price_sources; UNRESOLVED means no usable price.

PRICE_TIER_HISTORICAL = 'historical'
PRICE_TIER_LIVE = 'live'
PRICE_TIER_CARRY_FORWARD = 'carry_forward'
PRICE_TIER_COST_BASIS = 'cost_basis'
PRICE_TIER_UNRESOLVED = 'unresolved'

# Return Methods
# ==============

RETURN_METHOD_TWR = 'twr'              # (value - (prev + flow)) / (prev + flow)
RETURN_METHOD_RAW_DELTA = 'raw_delta'  # (value - prev) / prev, when prev + flow <= 0

# Attribution Dimensions
# ======================

ATTRIBUTION_DIMENSIONS = ('macro', 'micro', 'ticker')

CELL_OK = 'ok'
CELL_NO_POSITION = 'no_position'
CELL_UNDEFINED = 'undefined'

# Numeric tolerance for "no value" checks on float subtotals
EPSILON = 1e-9
