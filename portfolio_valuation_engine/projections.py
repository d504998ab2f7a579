"""Goal projection: when does the portfolio reach a target value?

Compounds the current value month by month at the monthly equivalent of an
annual return, adding a fixed contribution each month.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional

from portfolio_valuation_engine import config as engine_config


def project_goal_achievement(
    current_value: float,
    target_value: float,
    monthly_contribution: float = 0.0,
    annual_return_pct: float = 0.0,
    current_age: Optional[int] = None,
    *,
    start_year: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Project the months needed to reach ``target_value``.

    Parameters
    ----------
    current_value : float
        Portfolio value today.
    target_value : float
        Goal amount.
    monthly_contribution : float
        Amount added at the end of each month.
    annual_return_pct : float
        Expected annual return in percent; callers pass CAGR when it is
        reliable and the simple total return otherwise.
    current_age : int, optional
        Used to report the investor's age when the goal is reached.
    start_year : int, optional
        Calendar year the projection starts in; enables ``year_at_goal``.

    Returns
    -------
    dict
        ``achieved``, ``reachable``, ``months_to_goal``, ``years_to_goal``,
        ``year_at_goal``, ``age_at_goal``, ``projected_final_value``.
        Unreachable goals (no growth and no contributions, or beyond the
        configured horizon) report ``reachable=False`` with ``None`` timings.
    """
    result: Dict[str, Any] = {
        "achieved": False,
        "reachable": True,
        "months_to_goal": 0,
        "years_to_goal": 0.0,
        "year_at_goal": start_year,
        "age_at_goal": current_age,
        "projected_final_value": current_value,
    }
    if target_value <= current_value:
        result["achieved"] = True
        return result

    unreachable = {
        **result,
        "reachable": False,
        "months_to_goal": None,
        "years_to_goal": None,
        "year_at_goal": None,
        "age_at_goal": None,
    }
    if annual_return_pct <= 0 and monthly_contribution <= 0:
        return unreachable

    monthly_rate = (1 + annual_return_pct / 100.0) ** (1 / 12) - 1 if annual_return_pct > 0 else 0.0
    max_months = engine_config.DATA_QUALITY_THRESHOLDS.get("goal_projection_max_months", 1200)

    value = current_value
    months = 0
    while value < target_value and months < max_months:
        value = value * (1 + monthly_rate) + monthly_contribution
        months += 1

    if value < target_value:
        unreachable["projected_final_value"] = value
        return unreachable

    years = months / 12
    whole_years = math.ceil(years)
    result.update(
        months_to_goal=months,
        years_to_goal=round(years, 1),
        year_at_goal=start_year + whole_years if start_year is not None else None,
        age_at_goal=current_age + whole_years if current_age is not None else None,
        projected_final_value=value,
    )
    return result
