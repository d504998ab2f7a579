"""Performance result object returned by the ledger analysis pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from portfolio_valuation_engine._vendor import make_json_safe
from portfolio_valuation_engine.data_objects import (
    CategoryPerformance,
    MonthlyReturn,
    PerformanceMetrics,
    ValuationSnapshot,
)


@dataclass
class PerformanceResult:
    """
    Ledger performance analysis results.

    Key Data Categories:
    - **Valuation**: one ValuationSnapshot per month (ticker/macro/micro subtotals)
    - **Returns**: time-weighted MonthlyReturn series (cash-flow neutral)
    - **Metrics**: CAGR, drawdown, recovery, Sharpe, Sortino, volatility
    - **Attribution**: month-by-category return matrices per dimension
    - **Liquidity**: cash-flow summary and optional goal projection
    - **Data Quality**: warnings (over-sells, skipped records) and flags

    Usage Patterns:
    1. **Structured Data Access**: read the dataclass fields directly
    2. **Performance Summary**: ``get_summary()`` for headline numbers
    3. **API Serialization**: ``to_api_response()`` for plain JSON-safe data
    4. **Formatted Reporting**: ``to_cli_report()`` for terminal output

    Example:
        ```python
        result = analyze_ledger_performance(transactions, price_series, live_cache)
        result.metrics.cagr_pct                  # 8.4
        result.metrics.preferred_return_pct()    # CAGR, or total return when < 1y
        result.attribution["macro"].to_frame()   # heat-map matrix
        api_data = result.to_api_response()
        ```

    The engine never stamps wall-clock time on a result, so identical inputs
    serialize identically.
    """

    snapshots: List[ValuationSnapshot] = field(default_factory=list)
    monthly_returns: List[MonthlyReturn] = field(default_factory=list)
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    attribution: Dict[str, CategoryPerformance] = field(default_factory=dict)
    cash_flow: Dict[str, Any] = field(default_factory=dict)
    goal_projection: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)
    flags: List[Dict[str, Any]] = field(default_factory=list)
    data_quality: Dict[str, Any] = field(default_factory=dict)
    analysis_period: Dict[str, Any] = field(default_factory=dict)
    portfolio_name: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.snapshots)

    @property
    def latest_snapshot(self) -> Optional[ValuationSnapshot]:
        return self.snapshots[-1] if self.snapshots else None

    def get_summary(self) -> Dict[str, Any]:
        """Get key performance metrics summary."""
        latest = self.latest_snapshot
        return {
            "total_value": latest.total_value if latest else 0.0,
            "total_invested": latest.total_invested if latest else 0.0,
            "total_return_pct": self.metrics.total_return_pct,
            "cagr_pct": self.metrics.cagr_pct,
            "cagr_reliable": self.metrics.cagr_reliable,
            "volatility_pct": self.metrics.volatility_pct,
            "sharpe": self.metrics.sharpe,
            "max_drawdown_pct": self.metrics.max_drawdown_pct,
            "months": self.analysis_period.get("total_months", 0),
        }

    def to_api_response(self) -> Dict[str, Any]:
        """
        Plain, JSON-safe payload for charts, tables and heat maps.

        Structure:
        - analysis_period: start_month, end_month, total_months, years
        - summary: headline numbers (see ``get_summary``)
        - snapshots: list of per-month valuation dicts
        - monthly_returns: list of per-month return dicts
        - metrics: PerformanceMetrics fields; non-finite values become null,
          with ``sortino_unbounded`` marking a +inf Sortino ratio
        - attribution: {dimension: {months, categories, cells, status}}
        - cash_flow, goal_projection, warnings, flags, data_quality
        """
        return make_json_safe(
            {
                "portfolio_name": self.portfolio_name,
                "has_data": self.has_data,
                "analysis_period": self.analysis_period,
                "summary": self.get_summary(),
                "snapshots": [s.to_dict() for s in self.snapshots],
                "monthly_returns": [r.to_dict() for r in self.monthly_returns],
                "metrics": self.metrics.to_dict(),
                "attribution": {dim: cp.to_dict() for dim, cp in self.attribution.items()},
                "cash_flow": {k: v for k, v in self.cash_flow.items() if k != "movements"},
                "goal_projection": self.goal_projection,
                "warnings": list(self.warnings),
                "flags": list(self.flags),
                "data_quality": self.data_quality,
            }
        )

    # ------------------------------------------------------------------
    # CLI formatting
    # ------------------------------------------------------------------

    def to_cli_report(self) -> str:
        """Generate the complete CLI formatted report."""
        sections = [self._format_header()]
        if not self.has_data:
            sections.append("ℹ️  No transactions to analyze.")
            return "\n".join(sections)
        sections.append(self._format_metrics())
        sections.append(self._format_allocation())
        sections.append(self._format_monthly_returns())
        if self.warnings or self.flags:
            sections.append(self._format_warnings())
        return "\n\n".join(sections)

    def _format_header(self) -> str:
        lines = ["📊 Portfolio Performance Analysis", "=" * 50]
        if self.portfolio_name:
            lines.append(f"📁 Ledger: {self.portfolio_name}")
        period = self.analysis_period
        if period.get("start_month") and period.get("end_month"):
            lines.append(
                f"📅 Analysis period: {period['start_month']} to {period['end_month']} "
                f"({period.get('total_months', 0)} months)"
            )
        latest = self.latest_snapshot
        if latest is not None:
            lines.append(f"💰 Current value: {latest.total_value:,.2f}")
            lines.append(f"🏦 Invested capital: {latest.total_invested:,.2f}")
        return "\n".join(lines)

    def _format_metrics(self) -> str:
        m = self.metrics
        lines = ["📈 Returns & Risk", "-" * 50]
        cagr_note = "" if m.cagr_reliable else "  (under 12 months, see total return)"
        lines.append(f"Total return:          {m.total_return_pct:+.2f}%")
        lines.append(f"CAGR:                  {m.cagr_pct:+.2f}%{cagr_note}")
        lines.append(f"Time-weighted return:  {m.twr_total_return_pct:+.2f}%")
        lines.append(f"Volatility (annual):   {m.volatility_pct:.2f}%")
        recovery = f"{m.recovery_months} months" if m.recovered else "not yet recovered"
        lines.append(f"Max drawdown:          {m.max_drawdown_pct:.2f}%  (recovery: {recovery})")
        sharpe = f"{m.sharpe:.3f}" if m.sharpe_defined else "n/a (zero volatility)"
        sortino = "∞ (no losing months)" if m.sortino_unbounded else f"{m.sortino:.3f}"
        lines.append(f"Sharpe ratio:          {sharpe}")
        lines.append(f"Sortino ratio:         {sortino}")
        lines.append(f"Risk-free rate:        {m.risk_free_rate_pct:.2f}%")
        if m.best_month and m.worst_month:
            lines.append(
                f"Best / worst month:    {m.best_month['month']} {m.best_month['return_pct']:+.2f}% / "
                f"{m.worst_month['month']} {m.worst_month['return_pct']:+.2f}%"
            )
            lines.append(f"Win rate:              {m.win_rate_pct:.1f}%")
        if m.insufficient_data:
            lines.append("⚠️  Insufficient data for risk ratios")
        return "\n".join(lines)

    def _format_allocation(self) -> str:
        latest = self.latest_snapshot
        lines = ["🧩 Allocation by macro category", "-" * 50]
        total = latest.total_value if latest else 0.0
        for category, value in sorted(latest.by_macro.items(), key=lambda kv: -kv[1]):
            share = value / total * 100 if total > 0 else 0.0
            lines.append(f"{category:<22} {value:>14,.2f}  {share:5.1f}%")
        if not latest.by_macro:
            lines.append("(no open positions)")
        return "\n".join(lines)

    def _format_monthly_returns(self, max_rows: int = 12) -> str:
        lines = ["🗓️  Monthly returns (time-weighted)", "-" * 50]
        rows = self.monthly_returns[-max_rows:]
        for r in rows:
            marker = "" if r.method == "twr" else "  *raw delta"
            lines.append(f"{r.month_key}  {r.return_pct:+7.2f}%  value {r.value:>14,.2f}{marker}")
        if not rows:
            lines.append("(no defined monthly returns yet)")
        return "\n".join(lines)

    def _format_warnings(self) -> str:
        lines = ["⚠️  Data quality", "-" * 50]
        for flag in self.flags:
            lines.append(f"[{flag.get('severity', 'info')}] {flag.get('message')}")
        for warning in self.warnings:
            lines.append(f"• {warning}")
        return "\n".join(lines)

    def __hash__(self) -> int:
        """Make PerformanceResult hashable for caching."""
        sortino = self.metrics.sortino
        key_data = (
            self.analysis_period.get("start_month"),
            self.analysis_period.get("end_month"),
            round(self.metrics.cagr_pct, 10),
            round(self.metrics.max_drawdown_pct, 10),
            None if math.isinf(sortino) else round(sortino, 10),
        )
        return hash(key_data)
