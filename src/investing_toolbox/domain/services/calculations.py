"""Domain service layer providing the Big Five trend calculations.

This module implements:
- Compound annual growth (CAGR) expressed as a percentage
- Return on invested capital (ROIC) with an effective-tax-rate fallback
- Big Five assembly over 1/5/10-year and "max available" windows, plus a
  predictability flag

The implementations never raise for missing or degenerate data. Where a value
cannot be computed (missing operand, non-positive base, empty capital) the
result is ``None``.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from investing_toolbox.domain.models.financials import BigFiveMetrics, NormalizedFinancialStatement

DEFAULT_TAX_RATE = 0.21
MAX_TAX_RATE = 0.5

ROIC_5_YEAR_MIN_VALUES = 3
ROIC_10_YEAR_MIN_VALUES = 5

# Max-year fallback needs at least this many years between oldest and newest.
MAX_YEAR_MIN_SPAN = 6
PREDICTABLE_MIN_YEARS = 5
DECLINE_THRESHOLD = -10.0

# Growth family -> statement attribute.
GROWTH_FAMILIES: Dict[str, str] = {
    "eps": "eps",
    "revenue": "revenue",
    "equity": "total_equity",
    "fcf": "free_cash_flow",
}


def calculate_cagr(start: Optional[float], end: Optional[float], years: float) -> Optional[float]:
    """Compound annual growth rate in percent, or ``None`` when undefined.

    Loss years (non-positive start or end) would flip signs or divide by zero,
    so they yield ``None`` rather than a misleading rate.
    """
    if start is None or end is None:
        return None
    if start <= 0 or end <= 0 or years <= 0:
        return None
    return ((end / start) ** (1.0 / years) - 1.0) * 100.0


def calculate_roic(
    operating_income: Optional[float],
    income_tax_expense: Optional[float],
    income_before_tax: Optional[float],
    total_equity: Optional[float],
    long_term_debt: Optional[float] = None,
    short_term_debt: Optional[float] = None,
) -> Optional[float]:
    """NOPAT over invested capital (equity + debt), in percent."""
    if operating_income is None or total_equity is None:
        return None

    tax_rate = DEFAULT_TAX_RATE
    if income_tax_expense is not None and income_before_tax is not None and income_before_tax > 0:
        effective = income_tax_expense / income_before_tax
        if 0 <= effective <= MAX_TAX_RATE:
            tax_rate = effective

    invested_capital = total_equity + (long_term_debt or 0.0) + (short_term_debt or 0.0)
    if invested_capital <= 0:
        return None
    nopat = operating_income * (1.0 - tax_rate)
    return nopat / invested_capital * 100.0


def statement_roic(stmt: NormalizedFinancialStatement) -> Optional[float]:
    """Provider ROIC when present, otherwise computed from the statement."""
    if stmt.roic is not None:
        return stmt.roic
    return calculate_roic(
        stmt.operating_income,
        stmt.income_tax_expense,
        stmt.income_before_tax,
        stmt.total_equity,
        stmt.long_term_debt,
        stmt.short_term_debt,
    )


class BigFiveCalculator:
    """Compute ROIC and growth trends from a company's annual statements."""

    def __init__(self, roic_fn: Callable[[NormalizedFinancialStatement], Optional[float]] = statement_roic) -> None:
        self._roic_fn = roic_fn

    def calculate(self, statements: Sequence[NormalizedFinancialStatement]) -> BigFiveMetrics:
        ordered = annual_newest_first(statements)
        metrics = BigFiveMetrics(years_of_data=len(ordered))
        if not ordered:
            return metrics

        roic_values = [self._roic_fn(stmt) for stmt in ordered]
        metrics.roic_1_year = roic_values[0]
        metrics.roic_5_year = _windowed_mean(roic_values, 5, ROIC_5_YEAR_MIN_VALUES)
        metrics.roic_10_year = _windowed_mean(roic_values, 10, ROIC_10_YEAR_MIN_VALUES)

        max_years = len(ordered) - 1
        for family, attr in GROWTH_FAMILIES.items():
            series = [getattr(stmt, attr) for stmt in ordered]
            latest = series[0]
            growth_1 = calculate_cagr(_value_at(series, 1), latest, 1)
            growth_5 = calculate_cagr(_value_at(series, 5), latest, 5)
            # Ten data points (nine steps back) are treated as the decade window.
            growth_10 = calculate_cagr(_value_at(series, 9), latest, 10)
            setattr(metrics, f"{family}_growth_1_year", growth_1)
            setattr(metrics, f"{family}_growth_5_year", growth_5)
            setattr(metrics, f"{family}_growth_10_year", growth_10)

            if growth_10 is None and max_years >= MAX_YEAR_MIN_SPAN:
                fallback = calculate_cagr(series[max_years], latest, max_years)
                if fallback is not None:
                    setattr(metrics, f"{family}_growth_max_year", fallback)
                    setattr(metrics, f"{family}_growth_max_year_period", max_years)

        metrics.is_predictable = _is_predictable(metrics)
        return metrics


def annual_newest_first(statements: Sequence[NormalizedFinancialStatement]) -> List[NormalizedFinancialStatement]:
    annual = [stmt for stmt in statements if not stmt.fiscal_quarter]
    return sorted(annual, key=lambda stmt: stmt.fiscal_year, reverse=True)


def _value_at(series: Sequence[Optional[float]], index: int) -> Optional[float]:
    if index < len(series):
        return series[index]
    return None


def _windowed_mean(values: Sequence[Optional[float]], window: int, min_values: int) -> Optional[float]:
    if len(values) < window:
        return None
    present = [v for v in values[:window] if v is not None]
    if len(present) < min_values:
        return None
    return float(np.mean(present))


def _is_predictable(metrics: BigFiveMetrics) -> bool:
    if metrics.years_of_data < PREDICTABLE_MIN_YEARS:
        return False
    five_year = [
        metrics.eps_growth_5_year,
        metrics.revenue_growth_5_year,
        metrics.equity_growth_5_year,
        metrics.fcf_growth_5_year,
    ]
    present = [g for g in five_year if g is not None]
    declining = sum(1 for g in present if g < DECLINE_THRESHOLD)
    return not declining > len(present) / 2
