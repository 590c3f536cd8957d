from __future__ import annotations

import pytest

from investing_toolbox.domain.models.financials import NormalizedFinancialStatement
from investing_toolbox.domain.services.calculations import (
    BigFiveCalculator,
    calculate_cagr,
    calculate_roic,
)


def _mk_history(count, growth=0.10, latest_year=2023, **overrides):
    """``count`` annual statements compounding at ``growth``, oldest = index 0."""
    statements = []
    for i in range(count):
        factor = (1 + growth) ** i
        fields = {
            "eps": 1.0 * factor,
            "revenue": 1000.0 * factor,
            "total_equity": 500.0 * factor,
            "free_cash_flow": 100.0 * factor,
            "roic": 12.0,
        }
        fields.update(overrides)
        statements.append(NormalizedFinancialStatement(fiscal_year=latest_year - count + 1 + i, **fields))
    return statements


def test_cagr_basic_and_degenerate_inputs():
    assert calculate_cagr(100, 200, 10) == pytest.approx(7.177, abs=1e-3)
    assert calculate_cagr(100, 110, 1) == pytest.approx(10.0)
    assert calculate_cagr(0, 200, 5) is None
    assert calculate_cagr(-100, 200, 5) is None
    assert calculate_cagr(100, -5, 5) is None
    assert calculate_cagr(None, 200, 5) is None
    assert calculate_cagr(100, 200, 0) is None


def test_roic_uses_effective_tax_rate():
    roic = calculate_roic(200, 42, 200, 800, 200)
    assert roic == pytest.approx(15.8)


def test_roic_falls_back_to_default_tax_rate():
    # Effective rate of 60% is implausible; 21% is used instead.
    assert calculate_roic(100, 60, 100, 1000) == pytest.approx(7.9)
    # Negative pre-tax income cannot produce a rate either.
    assert calculate_roic(100, 10, -50, 1000) == pytest.approx(7.9)


def test_roic_none_without_positive_invested_capital():
    assert calculate_roic(100, 20, 100, -50, 10) is None
    assert calculate_roic(None, 20, 100, 1000) is None
    assert calculate_roic(100, 20, 100, None) is None


def test_full_decade_growth_windows():
    metrics = BigFiveCalculator().calculate(_mk_history(10))

    assert metrics.years_of_data == 10
    assert metrics.eps_growth_1_year == pytest.approx(10.0)
    assert metrics.revenue_growth_5_year == pytest.approx(10.0)
    # Nine compounding steps spread over a ten-year window.
    assert metrics.equity_growth_10_year == pytest.approx(((1.1 ** 9) ** 0.1 - 1) * 100)
    assert metrics.fcf_growth_max_year is None
    assert metrics.fcf_growth_max_year_period == 0
    assert metrics.roic_1_year == 12.0
    assert metrics.roic_5_year == pytest.approx(12.0)
    assert metrics.roic_10_year == pytest.approx(12.0)
    assert metrics.is_predictable is True


def test_statement_order_does_not_matter():
    history = _mk_history(6)
    forward = BigFiveCalculator().calculate(history)
    backward = BigFiveCalculator().calculate(list(reversed(history)))
    assert forward == backward


def test_quarterly_statements_are_ignored():
    history = _mk_history(3)
    history.append(NormalizedFinancialStatement(fiscal_year=2024, fiscal_quarter=1, eps=99.0))
    metrics = BigFiveCalculator().calculate(history)
    assert metrics.years_of_data == 3
    assert metrics.eps_growth_1_year == pytest.approx(10.0)


def test_max_year_fallback_when_decade_missing():
    metrics = BigFiveCalculator().calculate(_mk_history(8))
    assert metrics.eps_growth_10_year is None
    assert metrics.eps_growth_max_year == pytest.approx(10.0)
    assert metrics.eps_growth_max_year_period == 7


def test_no_max_year_fallback_for_short_history():
    metrics = BigFiveCalculator().calculate(_mk_history(6))
    assert metrics.revenue_growth_5_year == pytest.approx(10.0)
    assert metrics.revenue_growth_max_year is None
    assert metrics.revenue_growth_max_year_period == 0


def test_max_year_period_zero_when_endpoint_negative():
    history = _mk_history(8)
    history[0].free_cash_flow = -50.0  # oldest year
    metrics = BigFiveCalculator().calculate(history)
    assert metrics.fcf_growth_max_year is None
    assert metrics.fcf_growth_max_year_period == 0
    assert metrics.eps_growth_max_year_period == 7


def test_roic_windows_need_full_length_and_enough_values():
    history = _mk_history(5)
    for stmt in history[:3]:
        stmt.roic = None
    metrics = BigFiveCalculator().calculate(history)
    # Only two non-null values in the five-year window.
    assert metrics.roic_5_year is None
    assert metrics.roic_10_year is None
    assert metrics.roic_1_year == 12.0


def test_roic_computed_when_provider_value_absent():
    stmt = NormalizedFinancialStatement(
        fiscal_year=2023,
        operating_income=200.0,
        income_tax_expense=42.0,
        income_before_tax=200.0,
        total_equity=800.0,
        long_term_debt=200.0,
    )
    metrics = BigFiveCalculator().calculate([stmt])
    assert metrics.roic_1_year == pytest.approx(15.8)


def test_predictability_needs_five_years():
    assert BigFiveCalculator().calculate(_mk_history(4)).is_predictable is False


def test_unpredictable_when_most_families_decline():
    # Everything shrinks 20% a year except free cash flow.
    history = _mk_history(6, growth=-0.2, free_cash_flow=100.0)
    metrics = BigFiveCalculator().calculate(history)
    assert metrics.eps_growth_5_year < -10
    assert metrics.is_predictable is False


def test_predictable_when_half_or_fewer_decline():
    history = _mk_history(6, growth=-0.2, free_cash_flow=100.0)
    for i, stmt in enumerate(history):
        stmt.revenue = 1000.0 * 1.1 ** i
    metrics = BigFiveCalculator().calculate(history)
    # eps and equity decline, revenue grows, fcf flat: 2 of 4.
    assert metrics.is_predictable is True


def test_empty_history():
    metrics = BigFiveCalculator().calculate([])
    assert metrics.years_of_data == 0
    assert metrics.roic_1_year is None
    assert metrics.is_predictable is False


def test_roic_counts_both_debt_legs():
    assert calculate_roic(100e6, 21e6, 100e6, 400e6, 80e6, 20e6) == pytest.approx(15.8)
