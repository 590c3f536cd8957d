"""Sticker-price valuation, payback simulation and the growth/PE heuristics.

Rates passed to ``calculate_sticker_price`` and ``calculate_payback_time`` are
decimals (0.15 for 15%). ``ValuationInput`` and the estimators work in
percentages, matching how assumptions are entered and how Big Five growth
rates are stored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np

from investing_toolbox.domain.models.financials import (
    BigFiveMetrics,
    CompanyValuation,
    NormalizedFinancialStatement,
    Recommendation,
    ValuationInput,
    ValuationResult,
)
from investing_toolbox.domain.services.calculations import annual_newest_first
from investing_toolbox.utils.numbers import round_money

logger = logging.getLogger(__name__)

MARGIN_OF_SAFETY = 0.5
DEFAULT_MIN_RETURN = 0.15
DEFAULT_YEARS = 10

# Iteration cap of the payback simulation; also returned when EPS <= 0.
MAX_PAYBACK_YEARS = 50

DEFAULT_GROWTH_RATE = 10.0
MIN_GROWTH_RATE = 0.0
MAX_GROWTH_RATE = 30.0
MIN_FUTURE_PE = 10.0
MAX_FUTURE_PE = 50.0

TEN_CAP_MULTIPLE = 10


@dataclass(frozen=True)
class StickerPrice:
    sticker_price: float
    mos_price: float


def calculate_sticker_price(
    current_eps: float,
    growth_rate: float,
    future_pe: float,
    min_return_rate: float = DEFAULT_MIN_RETURN,
    years: int = DEFAULT_YEARS,
) -> StickerPrice:
    """Project EPS ``years`` ahead, price it at ``future_pe`` and discount back."""
    future_eps = current_eps * (1 + growth_rate) ** years
    future_price = future_eps * future_pe
    sticker = future_price / (1 + min_return_rate) ** years
    return StickerPrice(
        sticker_price=round_money(sticker),
        mos_price=round_money(sticker * MARGIN_OF_SAFETY),
    )


def calculate_valuation(assumptions: ValuationInput) -> ValuationResult:
    """Full sticker-price breakdown from percentage assumptions."""
    growth = assumptions.growth_rate / 100
    discount = assumptions.min_return_rate / 100
    years = assumptions.years

    future_eps = assumptions.current_eps * (1 + growth) ** years
    future_price = future_eps * assumptions.future_pe
    sticker = future_price / (1 + discount) ** years
    return ValuationResult(
        future_eps=round_money(future_eps),
        future_price=round_money(future_price),
        sticker_price=round_money(sticker),
        mos_price=round_money(sticker * MARGIN_OF_SAFETY),
        inputs=assumptions,
    )


def calculate_payback_time(price: float, current_eps: float, growth_rate: float) -> int:
    """Years of growing earnings needed to add up to ``price``.

    Non-positive EPS can never pay the price back and returns the iteration
    cap; a free (non-positive) price pays back immediately.
    """
    if current_eps <= 0:
        return MAX_PAYBACK_YEARS
    if price <= 0:
        return 0

    cumulative = 0.0
    eps = current_eps
    year = 0
    while cumulative < price and year < MAX_PAYBACK_YEARS:
        year += 1
        eps *= 1 + growth_rate
        cumulative += eps
    return year


def estimate_growth_rate(candidates: Iterable[Optional[float]]) -> float:
    """Median of the usable historical growth rates, clamped to [0, 30] percent."""
    usable = sorted(float(c) for c in candidates if c is not None and np.isfinite(c))
    if not usable:
        return DEFAULT_GROWTH_RATE
    # Upper-middle element for even counts.
    median = usable[len(usable) // 2]
    return min(max(median, MIN_GROWTH_RATE), MAX_GROWTH_RATE)


def estimate_future_pe(growth_rate: float) -> float:
    """Rule-of-thumb PE: twice the growth percentage, kept within [10, 50]."""
    return min(max(growth_rate * 2, MIN_FUTURE_PE), MAX_FUTURE_PE)


def get_recommendation(current_price: float, mos_price: float, sticker_price: float) -> Recommendation:
    if current_price <= mos_price:
        return Recommendation.BUY
    if current_price <= sticker_price:
        return Recommendation.HOLD
    return Recommendation.AVOID


def calculate_owner_earnings(operating_cash_flow: float, capital_expenditures: float) -> float:
    return operating_cash_flow - abs(capital_expenditures)


def calculate_ten_cap_price(owner_earnings: float) -> float:
    return owner_earnings * TEN_CAP_MULTIPLE


def calculate_margin_percentage(current_price: float, target_price: float) -> float:
    """Percent above (+) or below (-) the target; 0 when the target is 0."""
    if target_price == 0:
        return 0.0
    return round_money((current_price - target_price) / target_price * 100)


def calculate_upside(current_price: float, mos_price: float) -> Optional[float]:
    """Percent move from the current price up to the MOS price."""
    if current_price <= 0:
        return None
    return round_money((mos_price - current_price) / current_price * 100)


def growth_candidates(metrics: BigFiveMetrics) -> Sequence[Optional[float]]:
    """Historical rates the default valuation draws its growth estimate from."""
    return (
        metrics.equity_growth_10_year,
        metrics.equity_growth_5_year,
        metrics.eps_growth_10_year,
        metrics.eps_growth_5_year,
    )


class ValuationEngine:
    """Default valuation of a company from its statements and Big Five metrics."""

    def __init__(self, min_return_rate: float = DEFAULT_MIN_RETURN * 100, years: int = DEFAULT_YEARS) -> None:
        self.min_return_rate = min_return_rate
        self.years = years

    def default_valuation(
        self,
        ticker: str,
        statements: Sequence[NormalizedFinancialStatement],
        metrics: BigFiveMetrics,
        current_price: Optional[float] = None,
    ) -> Optional[CompanyValuation]:
        """Value the newest EPS with estimated growth and PE.

        Returns ``None`` when there is no positive EPS to project.
        """
        ordered = annual_newest_first(statements)
        eps = ordered[0].eps if ordered else None
        if eps is None or eps <= 0:
            logger.info("%s: no positive EPS; skipping default valuation", ticker)
            return None

        growth = estimate_growth_rate(growth_candidates(metrics))
        future_pe = estimate_future_pe(growth)
        assumptions = ValuationInput(
            current_eps=eps,
            growth_rate=growth,
            future_pe=future_pe,
            min_return_rate=self.min_return_rate,
            years=self.years,
        )
        result = calculate_valuation(assumptions)
        valuation = CompanyValuation(
            ticker=ticker,
            current_eps=eps,
            estimated_growth_rate=growth,
            estimated_future_pe=future_pe,
            result=result,
        )
        if not metrics.is_predictable:
            valuation.warnings.append("Growth history is not predictable; treat estimates with caution.")

        if current_price is not None and current_price > 0:
            valuation.current_price = current_price
            valuation.payback_time = calculate_payback_time(current_price, eps, growth / 100)
            valuation.recommendation = get_recommendation(current_price, result.mos_price, result.sticker_price)
            valuation.upside = calculate_upside(current_price, result.mos_price)
        return valuation

