"""Weighted-bucket quality scores derived from Big Five metrics.

Value Score = 50% Moat + 40% ROIC + 10% Debt
Management Score = 80% ROIC + 20% Debt

Each component is a 0-100 integer. Missing inputs drop out of the weighted
averages instead of counting as zero; with no inputs at all a score is 0.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

from investing_toolbox.domain.models.financials import (
    BigFiveMetrics,
    NormalizedFinancialStatement,
    ScoreResult,
)
from investing_toolbox.domain.services.calculations import BigFiveCalculator, annual_newest_first
from investing_toolbox.domain.services.valuation import (
    calculate_payback_time,
    calculate_sticker_price,
    estimate_future_pe,
    estimate_growth_rate,
    growth_candidates,
)
from investing_toolbox.utils.numbers import round_half_up

# (threshold, points), checked top-down; anything below the last threshold is 0.
RATE_BUCKETS: Tuple[Tuple[float, int], ...] = ((15, 100), (10, 80), (5, 50), (0, 25))

ROIC_WEIGHTS = {"1_year": 0.2, "5_year": 0.3, "10_year": 0.5}
MOAT_WEIGHTS = {"1_year": 1, "5_year": 2, "10_year": 3}
MOAT_FAMILIES = ("eps", "revenue", "equity", "fcf")

# (max payoff years, points); longer payoffs score 10.
DEBT_PAYOFF_STAIRCASE: Tuple[Tuple[float, int], ...] = (
    (1, 100),
    (2, 90),
    (3, 80),
    (4, 70),
    (5, 60),
    (6, 50),
    (7, 40),
    (8, 30),
    (10, 20),
)
DEBT_SCORE_FLOOR = 10


def bucket_score(rate: Optional[float]) -> int:
    if rate is None:
        return 0
    for threshold, points in RATE_BUCKETS:
        if rate >= threshold:
            return points
    return 0


def _weighted_bucket_average(pairs: Iterable[Tuple[Optional[float], float]]) -> int:
    total_weight = 0.0
    weighted = 0.0
    for rate, weight in pairs:
        if rate is None:
            continue
        weighted += bucket_score(rate) * weight
        total_weight += weight
    if total_weight <= 0:
        return 0
    return round_half_up(weighted / total_weight)


def calculate_roic_score(
    roic_1_year: Optional[float],
    roic_5_year: Optional[float],
    roic_10_year: Optional[float],
) -> int:
    return _weighted_bucket_average(
        [
            (roic_1_year, ROIC_WEIGHTS["1_year"]),
            (roic_5_year, ROIC_WEIGHTS["5_year"]),
            (roic_10_year, ROIC_WEIGHTS["10_year"]),
        ]
    )


def calculate_moat_score(metrics: BigFiveMetrics) -> int:
    """Growth consistency across the four families, longer windows weighted more."""
    pairs = []
    for family in MOAT_FAMILIES:
        for window, weight in MOAT_WEIGHTS.items():
            pairs.append((getattr(metrics, f"{family}_growth_{window}"), weight))
    return _weighted_bucket_average(pairs)


def calculate_debt_score(statements: Sequence[NormalizedFinancialStatement]) -> int:
    """Years of free cash flow needed to retire the latest total debt, as a score."""
    ordered = annual_newest_first(statements)
    if not ordered:
        return 0
    recent = ordered[0]
    total_debt = (recent.long_term_debt or 0.0) + (recent.short_term_debt or 0.0)
    fcf = recent.free_cash_flow or 0.0

    if total_debt <= 0:
        return 100
    if fcf <= 0:
        return 0

    payoff_years = total_debt / fcf
    for max_years, points in DEBT_PAYOFF_STAIRCASE:
        if payoff_years <= max_years:
            return points
    return DEBT_SCORE_FLOOR


def calculate_management_score(roic_score: float, debt_score: float) -> int:
    return round_half_up(roic_score * 0.8 + debt_score * 0.2)


def calculate_value_score(moat_score: float, roic_score: float, debt_score: float) -> int:
    return round_half_up(moat_score * 0.5 + roic_score * 0.4 + debt_score * 0.1)


def calculate_all_scores(
    statements: Sequence[NormalizedFinancialStatement],
    metrics: BigFiveMetrics,
) -> ScoreResult:
    """Component and composite scores plus a default sticker-price snapshot.

    Without a market price, payback time is measured against the sticker
    price. Valuation fields stay ``None`` when the newest EPS is not positive.
    """
    roic_score = calculate_roic_score(metrics.roic_1_year, metrics.roic_5_year, metrics.roic_10_year)
    moat_score = calculate_moat_score(metrics)
    debt_score = calculate_debt_score(statements)

    sticker_price = mos_price = None
    payback_time = None
    ordered = annual_newest_first(statements)
    recent_eps = ordered[0].eps if ordered else None
    if recent_eps is not None and recent_eps > 0:
        growth = estimate_growth_rate(growth_candidates(metrics))
        future_pe = estimate_future_pe(growth)
        prices = calculate_sticker_price(recent_eps, growth / 100, future_pe)
        sticker_price = prices.sticker_price
        mos_price = prices.mos_price
        payback_time = calculate_payback_time(sticker_price, recent_eps, growth / 100)

    return ScoreResult(
        value_score=calculate_value_score(moat_score, roic_score, debt_score),
        roic_score=roic_score,
        moat_score=moat_score,
        debt_score=debt_score,
        management_score=calculate_management_score(roic_score, debt_score),
        sticker_price=sticker_price,
        mos_price=mos_price,
        payback_time=payback_time,
    )


class ScoringEngine:
    """Big Five + scores for one company's statement history."""

    def __init__(self, calculator: Optional[BigFiveCalculator] = None) -> None:
        self._calculator = calculator or BigFiveCalculator()

    def score(self, statements: Sequence[NormalizedFinancialStatement]) -> Tuple[BigFiveMetrics, ScoreResult]:
        metrics = self._calculator.calculate(statements)
        return metrics, calculate_all_scores(statements, metrics)
