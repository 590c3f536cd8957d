"""Domain models describing the financial data exchanged between services."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional


@dataclass(frozen=True)
class RawFact:
    """One reported value as published by a filer (e.g. an XBRL company fact)."""

    concept: str
    unit: str
    fiscal_year: int
    fiscal_period: str  # "FY" or "Q1".."Q4"
    form: str  # e.g. "10-K", "10-Q"
    period_end: date
    value: float
    period_start: Optional[date] = None
    filed: Optional[date] = None


@dataclass
class NormalizedFinancialStatement:
    """One fiscal year (or quarter) of a company in the canonical schema.

    Every numeric field is optional; absent data stays ``None``.
    """

    fiscal_year: int
    fiscal_quarter: Optional[int] = None  # None for full-year statements
    period_end_date: Optional[date] = None
    filing_date: Optional[date] = None

    # Income statement
    revenue: Optional[float] = None
    cost_of_revenue: Optional[float] = None
    gross_profit: Optional[float] = None
    operating_expenses: Optional[float] = None
    operating_income: Optional[float] = None
    interest_expense: Optional[float] = None
    income_before_tax: Optional[float] = None
    income_tax_expense: Optional[float] = None
    net_income: Optional[float] = None
    eps: Optional[float] = None
    eps_diluted: Optional[float] = None
    shares_outstanding: Optional[float] = None

    # Balance sheet
    cash: Optional[float] = None
    short_term_investments: Optional[float] = None
    total_current_assets: Optional[float] = None
    property_plant_equip: Optional[float] = None
    goodwill: Optional[float] = None
    intangible_assets: Optional[float] = None
    total_assets: Optional[float] = None
    accounts_payable: Optional[float] = None
    short_term_debt: Optional[float] = None
    total_current_liabilities: Optional[float] = None
    long_term_debt: Optional[float] = None
    total_liabilities: Optional[float] = None
    total_equity: Optional[float] = None

    # Cash flow
    operating_cash_flow: Optional[float] = None
    capital_expenditures: Optional[float] = None
    free_cash_flow: Optional[float] = None
    dividends_paid: Optional[float] = None
    net_change_in_cash: Optional[float] = None

    # Derived / provider supplied
    book_value_per_share: Optional[float] = None
    roic: Optional[float] = None  # percent
    roe: Optional[float] = None  # percent
    current_ratio: Optional[float] = None
    debt_to_equity: Optional[float] = None


@dataclass
class BigFiveMetrics:
    """ROIC and growth trends derived from a newest-first statement history.

    Growth and ROIC values are percentages (15.0 means 15%).
    """

    roic_1_year: Optional[float] = None
    roic_5_year: Optional[float] = None
    roic_10_year: Optional[float] = None

    eps_growth_1_year: Optional[float] = None
    eps_growth_5_year: Optional[float] = None
    eps_growth_10_year: Optional[float] = None

    revenue_growth_1_year: Optional[float] = None
    revenue_growth_5_year: Optional[float] = None
    revenue_growth_10_year: Optional[float] = None

    equity_growth_1_year: Optional[float] = None
    equity_growth_5_year: Optional[float] = None
    equity_growth_10_year: Optional[float] = None

    fcf_growth_1_year: Optional[float] = None
    fcf_growth_5_year: Optional[float] = None
    fcf_growth_10_year: Optional[float] = None

    # Fallback when the 10-year window is unavailable.
    eps_growth_max_year: Optional[float] = None
    eps_growth_max_year_period: int = 0
    revenue_growth_max_year: Optional[float] = None
    revenue_growth_max_year_period: int = 0
    equity_growth_max_year: Optional[float] = None
    equity_growth_max_year_period: int = 0
    fcf_growth_max_year: Optional[float] = None
    fcf_growth_max_year_period: int = 0

    years_of_data: int = 0
    is_predictable: bool = False


@dataclass(frozen=True)
class ScoreResult:
    """Component and composite scores plus the default valuation snapshot."""

    value_score: int
    roic_score: int
    moat_score: int
    debt_score: int
    management_score: int
    sticker_price: Optional[float] = None
    mos_price: Optional[float] = None
    payback_time: Optional[int] = None


@dataclass(frozen=True)
class ValuationInput:
    """Sticker-price assumptions; rates are percentages (15 means 15%)."""

    current_eps: float
    growth_rate: float
    future_pe: float
    min_return_rate: float = 15.0
    years: int = 10

    def validated(self) -> "ValuationInput":
        """Check assumptions at the boundary, raising ``ValueError`` on the first problem."""
        problems: List[str] = []
        if not self.current_eps > 0:
            problems.append("current_eps must be positive")
        if not 0 <= self.growth_rate <= 100:
            problems.append("growth_rate must be between 0 and 100")
        if not 1 <= self.future_pe <= 100:
            problems.append("future_pe must be between 1 and 100")
        if not 1 <= self.min_return_rate <= 50:
            problems.append("min_return_rate must be between 1 and 50")
        if not 1 <= self.years <= 20:
            problems.append("years must be between 1 and 20")
        if problems:
            raise ValueError("; ".join(problems))
        return self


@dataclass(frozen=True)
class ValuationResult:
    """Sticker-price outputs rounded to cents."""

    future_eps: float
    future_price: float
    sticker_price: float
    mos_price: float
    inputs: Optional[ValuationInput] = None


class Recommendation(str, Enum):
    BUY = "BUY"
    HOLD = "HOLD"
    AVOID = "AVOID"


@dataclass
class CompanyValuation:
    """Default valuation of one company, optionally anchored on a market price."""

    ticker: str
    current_eps: float
    estimated_growth_rate: float  # percent
    estimated_future_pe: float
    result: ValuationResult
    current_price: Optional[float] = None
    payback_time: Optional[int] = None
    recommendation: Optional[Recommendation] = None
    upside: Optional[float] = None  # percent distance from price to MOS price
    warnings: List[str] = field(default_factory=list)


@dataclass
class CompanySnapshot:
    """Latest score snapshot of one company with the descriptors screens filter on."""

    ticker: str
    scores: ScoreResult
    metrics: Optional[BigFiveMetrics] = None
    name: Optional[str] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    market_cap: Optional[float] = None
    current_price: Optional[float] = None
    calculated_at: Optional[datetime] = None

    @property
    def is_predictable(self) -> bool:
        return bool(self.metrics and self.metrics.is_predictable)
