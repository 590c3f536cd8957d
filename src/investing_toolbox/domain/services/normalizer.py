"""Assemble canonical per-year statements from resolved facts or provider rows."""
from __future__ import annotations

import logging
from dataclasses import fields
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from investing_toolbox.domain.models.financials import NormalizedFinancialStatement, RawFact
from investing_toolbox.domain.services.tag_resolver import TagResolver

logger = logging.getLogger(__name__)

_STATEMENT_FIELDS = frozenset(
    f.name
    for f in fields(NormalizedFinancialStatement)
    if f.name not in {"fiscal_year", "fiscal_quarter", "period_end_date", "filing_date"}
)

# Provider rows (income / balance / cash-flow / key-metrics lists). Aliases are
# tried in order; the first present, non-null column wins.
INCOME_MAP = {
    "revenue": ["revenue"],
    "cost_of_revenue": ["costOfRevenue"],
    "gross_profit": ["grossProfit"],
    "operating_expenses": ["operatingExpenses"],
    "operating_income": ["operatingIncome"],
    "interest_expense": ["interestExpense"],
    "income_before_tax": ["incomeBeforeTax"],
    "income_tax_expense": ["incomeTaxExpense"],
    "net_income": ["netIncome"],
    "eps": ["eps"],
    "eps_diluted": ["epsdiluted", "epsDiluted"],
    "shares_outstanding": ["weightedAverageShsOut", "weightedAverageShares"],
}

BALANCE_MAP = {
    "cash": ["cashAndCashEquivalents"],
    "short_term_investments": ["shortTermInvestments"],
    "total_current_assets": ["totalCurrentAssets"],
    "property_plant_equip": ["propertyPlantEquipmentNet"],
    "goodwill": ["goodwill"],
    "intangible_assets": ["intangibleAssets"],
    "total_assets": ["totalAssets"],
    "accounts_payable": ["accountPayables", "accountsPayables"],
    "short_term_debt": ["shortTermDebt"],
    "total_current_liabilities": ["totalCurrentLiabilities"],
    "long_term_debt": ["longTermDebt"],
    "total_liabilities": ["totalLiabilities"],
    "total_equity": ["totalStockholdersEquity", "totalEquity"],
}

CASHFLOW_MAP = {
    "operating_cash_flow": ["operatingCashFlow", "netCashProvidedByOperatingActivities"],
    "capital_expenditures": ["capitalExpenditure", "investmentsInPropertyPlantAndEquipment"],
    "free_cash_flow": ["freeCashFlow"],
    "dividends_paid": ["dividendsPaid", "commonDividendsPaid"],
    "net_change_in_cash": ["netChangeInCash"],
}

KEY_METRICS_MAP = {
    "roic": ["returnOnInvestedCapital", "roic"],
    "roe": ["returnOnEquity", "roe"],
    "current_ratio": ["currentRatio"],
    "debt_to_equity": ["debtToEquity"],
    "book_value_per_share": ["bookValuePerShare"],
}

# Outflows reported with either sign by providers.
_ABSOLUTE_FIELDS = ("capital_expenditures", "dividends_paid")
# Provider ratios arrive as decimals (0.15); statements carry percentages.
_PERCENT_FIELDS = ("roic", "roe")

StatementKey = Tuple[int, Optional[int]]


class StatementNormalizer:
    """Build ``NormalizedFinancialStatement`` objects, newest fiscal year first."""

    def normalize_year(
        self,
        fiscal_year: int,
        values: Mapping[str, Optional[float]],
        *,
        fiscal_quarter: Optional[int] = None,
        period_end_date: Optional[date] = None,
        filing_date: Optional[date] = None,
    ) -> NormalizedFinancialStatement:
        """Copy resolved values onto a statement and apply the derived fields.

        Unknown keys are ignored and missing ones stay ``None``. Provider
        supplied ``free_cash_flow`` or ``book_value_per_share`` survive only
        when they cannot be derived from their inputs.
        """
        stmt = NormalizedFinancialStatement(
            fiscal_year=int(fiscal_year),
            fiscal_quarter=fiscal_quarter,
            period_end_date=period_end_date,
            filing_date=filing_date,
        )
        for name, value in values.items():
            if name in _STATEMENT_FIELDS:
                setattr(stmt, name, _safe_float(value))
        _apply_derived_fields(stmt)
        return stmt

    def normalize_facts(self, facts: Iterable[RawFact], years: int = 10) -> List[NormalizedFinancialStatement]:
        """Resolve a company's raw facts into up to ``years`` annual statements."""
        resolver = TagResolver.from_facts(facts)
        statements: List[NormalizedFinancialStatement] = []
        for info in resolver.fiscal_years(limit=years):
            values = resolver.resolve_year(info.fiscal_year)
            statements.append(
                self.normalize_year(
                    info.fiscal_year,
                    values,
                    period_end_date=info.period_end,
                    filing_date=info.filed,
                )
            )
        logger.debug("Normalized %d fiscal years from company facts", len(statements))
        return statements

    def normalize_provider_records(
        self,
        income: Iterable[Mapping[str, object]] = (),
        balance: Iterable[Mapping[str, object]] = (),
        cashflow: Iterable[Mapping[str, object]] = (),
        key_metrics: Iterable[Mapping[str, object]] = (),
    ) -> List[NormalizedFinancialStatement]:
        """Join semi-normalized provider rows by fiscal period into statements."""
        merged: Dict[StatementKey, Dict[str, object]] = {}
        dates: Dict[StatementKey, Dict[str, Optional[date]]] = {}

        for records, mapping in (
            (income, INCOME_MAP),
            (balance, BALANCE_MAP),
            (cashflow, CASHFLOW_MAP),
            (key_metrics, KEY_METRICS_MAP),
        ):
            frame = pd.DataFrame(list(records))
            if frame.empty:
                continue
            for _, row in frame.iterrows():
                key = _period_key(row)
                if key is None:
                    continue
                target = merged.setdefault(key, {})
                for canonical, candidates in mapping.items():
                    value = _first_present(row, candidates)
                    if value is not None and canonical not in target:
                        target[canonical] = value
                seen = dates.setdefault(key, {"period_end": None, "filed": None})
                seen["period_end"] = seen["period_end"] or _safe_date(row.get("date"))
                seen["filed"] = seen["filed"] or _safe_date(
                    _first_present(row, ["fillingDate", "filingDate", "acceptedDate"])
                )

        statements: List[NormalizedFinancialStatement] = []
        for key in sorted(merged, key=_newest_first):
            values = merged[key]
            for name in _ABSOLUTE_FIELDS:
                amount = _safe_float(values.get(name))
                values[name] = abs(amount) if amount is not None else None
            for name in _PERCENT_FIELDS:
                ratio = _safe_float(values.get(name))
                values[name] = ratio * 100 if ratio is not None else None
            fiscal_year, fiscal_quarter = key
            statements.append(
                self.normalize_year(
                    fiscal_year,
                    values,
                    fiscal_quarter=fiscal_quarter,
                    period_end_date=dates[key]["period_end"],
                    filing_date=dates[key]["filed"],
                )
            )
        return statements


def _apply_derived_fields(stmt: NormalizedFinancialStatement) -> None:
    shares = stmt.shares_outstanding
    has_shares = shares is not None and shares > 0

    if stmt.eps is None and stmt.net_income is not None and has_shares:
        stmt.eps = stmt.net_income / shares
        logger.debug("FY%s: EPS derived from net income / shares", stmt.fiscal_year)
    if stmt.eps_diluted is None:
        stmt.eps_diluted = stmt.eps

    if stmt.operating_cash_flow is not None and stmt.capital_expenditures is not None:
        stmt.free_cash_flow = stmt.operating_cash_flow - abs(stmt.capital_expenditures)

    if stmt.total_equity is not None and has_shares:
        stmt.book_value_per_share = stmt.total_equity / shares


def _period_key(row: pd.Series) -> Optional[StatementKey]:
    year = _safe_int(_first_present(row, ["fiscalYear", "calendarYear"]))
    if year is None:
        period_end = _safe_date(row.get("date"))
        if period_end is None:
            return None
        year = period_end.year
    return year, _quarter_from_period(row.get("period"))


def _quarter_from_period(period) -> Optional[int]:
    if period is None or (not isinstance(period, str) and pd.isna(period)):
        return None
    text = str(period).strip().upper()
    if text in {"", "FY"}:
        return None
    if text.startswith("Q"):
        return _safe_int(text[1:])
    return None


def _newest_first(key: StatementKey):
    year, quarter = key
    # Full-year rows sort ahead of the quarters of the same year.
    return (-year, -(quarter or 5))


def _first_present(row: pd.Series, candidates: Iterable[str]):
    for key in candidates:
        if key in row and pd.notna(row[key]):
            return row[key]
    return None


def _safe_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(result):
        return None
    return result


def _safe_int(value) -> Optional[int]:
    try:
        return int(float(value)) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def _safe_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    try:
        parsed = pd.to_datetime(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()
