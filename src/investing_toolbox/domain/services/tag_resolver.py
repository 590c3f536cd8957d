"""Resolve provider concept tags onto canonical statement fields.

Filers report the same economic concept under different XBRL tags. The
``XBRL_TAG_MAPPINGS`` table lists, per canonical field, the candidate tags
in priority order; the first tag with a matching annual fact wins even when
a later tag would also match.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from investing_toolbox.domain.models.financials import RawFact

ANNUAL_FORM = "10-K"
ANNUAL_PERIOD = "FY"
# Shortest span accepted as a full fiscal year (52/53-week years included).
FULL_YEAR_MIN_DAYS = 300

USD = "USD"
SHARES = "shares"
USD_PER_SHARE = "USD/shares"

XBRL_TAG_MAPPINGS: Dict[str, Tuple[str, ...]] = {
    # Income statement
    "revenue": (
        "RevenueFromContractWithCustomerExcludingAssessedTax",
        "Revenues",
        "SalesRevenueNet",
        "SalesRevenueGoodsNet",
        "SalesRevenueServicesNet",
    ),
    "cost_of_revenue": (
        "CostOfGoodsAndServicesSold",
        "CostOfRevenue",
        "CostOfGoodsSold",
        "CostOfServices",
    ),
    "gross_profit": ("GrossProfit",),
    "operating_expenses": ("OperatingExpenses", "CostsAndExpenses"),
    "operating_income": ("OperatingIncomeLoss", "IncomeLossFromOperations"),
    "interest_expense": ("InterestExpense", "InterestAndDebtExpense", "InterestExpenseDebt"),
    "income_before_tax": (
        "IncomeLossFromContinuingOperationsBeforeIncomeTaxesExtraordinaryItemsNoncontrollingInterest",
        "IncomeLossFromContinuingOperationsBeforeIncomeTaxesMinorityInterestAndIncomeLossFromEquityMethodInvestments",
        "IncomeLossFromContinuingOperationsBeforeIncomeTaxesForeign",
        "IncomeLossFromContinuingOperationsBeforeIncomeTaxesDomestic",
    ),
    "income_tax_expense": ("IncomeTaxExpenseBenefit", "IncomeTaxesPaidNet"),
    "net_income": (
        "NetIncomeLoss",
        "NetIncomeLossAvailableToCommonStockholdersBasic",
        "ProfitLoss",
    ),
    "eps": ("EarningsPerShareBasic",),
    "eps_diluted": ("EarningsPerShareDiluted",),
    "shares_outstanding": (
        "CommonStockSharesOutstanding",
        "WeightedAverageNumberOfSharesOutstandingBasic",
    ),
    # Balance sheet
    "cash": ("CashAndCashEquivalentsAtCarryingValue", "Cash"),
    "short_term_investments": (
        "ShortTermInvestments",
        "MarketableSecuritiesCurrent",
        "AvailableForSaleSecuritiesCurrent",
    ),
    "total_current_assets": ("AssetsCurrent",),
    "property_plant_equip": (
        "PropertyPlantAndEquipmentNet",
        "PropertyPlantAndEquipmentAndFinanceLeaseRightOfUseAssetAfterAccumulatedDepreciationAndAmortization",
    ),
    "goodwill": ("Goodwill",),
    "intangible_assets": ("IntangibleAssetsNetExcludingGoodwill", "FiniteLivedIntangibleAssetsNet"),
    "total_assets": ("Assets",),
    "accounts_payable": ("AccountsPayableCurrent", "AccountsPayableAndAccruedLiabilitiesCurrent"),
    "short_term_debt": ("ShortTermBorrowings", "DebtCurrent", "LongTermDebtCurrent"),
    "total_current_liabilities": ("LiabilitiesCurrent",),
    "long_term_debt": (
        "LongTermDebtNoncurrent",
        "LongTermDebt",
        "LongTermDebtAndCapitalLeaseObligations",
    ),
    "total_liabilities": ("Liabilities",),
    "total_equity": (
        "StockholdersEquity",
        "StockholdersEquityIncludingPortionAttributableToNoncontrollingInterest",
    ),
    # Cash flow
    "operating_cash_flow": (
        "NetCashProvidedByUsedInOperatingActivities",
        "NetCashProvidedByUsedInOperatingActivitiesContinuingOperations",
    ),
    "capital_expenditures": (
        "PaymentsToAcquirePropertyPlantAndEquipment",
        "PaymentsToAcquireProductiveAssets",
    ),
    "dividends_paid": (
        "PaymentsOfDividendsCommonStock",
        "PaymentsOfDividends",
        "DividendsCommonStockCash",
    ),
    "net_change_in_cash": (
        "CashCashEquivalentsRestrictedCashAndRestrictedCashEquivalentsPeriodIncreaseDecreaseIncludingExchangeRateEffect",
        "CashAndCashEquivalentsPeriodIncreaseDecrease",
        "NetCashProvidedByUsedInContinuingOperations",
    ),
}


@dataclass(frozen=True)
class FieldSpec:
    """How one canonical field is looked up: unit kind and duration vs instant."""

    unit: str
    instant: bool = False
    # Duration field whose tags may also be published as point-in-time facts.
    accepts_instant: bool = False


FIELD_SPECS: Dict[str, FieldSpec] = {
    "revenue": FieldSpec(USD),
    "cost_of_revenue": FieldSpec(USD),
    "gross_profit": FieldSpec(USD),
    "operating_expenses": FieldSpec(USD),
    "operating_income": FieldSpec(USD),
    "interest_expense": FieldSpec(USD),
    "income_before_tax": FieldSpec(USD),
    "income_tax_expense": FieldSpec(USD),
    "net_income": FieldSpec(USD),
    "eps": FieldSpec(USD_PER_SHARE),
    "eps_diluted": FieldSpec(USD_PER_SHARE),
    "shares_outstanding": FieldSpec(SHARES, accepts_instant=True),
    "cash": FieldSpec(USD, instant=True),
    "short_term_investments": FieldSpec(USD, instant=True),
    "total_current_assets": FieldSpec(USD, instant=True),
    "property_plant_equip": FieldSpec(USD, instant=True),
    "goodwill": FieldSpec(USD, instant=True),
    "intangible_assets": FieldSpec(USD, instant=True),
    "total_assets": FieldSpec(USD, instant=True),
    "accounts_payable": FieldSpec(USD, instant=True),
    "short_term_debt": FieldSpec(USD, instant=True),
    "total_current_liabilities": FieldSpec(USD, instant=True),
    "long_term_debt": FieldSpec(USD, instant=True),
    "total_liabilities": FieldSpec(USD, instant=True),
    "total_equity": FieldSpec(USD, instant=True),
    "operating_cash_flow": FieldSpec(USD),
    "capital_expenditures": FieldSpec(USD),
    "dividends_paid": FieldSpec(USD),
    "net_change_in_cash": FieldSpec(USD),
}

_COLUMNS = [
    "concept",
    "unit",
    "fiscal_year",
    "fiscal_period",
    "form",
    "period_end",
    "value",
    "period_start",
    "filed",
]


@dataclass(frozen=True)
class FiscalYearInfo:
    fiscal_year: int
    period_end: Optional[date] = None
    filed: Optional[date] = None


class FactTable:
    """Index of annual (10-K, FY) facts grouped by concept for fast lookups."""

    def __init__(self, facts: Iterable[RawFact]) -> None:
        rows = [asdict(fact) for fact in facts]
        frame = pd.DataFrame(rows, columns=_COLUMNS)
        for col in ("period_end", "period_start", "filed"):
            frame[col] = pd.to_datetime(frame[col], errors="coerce")
        frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
        frame = frame.dropna(subset=["value"])
        self._size = len(frame)
        annual = frame[(frame["form"] == ANNUAL_FORM) & (frame["fiscal_period"] == ANNUAL_PERIOD)]
        self._by_concept: Dict[str, pd.DataFrame] = {
            str(concept): group for concept, group in annual.groupby("concept")
        }

    def __len__(self) -> int:
        return self._size

    def annual_facts(self, concept: str, unit: str) -> pd.DataFrame:
        """Annual facts reported for ``concept`` in ``unit`` (possibly empty)."""
        group = self._by_concept.get(concept)
        if group is None:
            return pd.DataFrame(columns=_COLUMNS)
        return group[group["unit"] == unit]


class TagResolver:
    """Pick one value per canonical field and fiscal year from a fact table."""

    def __init__(
        self,
        table: FactTable,
        mappings: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self._table = table
        self._mappings = mappings if mappings is not None else XBRL_TAG_MAPPINGS

    @classmethod
    def from_facts(cls, facts: Iterable[RawFact]) -> "TagResolver":
        return cls(FactTable(facts))

    def candidate_tags(self, field: str) -> Sequence[str]:
        return self._mappings.get(field, ())

    def resolve(
        self,
        field: str,
        fiscal_year: int,
        unit: str = USD,
        tags: Optional[Sequence[str]] = None,
    ) -> Optional[float]:
        """Full-year (duration) value for ``field``; requires a period start."""
        return self._lookup(field, fiscal_year, unit, tags, instant=False)

    def resolve_instant(
        self,
        field: str,
        fiscal_year: int,
        unit: str = USD,
        tags: Optional[Sequence[str]] = None,
    ) -> Optional[float]:
        """Point-in-time (balance sheet) value for ``field`` from the annual filing."""
        return self._lookup(field, fiscal_year, unit, tags, instant=True)

    def resolve_field(self, field: str, fiscal_year: int) -> Optional[float]:
        """Resolve using the unit and mode declared in ``FIELD_SPECS``."""
        field_spec = FIELD_SPECS.get(field)
        if field_spec is None:
            return None
        if field_spec.instant:
            return self.resolve_instant(field, fiscal_year, field_spec.unit)
        if field_spec.accepts_instant:
            return self._lookup(field, fiscal_year, field_spec.unit, None, instant=False, keep_instant=True)
        return self.resolve(field, fiscal_year, field_spec.unit)

    def resolve_year(self, fiscal_year: int) -> Dict[str, Optional[float]]:
        """Resolve every declared field for one fiscal year."""
        return {field: self.resolve_field(field, fiscal_year) for field in FIELD_SPECS}

    def fiscal_years(
        self,
        anchors: Sequence[str] = ("revenue", "net_income"),
        limit: int = 10,
    ) -> List[FiscalYearInfo]:
        """Distinct annual fiscal years, newest first, taken from one anchor concept.

        The first anchor field whose candidate tags yield any annual USD fact
        decides the year set; within it, the first tag with data is used.
        """
        for anchor in anchors:
            for tag in self.candidate_tags(anchor):
                facts = self._table.annual_facts(tag, USD)
                if facts.empty:
                    continue
                return _year_infos(facts, limit)
        return []

    def _lookup(
        self,
        field: str,
        fiscal_year: int,
        unit: str,
        tags: Optional[Sequence[str]],
        *,
        instant: bool,
        keep_instant: bool = False,
    ) -> Optional[float]:
        candidates = tags if tags is not None else self.candidate_tags(field)
        for tag in candidates:
            facts = self._table.annual_facts(tag, unit)
            if facts.empty:
                continue
            matches = facts[facts["fiscal_year"] == fiscal_year]
            if not instant:
                matches = _full_year_only(matches, keep_instant=keep_instant)
            if matches.empty:
                continue
            # A 10-K repeats prior years as comparatives under the same fiscal
            # year; the current period is the one ending last.
            best = matches.sort_values("period_end", kind="stable").iloc[-1]
            return float(best["value"])
        return None


def _full_year_only(facts: pd.DataFrame, keep_instant: bool = False) -> pd.DataFrame:
    if facts.empty:
        return facts
    has_start = facts["period_start"].notna()
    span = (facts["period_end"] - facts["period_start"]).dt.days
    keep = has_start & (span >= FULL_YEAR_MIN_DAYS)
    if keep_instant:
        keep = keep | ~has_start
    return facts[keep]


def _year_infos(facts: pd.DataFrame, limit: int) -> List[FiscalYearInfo]:
    ordered = facts.sort_values(["fiscal_year", "period_end"], kind="stable")
    latest = ordered.groupby("fiscal_year").tail(1)
    latest = latest.sort_values("fiscal_year", ascending=False).head(max(limit, 0))
    infos: List[FiscalYearInfo] = []
    for _, row in latest.iterrows():
        infos.append(
            FiscalYearInfo(
                fiscal_year=int(row["fiscal_year"]),
                period_end=_to_date(row["period_end"]),
                filed=_to_date(row["filed"]),
            )
        )
    return infos


def _to_date(value) -> Optional[date]:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).date()
