from __future__ import annotations

from datetime import date

from investing_toolbox.domain.models.financials import RawFact
from investing_toolbox.domain.services.tag_resolver import (
    FIELD_SPECS,
    XBRL_TAG_MAPPINGS,
    TagResolver,
)


def _fact(concept, fy, value, *, unit="USD", end=None, start="default", form="10-K", fp="FY"):
    end = end or date(fy, 12, 31)
    if start == "default":
        start = date(end.year, 1, 1)
    return RawFact(
        concept=concept,
        unit=unit,
        fiscal_year=fy,
        fiscal_period=fp,
        form=form,
        period_end=end,
        value=value,
        period_start=start,
    )


def test_first_priority_tag_wins_even_when_later_tag_matches():
    resolver = TagResolver.from_facts(
        [
            _fact("Revenues", 2023, 900.0),
            _fact("RevenueFromContractWithCustomerExcludingAssessedTax", 2023, 1000.0),
        ]
    )
    assert resolver.resolve("revenue", 2023) == 1000.0


def test_falls_back_to_lower_priority_tag():
    resolver = TagResolver.from_facts([_fact("SalesRevenueNet", 2022, 555.0)])
    assert resolver.resolve("revenue", 2022) == 555.0
    assert resolver.resolve("revenue", 2021) is None


def test_comparative_periods_resolve_to_latest_period_end():
    # A FY2023 10-K repeats prior years under fy=2023.
    resolver = TagResolver.from_facts(
        [
            _fact("Revenues", 2023, 800.0, end=date(2021, 12, 31)),
            _fact("Revenues", 2023, 900.0, end=date(2022, 12, 31)),
            _fact("Revenues", 2023, 1000.0, end=date(2023, 12, 31)),
        ]
    )
    assert resolver.resolve("revenue", 2023) == 1000.0


def test_duration_mode_requires_full_year_with_start():
    short = _fact("NetIncomeLoss", 2023, 50.0, start=date(2023, 10, 1))
    no_start = _fact("NetIncomeLoss", 2023, 60.0, start=None)
    resolver = TagResolver.from_facts([short, no_start])
    assert resolver.resolve("net_income", 2023) is None


def test_instant_mode_accepts_point_in_time_facts():
    resolver = TagResolver.from_facts([_fact("StockholdersEquity", 2023, 750.0, start=None)])
    assert resolver.resolve_instant("total_equity", 2023) == 750.0
    assert resolver.resolve_field("total_equity", 2023) == 750.0


def test_quarterly_filings_are_ignored():
    resolver = TagResolver.from_facts(
        [
            _fact("Revenues", 2023, 250.0, form="10-Q", fp="Q3"),
            _fact("StockholdersEquity", 2023, 700.0, start=None, form="10-Q", fp="Q3"),
        ]
    )
    assert resolver.resolve("revenue", 2023) is None
    assert resolver.resolve_instant("total_equity", 2023) is None


def test_unit_kind_is_respected():
    resolver = TagResolver.from_facts(
        [
            _fact("EarningsPerShareBasic", 2023, 2.5, unit="USD/shares"),
            _fact("CommonStockSharesOutstanding", 2023, 400.0, unit="shares", start=None),
        ]
    )
    assert resolver.resolve("eps", 2023) is None  # default unit is USD
    assert resolver.resolve("eps", 2023, unit="USD/shares") == 2.5
    values = resolver.resolve_year(2023)
    assert values["eps"] == 2.5
    assert values["shares_outstanding"] == 400.0
    assert values["revenue"] is None


def test_point_in_time_share_count_outranks_weighted_average():
    resolver = TagResolver.from_facts(
        [
            _fact("CommonStockSharesOutstanding", 2023, 100.0, unit="shares", start=None),
            _fact("WeightedAverageNumberOfSharesOutstandingBasic", 2023, 120.0, unit="shares"),
        ]
    )
    assert resolver.resolve_field("shares_outstanding", 2023) == 100.0


def test_share_count_still_rejects_partial_year_durations():
    resolver = TagResolver.from_facts(
        [
            _fact("CommonStockSharesOutstanding", 2023, 90.0, unit="shares", start=date(2023, 10, 1)),
            _fact("WeightedAverageNumberOfSharesOutstandingBasic", 2023, 120.0, unit="shares"),
        ]
    )
    assert resolver.resolve_field("shares_outstanding", 2023) == 120.0


def test_explicit_candidate_list_overrides_table():
    resolver = TagResolver.from_facts([_fact("CustomRevenueTag", 2023, 42.0)])
    assert resolver.resolve("revenue", 2023, tags=["CustomRevenueTag"]) == 42.0


def test_fiscal_years_sorted_desc_and_capped():
    facts = [_fact("Revenues", year, float(year)) for year in range(2010, 2024)]
    resolver = TagResolver.from_facts(facts)
    infos = resolver.fiscal_years(limit=10)
    assert [info.fiscal_year for info in infos] == list(range(2023, 2013, -1))
    assert infos[0].period_end == date(2023, 12, 31)


def test_fiscal_years_fall_back_to_net_income_anchor():
    resolver = TagResolver.from_facts([_fact("NetIncomeLoss", 2021, 5.0), _fact("NetIncomeLoss", 2022, 6.0)])
    assert [info.fiscal_year for info in resolver.fiscal_years()] == [2022, 2021]


def test_empty_facts_resolve_to_nothing():
    resolver = TagResolver.from_facts([])
    assert resolver.fiscal_years() == []
    assert resolver.resolve("revenue", 2023) is None


def test_every_declared_field_has_candidate_tags():
    assert set(FIELD_SPECS) == set(XBRL_TAG_MAPPINGS)
    assert all(XBRL_TAG_MAPPINGS[name] for name in FIELD_SPECS)
