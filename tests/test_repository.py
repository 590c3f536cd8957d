from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from investing_toolbox.domain.models.financials import BigFiveMetrics, NormalizedFinancialStatement, ScoreResult
from investing_toolbox.infrastructure.db.sqlite import SQLiteRepository


@pytest.fixture
def repo(tmp_path):
    return SQLiteRepository(f"sqlite:///{tmp_path / 'test.db'}")


def _mk_scores(value=80, sticker=None):
    return ScoreResult(
        value_score=value,
        roic_score=90,
        moat_score=70,
        debt_score=100,
        management_score=92,
        sticker_price=sticker,
        mos_price=sticker / 2 if sticker else None,
        payback_time=9 if sticker else None,
    )


def test_statements_round_trip_newest_first(repo):
    statements = [
        NormalizedFinancialStatement(fiscal_year=2022, revenue=900.0, period_end_date=date(2022, 12, 31)),
        NormalizedFinancialStatement(fiscal_year=2023, revenue=1000.0, eps=2.5, filing_date=date(2024, 2, 1)),
        NormalizedFinancialStatement(fiscal_year=2023, fiscal_quarter=2, revenue=240.0),
    ]
    assert repo.upsert_statements("msft", statements) == 3

    annual = repo.fetch_statements("MSFT")
    assert [(s.fiscal_year, s.fiscal_quarter) for s in annual] == [(2023, None), (2022, None)]
    assert annual[0].revenue == 1000.0
    assert annual[0].eps == 2.5
    assert annual[0].filing_date == date(2024, 2, 1)
    assert annual[0].total_equity is None
    assert annual[1].period_end_date == date(2022, 12, 31)

    everything = repo.fetch_statements("msft", annual_only=False)
    assert [(s.fiscal_year, s.fiscal_quarter) for s in everything] == [(2023, None), (2023, 2), (2022, None)]
    assert len(repo.fetch_statements("msft", limit=1)) == 1


def test_statement_upsert_replaces_existing_row(repo):
    repo.upsert_statements("AAPL", [NormalizedFinancialStatement(fiscal_year=2023, revenue=1.0)])
    repo.upsert_statements("AAPL", [NormalizedFinancialStatement(fiscal_year=2023, revenue=2.0)])
    rows = repo.fetch_statements("AAPL")
    assert len(rows) == 1
    assert rows[0].revenue == 2.0
    assert repo.upsert_statements("AAPL", []) == 0


def test_company_upsert_keeps_known_fields(repo):
    repo.upsert_company("aapl", cik="0000320193", name="Apple Inc.", sector="Technology")
    repo.upsert_company("AAPL", current_price=190.5)
    company = repo.fetch_company("AAPL")
    assert company["name"] == "Apple Inc."
    assert company["sector"] == "Technology"
    assert company["current_price"] == 190.5
    assert repo.fetch_company("NOPE") is None


def test_score_history_and_latest_snapshot(repo):
    repo.upsert_company("AAPL", name="Apple Inc.", sector="Technology", market_cap=3e12)
    earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
    metrics = BigFiveMetrics(roic_1_year=30.0, eps_growth_5_year=12.0, years_of_data=10, is_predictable=True)

    repo.save_scores("AAPL", metrics, _mk_scores(70), calculated_at=earlier)
    stamp = repo.save_scores("AAPL", metrics, _mk_scores(85, sticker=150.0), calculated_at=earlier + timedelta(days=1))

    history = repo.fetch_score_history("aapl")
    assert [snap.scores.value_score for snap in history] == [85, 70]

    latest = repo.fetch_latest_scores("AAPL")
    assert latest.calculated_at == stamp
    assert latest.scores.sticker_price == 150.0
    assert latest.scores.payback_time == 9
    assert latest.metrics.roic_1_year == 30.0
    assert latest.metrics.years_of_data == 10
    assert latest.is_predictable is True
    assert latest.name == "Apple Inc."
    assert latest.market_cap == 3e12
    assert repo.fetch_latest_scores("MSFT") is None


def test_latest_snapshots_one_per_company(repo):
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    repo.save_scores("MSFT", BigFiveMetrics(), _mk_scores(60), calculated_at=base)
    repo.save_scores("MSFT", BigFiveMetrics(), _mk_scores(65), calculated_at=base + timedelta(hours=1))
    repo.save_scores("AAPL", BigFiveMetrics(), _mk_scores(90), calculated_at=base)

    snapshots = repo.fetch_latest_snapshots()
    assert [(snap.ticker, snap.scores.value_score) for snap in snapshots] == [("AAPL", 90), ("MSFT", 65)]
    assert snapshots[0].name is None
    assert snapshots[0].is_predictable is False
