"""LangGraph node for loading normalized statements (facts, cache or EDGAR)."""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from investing_toolbox.domain.models.financials import NormalizedFinancialStatement
from investing_toolbox.infrastructure.data_providers.edgar_client import DataProviderError, TickerNotFoundError
from investing_toolbox.workflows.context import WorkflowContext
from investing_toolbox.workflows.state import ScoringState

logger = logging.getLogger(__name__)


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    """Populate ``state["statements"]`` newest year first (facts > cache > EDGAR)."""
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    ticker = state["ticker"]
    years = context.config.history_years
    statements: List[NormalizedFinancialStatement] = []

    logs.append("DataLoadAgent -> lookup financial statements")

    raw_facts = state.get("raw_facts")
    if raw_facts:
        statements = context.normalizer.normalize_facts(raw_facts, years=years)
        state["source"] = "facts"
        logs.append(f"Normalized {len(statements)} fiscal years from {len(raw_facts)} supplied facts.")

    if not statements and context.repository is not None and not state.get("refresh"):
        statements = context.repository.fetch_statements(ticker, limit=years)
        if statements:
            state["source"] = "cache"
            logs.append(f"Loaded {len(statements)} cached statements from SQLite.")

    if not statements and context.edgar is not None:
        logs.append("No usable statements; fetching company facts from SEC EDGAR.")
        try:
            company, facts = context.edgar.fetch_raw_facts(ticker)
            state["cik"] = company.cik
            state["company_name"] = state.get("company_name") or company.name
            statements = context.normalizer.normalize_facts(facts, years=years)
            state["source"] = "edgar"
        except (DataProviderError, TickerNotFoundError) as exc:
            logger.warning("%s: EDGAR fetch failed: %s", ticker, exc)
            errors.append(f"EDGAR fetch failed: {exc}")

    if not statements:
        errors.append("No financial statements available for scoring.")
        state["statements"] = []
        return state

    if state.get("source") != "cache" and context.repository is not None:
        try:
            context.repository.upsert_company(ticker, cik=state.get("cik"), name=state.get("company_name"))
            persisted = context.repository.upsert_statements(ticker, statements)
            logs.append(f"Cached {persisted} statements in SQLite.")
        except SQLAlchemyError as exc:
            errors.append(f"Caching statements failed: {exc}")

    state["statements"] = statements
    return state
