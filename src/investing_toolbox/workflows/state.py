"""Workflow state definitions shared by LangGraph nodes."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, TypedDict

from investing_toolbox.domain.models.financials import (
    BigFiveMetrics,
    CompanyValuation,
    NormalizedFinancialStatement,
    RawFact,
    ScoreResult,
)


class ScoringState(TypedDict, total=False):
    ticker: str
    company_name: Optional[str]
    cik: Optional[str]
    current_price: Optional[float]
    refresh: bool

    raw_facts: Optional[List[RawFact]]
    source: Optional[str]  # "facts", "cache" or "edgar"
    statements: List[NormalizedFinancialStatement]
    big_five: Optional[BigFiveMetrics]
    scores: Optional[ScoreResult]
    calculated_at: Optional[datetime]
    valuation: Optional[CompanyValuation]
    stage_order: List[str]

    logs: List[str]
    errors: List[str]

