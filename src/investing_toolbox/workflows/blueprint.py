"""Workflow blueprint describing scoring stages and their handlers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, TYPE_CHECKING

from investing_toolbox.workflows.nodes import big_five, data_load, scoring, valuation

if TYPE_CHECKING:
    from investing_toolbox.workflows.context import WorkflowContext
    from investing_toolbox.workflows.state import ScoringState


@dataclass
class StageSpec:
    """Single LangGraph stage definition."""

    key: str
    description: str
    handler: Callable[["ScoringState", "WorkflowContext"], "ScoringState"]
    depends_on: List[str] = field(default_factory=list)


def build_default_stages() -> List[StageSpec]:
    """Return the ordered stages for the scoring workflow."""
    return [
        StageSpec(
            key="ingest_financials",
            description="Normalize supplied XBRL facts, else load cached statements, else fetch from SEC EDGAR.",
            handler=data_load.run,
        ),
        StageSpec(
            key="big_five",
            description="Compute ROIC and EPS/revenue/equity/FCF growth over 1/5/10-year windows.",
            handler=big_five.run,
            depends_on=["ingest_financials"],
        ),
        StageSpec(
            key="scoring",
            description="Derive ROIC, moat, debt, management and value scores; store the snapshot.",
            handler=scoring.run,
            depends_on=["big_five"],
        ),
        StageSpec(
            key="valuation",
            description="Sticker price and MOS price from estimated growth and PE; payback when priced.",
            handler=valuation.run,
            depends_on=["big_five"],
        ),
    ]
