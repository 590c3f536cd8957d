"""LangGraph node for the default sticker-price valuation."""
from __future__ import annotations

from investing_toolbox.workflows.context import WorkflowContext
from investing_toolbox.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    metrics = state.get("big_five")
    statements = state.get("statements") or []

    if metrics is None:
        errors.append("ValuationAgent skipped because prerequisites are missing.")
        return state

    logs.append("ValuationAgent -> sticker price and margin of safety")
    valuation = context.valuation_engine.default_valuation(
        state["ticker"],
        statements,
        metrics,
        current_price=state.get("current_price"),
    )
    if valuation is None:
        logs.append("No positive EPS; valuation not available.")
    state["valuation"] = valuation
    return state
