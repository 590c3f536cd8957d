"""LangGraph node computing Big Five metrics."""
from __future__ import annotations

from investing_toolbox.workflows.context import WorkflowContext
from investing_toolbox.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    statements = state.get("statements") or []

    if not statements:
        errors.append("BigFiveAgent skipped because no statements were loaded.")
        return state

    logs.append("BigFiveAgent -> compute ROIC and growth windows")
    metrics = context.big_five_calculator.calculate(statements)
    state["big_five"] = metrics
    if not metrics.is_predictable:
        logs.append(f"Only {metrics.years_of_data} years or declining growth; marked unpredictable.")
    return state
