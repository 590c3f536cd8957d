"""LangGraph node turning Big Five metrics into scores."""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from investing_toolbox.domain.services.scoring import calculate_all_scores
from investing_toolbox.workflows.context import WorkflowContext
from investing_toolbox.workflows.state import ScoringState


def run(state: ScoringState, context: WorkflowContext) -> ScoringState:
    logs = state.setdefault("logs", [])
    errors = state.setdefault("errors", [])
    metrics = state.get("big_five")
    statements = state.get("statements") or []

    if metrics is None:
        errors.append("ScoringAgent skipped because Big Five metrics are missing.")
        return state

    logs.append("ScoringAgent -> weighted ROIC/moat/debt scores")
    scores = calculate_all_scores(statements, metrics)
    state["scores"] = scores
    logs.append(
        f"Value {scores.value_score} (moat {scores.moat_score}, ROIC {scores.roic_score}, debt {scores.debt_score})"
    )
    if context.repository is not None:
        try:
            state["calculated_at"] = context.repository.save_scores(state["ticker"], metrics, scores)
        except SQLAlchemyError as exc:
            errors.append(f"Saving scores failed: {exc}")
    return state
