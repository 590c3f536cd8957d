"""LangGraph workflow assembly for the per-company scoring pipeline."""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from langgraph.graph import END, StateGraph

from investing_toolbox.domain.models.financials import RawFact
from investing_toolbox.domain.services.calculations import BigFiveCalculator
from investing_toolbox.domain.services.normalizer import StatementNormalizer
from investing_toolbox.domain.services.valuation import ValuationEngine
from investing_toolbox.infrastructure.data_providers.edgar_client import EdgarClient
from investing_toolbox.infrastructure.db.sqlite import SQLiteRepository
from investing_toolbox.settings.config import Config
from investing_toolbox.workflows import context as context_module
from investing_toolbox.workflows.blueprint import StageSpec, build_default_stages
from investing_toolbox.workflows.state import ScoringState

logger = logging.getLogger(__name__)


@dataclass
class CompanyRequest:
    """One company to score; ``raw_facts`` skips the cache and EDGAR lookups."""

    ticker: str
    raw_facts: Optional[List[RawFact]] = None
    company_name: Optional[str] = None
    current_price: Optional[float] = None
    refresh: bool = False


class ScoringWorkflow:
    """Compose LangGraph nodes into a runnable workflow."""

    def __init__(
        self,
        config: Config,
        *,
        context: Optional[context_module.WorkflowContext] = None,
        use_edgar: bool = True,
    ) -> None:
        self._config = config
        self._context = context or self._build_context(use_edgar=use_edgar)
        self._stages: List[StageSpec] = build_default_stages()
        self._graph = self._build_graph()

    @property
    def context(self) -> context_module.WorkflowContext:
        return self._context

    def _build_context(self, *, use_edgar: bool) -> context_module.WorkflowContext:
        repository = SQLiteRepository(
            database_uri=f"sqlite:///{self._config.database_path}",
            echo=self._config.sqlite_echo,
        )
        edgar_client: Optional[EdgarClient] = None
        if use_edgar:
            try:
                edgar_client = EdgarClient.from_config(self._config)
            except ValueError as exc:
                logger.warning("EDGAR client disabled: %s", exc)

        return context_module.WorkflowContext(
            config=self._config,
            repository=repository,
            edgar=edgar_client,
            normalizer=StatementNormalizer(),
            big_five_calculator=BigFiveCalculator(),
            valuation_engine=ValuationEngine(min_return_rate=self._config.min_return_rate),
        )

    def _build_graph(self):
        builder = StateGraph(dict)

        if not self._stages:
            raise RuntimeError("Workflow blueprint is empty; cannot build LangGraph.")

        for stage in self._stages:
            builder.add_node(stage.key, self._wrap(stage.handler))

        # Serialize execution in declared stage order to avoid concurrent state writes.
        builder.set_entry_point(self._stages[0].key)
        for current, nxt in zip(self._stages, self._stages[1:]):
            builder.add_edge(current.key, nxt.key)
        builder.add_edge(self._stages[-1].key, END)

        return builder.compile(checkpointer=None)

    def _wrap(self, func: Callable[[ScoringState, context_module.WorkflowContext], ScoringState]):
        def wrapper(state: Dict[str, Any]) -> Dict[str, Any]:
            return func(state, self._context)

        return wrapper

    def run(
        self,
        ticker: str,
        *,
        raw_facts: Optional[List[RawFact]] = None,
        company_name: Optional[str] = None,
        current_price: Optional[float] = None,
        refresh: bool = False,
    ) -> ScoringState:
        """Execute the workflow for a single ticker."""
        initial_state: ScoringState = {
            "ticker": ticker.upper(),
            "company_name": company_name,
            "current_price": current_price,
            "refresh": refresh,
            "raw_facts": raw_facts,
            "logs": [],
            "errors": [],
            "stage_order": [stage.key for stage in self._stages],
        }
        result: ScoringState = self._graph.invoke(initial_state)
        return result  # type: ignore[return-value]

    def run_batch(self, requests: Sequence[CompanyRequest]) -> Dict[str, ScoringState]:
        """Score companies concurrently, one worker per company.

        A failing company yields a state carrying the error instead of
        aborting the batch.
        """
        results: Dict[str, ScoringState] = {}
        if not requests:
            return results
        workers = max(1, min(self._config.max_workers, len(requests)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                request.ticker.upper(): executor.submit(
                    self.run,
                    request.ticker,
                    raw_facts=request.raw_facts,
                    company_name=request.company_name,
                    current_price=request.current_price,
                    refresh=request.refresh,
                )
                for request in requests
            }
            for ticker, future in futures.items():
                try:
                    results[ticker] = future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    logger.exception("%s: scoring run failed", ticker)
                    results[ticker] = {"ticker": ticker, "logs": [], "errors": [f"Scoring run failed: {exc}"]}
        return results

    def persist_state(self, state: ScoringState, path: Path) -> None:
        """Serialize the workflow state to disk for debugging or auditing."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: value for key, value in state.items() if key != "raw_facts"}
        text = json.dumps(payload, default=_json_serializer, indent=2, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")

    def describe_stages(self) -> List[str]:
        """Return human-readable workflow stage descriptions."""
        return [f"{stage.key}: {stage.description}" for stage in self._stages]

    def close(self) -> None:
        self._context.close()


def _json_serializer(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
