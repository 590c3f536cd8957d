"""Workflow dependency container."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from investing_toolbox.domain.services.calculations import BigFiveCalculator
from investing_toolbox.domain.services.normalizer import StatementNormalizer
from investing_toolbox.domain.services.valuation import ValuationEngine
from investing_toolbox.infrastructure.data_providers.edgar_client import EdgarClient
from investing_toolbox.infrastructure.db.sqlite import SQLiteRepository
from investing_toolbox.settings.config import Config


@dataclass
class WorkflowContext:
    """Holds heavy-weight dependencies shared by LangGraph nodes."""

    config: Config
    repository: Optional[SQLiteRepository]
    edgar: Optional[EdgarClient]
    normalizer: StatementNormalizer
    big_five_calculator: BigFiveCalculator
    valuation_engine: ValuationEngine

    def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        if self.edgar is not None:
            self.edgar.close()
