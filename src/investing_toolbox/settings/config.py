"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Base directory for resolving relative paths.
BASE_DIR = Path.cwd()


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    # Normalize non-string inputs (e.g., int defaults) before parsing.
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str], default: int) -> int:
    """Safely parse an integer env var, returning the default on failure."""
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _to_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return default


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    database_path: Path = BASE_DIR / "data" / "investing_toolbox.db"
    sqlite_echo: bool = False
    sec_user_agent: str = "InvestingToolbox contact@example.com"
    edgar_base_url: str = "https://data.sec.gov"
    ticker_map_url: str = "https://www.sec.gov/files/company_tickers.json"
    http_timeout: float = 30.0
    history_years: int = 10
    min_return_rate: float = 15.0  # percent
    max_workers: int = 4
    output_dir: Path = BASE_DIR / "reports"

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        base = BASE_DIR
        db_path = Path(os.getenv("DATABASE_PATH", base / "data" / "investing_toolbox.db"))
        output_dir = Path(os.getenv("OUTPUT_DIR", base / "reports"))

        config = cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            database_path=db_path,
            sqlite_echo=_to_bool(os.getenv("SQLITE_ECHO")),
            sec_user_agent=os.getenv("SEC_USER_AGENT", cls.sec_user_agent),
            edgar_base_url=os.getenv("EDGAR_BASE_URL", cls.edgar_base_url),
            ticker_map_url=os.getenv("SEC_TICKER_MAP_URL", cls.ticker_map_url),
            http_timeout=_to_float(os.getenv("HTTP_TIMEOUT"), cls.http_timeout),
            history_years=max(_to_int(os.getenv("HISTORY_YEARS"), cls.history_years), 1),
            min_return_rate=_to_float(os.getenv("MIN_RETURN_RATE"), cls.min_return_rate),
            max_workers=max(_to_int(os.getenv("MAX_WORKERS"), cls.max_workers), 1),
            output_dir=output_dir,
        )
        return config

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
