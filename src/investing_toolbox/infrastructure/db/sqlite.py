"""SQLite persistence layer for normalized statements and score snapshots."""
from __future__ import annotations

import threading
from dataclasses import asdict, fields
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from investing_toolbox.domain.models.financials import (
    BigFiveMetrics,
    CompanySnapshot,
    NormalizedFinancialStatement,
    ScoreResult,
)

_STATEMENT_KEYS = ("fiscal_year", "fiscal_quarter", "period_end_date", "filing_date")
STATEMENT_COLUMNS = [f.name for f in fields(NormalizedFinancialStatement) if f.name not in _STATEMENT_KEYS]
SCORE_COLUMNS = [f.name for f in fields(ScoreResult)]
METRIC_COLUMNS = [f.name for f in fields(BigFiveMetrics)]

# Full-year rows are stored under quarter 0 so the primary key never holds NULL.
ANNUAL_QUARTER = 0


class SQLiteRepository:
    """Lightweight gateway for reading and writing statements and scores."""

    def __init__(self, database_uri: str, *, echo: bool = False) -> None:
        connect_args = {"check_same_thread": False} if database_uri.startswith("sqlite") else {}
        self._engine: Engine = create_engine(database_uri, echo=echo, future=True, connect_args=connect_args)
        # Batch runs write from several threads; SQLite allows one writer at a time.
        self._write_lock = threading.Lock()
        self._ensure_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    # -----------------
    # Schema management
    # -----------------
    def _ensure_schema(self) -> None:
        """Create core tables if they do not already exist."""
        statement_cols = ",\n".join(f"  {name} REAL" for name in STATEMENT_COLUMNS)
        score_cols = ",\n".join(
            f"  {name} {'REAL' if name in ('sticker_price', 'mos_price') else 'INTEGER'}" for name in SCORE_COLUMNS
        )
        metric_cols = ",\n".join(
            f"  {name} {'INTEGER' if name.endswith('_period') or name in ('years_of_data', 'is_predictable') else 'REAL'}"
            for name in METRIC_COLUMNS
        )
        ddl = [
            """
            CREATE TABLE IF NOT EXISTS companies (
              ticker TEXT PRIMARY KEY,
              cik TEXT,
              name TEXT,
              sector TEXT,
              industry TEXT,
              market_cap REAL,
              current_price REAL,
              updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            """,
            f"""
            CREATE TABLE IF NOT EXISTS statements (
              ticker TEXT NOT NULL,
              fiscal_year INTEGER NOT NULL,
              fiscal_quarter INTEGER NOT NULL DEFAULT 0,
              period_end_date DATE,
              filing_date DATE,
            {statement_cols},
              PRIMARY KEY (ticker, fiscal_year, fiscal_quarter)
            );
            """,
            f"""
            CREATE TABLE IF NOT EXISTS scores (
              ticker TEXT NOT NULL,
              calculated_at DATETIME NOT NULL,
            {score_cols},
            {metric_cols},
              PRIMARY KEY (ticker, calculated_at)
            );
            """,
            """CREATE INDEX IF NOT EXISTS idx_scores_ticker ON scores(ticker);""",
        ]
        with self._engine.begin() as conn:
            for statement in ddl:
                conn.execute(text(statement))

    # ---------
    # Companies
    # ---------
    def upsert_company(
        self,
        ticker: str,
        *,
        cik: Optional[str] = None,
        name: Optional[str] = None,
        sector: Optional[str] = None,
        industry: Optional[str] = None,
        market_cap: Optional[float] = None,
        current_price: Optional[float] = None,
    ) -> None:
        """Insert or refresh company descriptors; ``None`` keeps the stored value."""
        stmt = text(
            """
            INSERT INTO companies (ticker, cik, name, sector, industry, market_cap, current_price, updated_at)
            VALUES (:ticker, :cik, :name, :sector, :industry, :market_cap, :current_price, CURRENT_TIMESTAMP)
            ON CONFLICT(ticker) DO UPDATE SET
              cik=COALESCE(excluded.cik, companies.cik),
              name=COALESCE(excluded.name, companies.name),
              sector=COALESCE(excluded.sector, companies.sector),
              industry=COALESCE(excluded.industry, companies.industry),
              market_cap=COALESCE(excluded.market_cap, companies.market_cap),
              current_price=COALESCE(excluded.current_price, companies.current_price),
              updated_at=CURRENT_TIMESTAMP
            """
        )
        with self._write_lock, self._engine.begin() as conn:
            conn.execute(
                stmt,
                {
                    "ticker": ticker.upper(),
                    "cik": cik,
                    "name": name,
                    "sector": sector,
                    "industry": industry,
                    "market_cap": market_cap,
                    "current_price": current_price,
                },
            )

    def fetch_company(self, ticker: str) -> Optional[Dict[str, Any]]:
        query = text(
            """
            SELECT ticker, cik, name, sector, industry, market_cap, current_price, updated_at
            FROM companies
            WHERE ticker = :ticker
            LIMIT 1
            """
        )
        with self._engine.connect() as conn:
            row = conn.execute(query, {"ticker": ticker.upper()}).mappings().first()
            return dict(row) if row else None

    # ---------------
    # Statements CRUD
    # ---------------
    def upsert_statements(self, ticker: str, statements: Iterable[NormalizedFinancialStatement]) -> int:
        """Persist normalized statements keyed by (ticker, fiscal year, quarter)."""
        rows = []
        for stmt in statements:
            row: Dict[str, Any] = {name: getattr(stmt, name) for name in STATEMENT_COLUMNS}
            row.update(
                {
                    "ticker": ticker.upper(),
                    "fiscal_year": stmt.fiscal_year,
                    "fiscal_quarter": stmt.fiscal_quarter or ANNUAL_QUARTER,
                    "period_end_date": _iso(stmt.period_end_date),
                    "filing_date": _iso(stmt.filing_date),
                }
            )
            rows.append(row)
        if not rows:
            return 0

        columns = ["ticker", "fiscal_year", "fiscal_quarter", "period_end_date", "filing_date", *STATEMENT_COLUMNS]
        updates = ",\n".join(f"{name}=excluded.{name}" for name in columns[3:])
        column_list = ", ".join(columns)
        placeholders = ", ".join(":" + name for name in columns)
        stmt = text(
            f"""
            INSERT INTO statements ({column_list})
            VALUES ({placeholders})
            ON CONFLICT(ticker, fiscal_year, fiscal_quarter) DO UPDATE SET
            {updates}
            """
        )
        with self._write_lock, self._engine.begin() as conn:
            conn.execute(stmt, rows)
        return len(rows)

    def fetch_statements(
        self,
        ticker: str,
        *,
        annual_only: bool = True,
        limit: Optional[int] = None,
    ) -> List[NormalizedFinancialStatement]:
        """Load statements newest fiscal year first."""
        clauses = ["ticker = :ticker"]
        if annual_only:
            clauses.append(f"fiscal_quarter = {ANNUAL_QUARTER}")
        where = " AND ".join(clauses)
        limit_clause = f" LIMIT {int(limit)}" if limit is not None else ""
        query = text(
            f"""
            SELECT *
            FROM statements
            WHERE {where}
            ORDER BY fiscal_year DESC, fiscal_quarter ASC
            {limit_clause}
            """
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"ticker": ticker.upper()}).mappings().all()
        return [_row_to_statement(row) for row in rows]

    # ------
    # Scores
    # ------
    def save_scores(
        self,
        ticker: str,
        metrics: BigFiveMetrics,
        scores: ScoreResult,
        *,
        calculated_at: Optional[datetime] = None,
    ) -> datetime:
        """Store one score snapshot together with the Big Five it came from."""
        stamp = calculated_at or datetime.now(timezone.utc)
        row: Dict[str, Any] = {"ticker": ticker.upper(), "calculated_at": stamp.isoformat()}
        row.update(asdict(scores))
        row.update(asdict(metrics))
        row["is_predictable"] = int(metrics.is_predictable)

        columns = ["ticker", "calculated_at", *SCORE_COLUMNS, *METRIC_COLUMNS]
        updates = ",\n".join(f"{name}=excluded.{name}" for name in columns[2:])
        column_list = ", ".join(columns)
        placeholders = ", ".join(":" + name for name in columns)
        stmt = text(
            f"""
            INSERT INTO scores ({column_list})
            VALUES ({placeholders})
            ON CONFLICT(ticker, calculated_at) DO UPDATE SET
            {updates}
            """
        )
        with self._write_lock, self._engine.begin() as conn:
            conn.execute(stmt, row)
        return stamp

    def fetch_score_history(self, ticker: str, *, limit: Optional[int] = None) -> List[CompanySnapshot]:
        """Score snapshots for one company, most recent first."""
        limit_clause = f" LIMIT {int(limit)}" if limit is not None else ""
        query = text(
            f"""
            SELECT s.*, c.name, c.sector, c.industry, c.market_cap, c.current_price
            FROM scores s
            LEFT JOIN companies c ON c.ticker = s.ticker
            WHERE s.ticker = :ticker
            ORDER BY s.calculated_at DESC
            {limit_clause}
            """
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query, {"ticker": ticker.upper()}).mappings().all()
        return [_row_to_snapshot(row) for row in rows]

    def fetch_latest_scores(self, ticker: str) -> Optional[CompanySnapshot]:
        history = self.fetch_score_history(ticker, limit=1)
        return history[0] if history else None

    def fetch_latest_snapshots(self) -> List[CompanySnapshot]:
        """The most recent snapshot of every scored company."""
        query = text(
            """
            SELECT s.*, c.name, c.sector, c.industry, c.market_cap, c.current_price
            FROM scores s
            JOIN (
              SELECT ticker, MAX(calculated_at) AS latest
              FROM scores
              GROUP BY ticker
            ) m ON m.ticker = s.ticker AND m.latest = s.calculated_at
            LEFT JOIN companies c ON c.ticker = s.ticker
            ORDER BY s.ticker
            """
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).mappings().all()
        return [_row_to_snapshot(row) for row in rows]


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _row_to_statement(row: Any) -> NormalizedFinancialStatement:
    quarter = row["fiscal_quarter"]
    stmt = NormalizedFinancialStatement(
        fiscal_year=int(row["fiscal_year"]),
        fiscal_quarter=None if quarter in (None, ANNUAL_QUARTER) else int(quarter),
        period_end_date=_parse_date(row["period_end_date"]),
        filing_date=_parse_date(row["filing_date"]),
    )
    for name in STATEMENT_COLUMNS:
        value = row[name]
        setattr(stmt, name, float(value) if value is not None else None)
    return stmt


def _row_to_snapshot(row: Any) -> CompanySnapshot:
    scores = ScoreResult(**{name: row[name] for name in SCORE_COLUMNS})
    metrics = BigFiveMetrics(**{name: row[name] for name in METRIC_COLUMNS})
    metrics.is_predictable = bool(metrics.is_predictable)
    calculated_at = row["calculated_at"]
    if isinstance(calculated_at, str):
        calculated_at = datetime.fromisoformat(calculated_at)
    return CompanySnapshot(
        ticker=row["ticker"],
        scores=scores,
        metrics=metrics,
        name=row["name"],
        sector=row["sector"],
        industry=row["industry"],
        market_cap=row["market_cap"],
        current_price=row["current_price"],
        calculated_at=calculated_at,
    )
