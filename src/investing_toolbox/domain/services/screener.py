"""Filter, rank and paginate company score snapshots."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from investing_toolbox.domain.models.financials import CompanySnapshot

SORT_FIELDS = ("value_score", "roic_score", "moat_score", "debt_score", "payback_time", "market_cap")
SORT_ORDERS = ("asc", "desc")
DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100

LEADERBOARD_MIN_VALUE_SCORE = 70
LEADERBOARD_DEFAULT_LIMIT = 50
LEADERBOARD_MAX_LIMIT = 100

_FRAME_COLUMNS = [
    "position",
    "ticker",
    "sector",
    "industry",
    "market_cap",
    "value_score",
    "roic_score",
    "moat_score",
    "debt_score",
    "payback_time",
    "is_predictable",
]


@dataclass
class ScreenCriteria:
    """Optional filters plus sorting and paging; unset filters match everything."""

    min_value_score: Optional[float] = None
    max_value_score: Optional[float] = None
    min_roic_score: Optional[float] = None
    min_moat_score: Optional[float] = None
    min_debt_score: Optional[float] = None
    max_payback_time: Optional[float] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    min_market_cap: Optional[float] = None
    max_market_cap: Optional[float] = None
    sort_by: str = "value_score"
    sort_order: str = "desc"
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def validated(self) -> "ScreenCriteria":
        problems: List[str] = []
        for name in ("min_value_score", "max_value_score", "min_roic_score", "min_moat_score", "min_debt_score"):
            value = getattr(self, name)
            if value is not None and not 0 <= value <= 100:
                problems.append(f"{name} must be between 0 and 100")
        if self.max_payback_time is not None and self.max_payback_time < 0:
            problems.append("max_payback_time must not be negative")
        if self.sort_by not in SORT_FIELDS:
            problems.append(f"sort_by must be one of {', '.join(SORT_FIELDS)}")
        if self.sort_order not in SORT_ORDERS:
            problems.append("sort_order must be 'asc' or 'desc'")
        if self.page < 1:
            problems.append("page must be at least 1")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            problems.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if problems:
            raise ValueError("; ".join(problems))
        return self


@dataclass
class ScreenPage:
    items: List[CompanySnapshot] = field(default_factory=list)
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    total: int = 0
    total_pages: int = 0


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    snapshot: CompanySnapshot


class Screener:
    """In-memory screen over the latest snapshot of each company."""

    def __init__(self, snapshots: Iterable[CompanySnapshot]) -> None:
        self._snapshots = list(snapshots)
        self._frame = _snapshot_frame(self._snapshots)

    def screen(self, criteria: Optional[ScreenCriteria] = None) -> ScreenPage:
        criteria = (criteria or ScreenCriteria()).validated()
        frame = self._frame
        mask = pd.Series(True, index=frame.index)

        # Null columns never satisfy a bound, as in a SQL WHERE clause.
        for column, bound, is_min in (
            ("value_score", criteria.min_value_score, True),
            ("value_score", criteria.max_value_score, False),
            ("roic_score", criteria.min_roic_score, True),
            ("moat_score", criteria.min_moat_score, True),
            ("debt_score", criteria.min_debt_score, True),
            ("payback_time", criteria.max_payback_time, False),
            ("market_cap", criteria.min_market_cap, True),
            ("market_cap", criteria.max_market_cap, False),
        ):
            if bound is None:
                continue
            mask &= frame[column] >= bound if is_min else frame[column] <= bound
        if criteria.sector:
            mask &= frame["sector"] == criteria.sector
        if criteria.industry:
            mask &= frame["industry"] == criteria.industry

        matched = frame[mask].sort_values(
            [criteria.sort_by, "ticker"],
            ascending=[criteria.sort_order == "asc", True],
            na_position="last",
            kind="mergesort",
        )
        total = len(matched)
        start = (criteria.page - 1) * criteria.limit
        window = matched.iloc[start : start + criteria.limit]
        return ScreenPage(
            items=[self._snapshots[int(pos)] for pos in window["position"]],
            page=criteria.page,
            limit=criteria.limit,
            total=total,
            total_pages=math.ceil(total / criteria.limit),
        )

    def leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Predictable companies scoring at least 70, best first, ranked from 1."""
        size = min(limit or LEADERBOARD_DEFAULT_LIMIT, LEADERBOARD_MAX_LIMIT)
        if size < 1:
            size = LEADERBOARD_DEFAULT_LIMIT
        frame = self._frame
        eligible = frame[(frame["value_score"] >= LEADERBOARD_MIN_VALUE_SCORE) & frame["is_predictable"]]
        ranked = eligible.sort_values(["value_score", "ticker"], ascending=[False, True], kind="mergesort")
        return [
            LeaderboardEntry(rank=rank, snapshot=self._snapshots[int(pos)])
            for rank, pos in enumerate(ranked["position"].head(size), start=1)
        ]

    def sector_counts(self) -> List[Tuple[str, int]]:
        """Known sectors with the number of companies in each, most populated first."""
        sectors = self._frame["sector"].dropna()
        if sectors.empty:
            return []
        counts = sectors.value_counts()
        ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [(str(sector), int(count)) for sector, count in ordered]


def _snapshot_frame(snapshots: List[CompanySnapshot]) -> pd.DataFrame:
    rows = [
        {
            "position": pos,
            "ticker": snap.ticker,
            "sector": snap.sector,
            "industry": snap.industry,
            "market_cap": snap.market_cap,
            "value_score": snap.scores.value_score,
            "roic_score": snap.scores.roic_score,
            "moat_score": snap.scores.moat_score,
            "debt_score": snap.scores.debt_score,
            "payback_time": snap.scores.payback_time,
            "is_predictable": snap.is_predictable,
        }
        for pos, snap in enumerate(snapshots)
    ]
    frame = pd.DataFrame(rows, columns=_FRAME_COLUMNS)
    numeric = ["market_cap", "value_score", "roic_score", "moat_score", "debt_score", "payback_time"]
    frame[numeric] = frame[numeric].apply(pd.to_numeric, errors="coerce")
    frame["is_predictable"] = frame["is_predictable"].astype(bool)
    return frame
