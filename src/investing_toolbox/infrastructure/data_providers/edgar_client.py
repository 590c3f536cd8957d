"""Thin wrapper around the SEC EDGAR XBRL API with project defaults."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import httpx

from investing_toolbox.domain.models.financials import RawFact
from investing_toolbox.settings.config import Config

logger = logging.getLogger(__name__)

CIK_WIDTH = 10
SEARCH_LIMIT = 10
DEFAULT_TAXONOMY = "us-gaap"


class DataProviderError(RuntimeError):
    """Upstream data could not be retrieved."""


class TickerNotFoundError(LookupError):
    """The ticker is not present in the SEC ticker mapping."""


@dataclass(frozen=True)
class CompanyRef:
    ticker: str
    cik: str
    name: str


def pad_cik(cik: Any) -> str:
    return str(cik).strip().zfill(CIK_WIDTH)


class TickerCikCache:
    """Ticker -> CIK mapping loaded once through ``loader`` and never invalidated.

    ``loader`` returns the SEC ``company_tickers.json`` payload: an object whose
    values carry ``cik_str``, ``ticker`` and ``title``.
    """

    def __init__(self, loader: Callable[[], Mapping[str, Any]]) -> None:
        self._loader = loader
        self._entries: Optional[Dict[str, CompanyRef]] = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    def __len__(self) -> int:
        return len(self._mapping())

    def lookup(self, ticker: str) -> Optional[CompanyRef]:
        return self._mapping().get(ticker.strip().upper())

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[CompanyRef]:
        """Case-insensitive substring match on ticker or company name."""
        needle = query.strip().lower()
        if not needle:
            return []
        hits: List[CompanyRef] = []
        for ref in self._mapping().values():
            if needle in ref.ticker.lower() or needle in ref.name.lower():
                hits.append(ref)
                if len(hits) >= limit:
                    break
        return hits

    def _mapping(self) -> Dict[str, CompanyRef]:
        if self._entries is None:
            with self._lock:
                if self._entries is None:
                    self._entries = self._build(self._loader())
                    logger.info("Loaded %d SEC ticker mappings", len(self._entries))
        return self._entries

    @staticmethod
    def _build(payload: Mapping[str, Any]) -> Dict[str, CompanyRef]:
        entries: Dict[str, CompanyRef] = {}
        for item in payload.values():
            ticker = str(item.get("ticker") or "").strip().upper()
            if not ticker or item.get("cik_str") is None:
                continue
            entries[ticker] = CompanyRef(
                ticker=ticker,
                cik=pad_cik(item["cik_str"]),
                name=str(item.get("title") or ""),
            )
        return entries


class EdgarClient:
    """Fetch SEC company facts; retries transport errors and 429/5xx responses."""

    def __init__(
        self,
        user_agent: str,
        *,
        base_url: str = "https://data.sec.gov",
        ticker_map_url: str = "https://www.sec.gov/files/company_tickers.json",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
        ticker_cache: Optional[TickerCikCache] = None,
    ) -> None:
        if not user_agent:
            raise ValueError("SEC_USER_AGENT is required; EDGAR rejects anonymous clients.")
        client_kwargs: Dict[str, Any] = {
            "base_url": base_url,
            "headers": {"User-Agent": user_agent, "Accept": "application/json"},
            "timeout": httpx.Timeout(timeout, connect=10.0),
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._http_client = httpx.Client(**client_kwargs)
        self._ticker_map_url = ticker_map_url
        self._max_retries = max(max_retries, 1)
        self._backoff_seconds = backoff_seconds
        self.tickers = ticker_cache or TickerCikCache(self._load_ticker_map)

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> "EdgarClient":
        return cls(
            config.sec_user_agent,
            base_url=config.edgar_base_url,
            ticker_map_url=config.ticker_map_url,
            timeout=config.http_timeout,
            **kwargs,
        )

    # ------------------
    # Public API helpers
    # ------------------
    def lookup_company(self, ticker: str) -> CompanyRef:
        ref = self.tickers.lookup(ticker)
        if ref is None:
            raise TickerNotFoundError(f"No SEC data found for ticker {ticker.upper()}")
        return ref

    def fetch_company_facts(self, cik: str) -> Dict[str, Any]:
        """Raw companyfacts JSON for a CIK."""
        return self._get_json(f"/api/xbrl/companyfacts/CIK{pad_cik(cik)}.json")

    def fetch_raw_facts(self, ticker: str, taxonomy: str = DEFAULT_TAXONOMY) -> Tuple[CompanyRef, List[RawFact]]:
        ref = self.lookup_company(ticker)
        payload = self.fetch_company_facts(ref.cik)
        facts = parse_company_facts(payload, taxonomy=taxonomy)
        logger.info("%s: fetched %d XBRL facts (CIK %s)", ref.ticker, len(facts), ref.cik)
        return ref, facts

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http_client.close()

    def __enter__(self) -> "EdgarClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -----------------
    # Internal helpers
    # -----------------
    def _load_ticker_map(self) -> Dict[str, Any]:
        logger.info("Loading SEC ticker to CIK mapping...")
        return self._get_json(self._ticker_map_url)

    def _get_json(self, url: str) -> Dict[str, Any]:
        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._http_client.get(url)
                if response.status_code == 429 or response.status_code >= 500:
                    response.raise_for_status()
                if response.status_code >= 400:
                    raise DataProviderError(f"EDGAR request {url} failed with HTTP {response.status_code}")
                return response.json()
            except (httpx.TransportError, httpx.HTTPStatusError) as exc:
                last_exc = exc
                logger.warning("EDGAR request %s failed (attempt %d/%d): %s", url, attempt, self._max_retries, exc)
                if attempt >= self._max_retries:
                    break
                time.sleep(self._backoff_seconds * attempt)
            except ValueError as exc:
                raise DataProviderError(f"EDGAR returned invalid JSON for {url}") from exc
        raise DataProviderError(f"EDGAR request {url} failed after {self._max_retries} attempts") from last_exc


def parse_company_facts(payload: Mapping[str, Any], taxonomy: str = DEFAULT_TAXONOMY) -> List[RawFact]:
    """Flatten ``facts.<taxonomy>.<tag>.units.<unit>[]`` into ``RawFact`` records.

    Entries missing a fiscal year, period, form, end date or value are skipped.
    """
    concepts = (payload.get("facts") or {}).get(taxonomy) or {}
    facts: List[RawFact] = []
    for concept, body in concepts.items():
        for unit, entries in (body.get("units") or {}).items():
            for entry in entries:
                fact = _to_raw_fact(concept, unit, entry)
                if fact is not None:
                    facts.append(fact)
    return facts


def _to_raw_fact(concept: str, unit: str, entry: Mapping[str, Any]) -> Optional[RawFact]:
    fiscal_year = entry.get("fy")
    period_end = _parse_date(entry.get("end"))
    value = entry.get("val")
    if fiscal_year is None or period_end is None or value is None or not entry.get("fp") or not entry.get("form"):
        return None
    try:
        return RawFact(
            concept=concept,
            unit=unit,
            fiscal_year=int(fiscal_year),
            fiscal_period=str(entry["fp"]),
            form=str(entry["form"]),
            period_end=period_end,
            value=float(value),
            period_start=_parse_date(entry.get("start")),
            filed=_parse_date(entry.get("filed")),
        )
    except (TypeError, ValueError):
        return None


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None
