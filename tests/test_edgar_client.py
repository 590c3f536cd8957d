from __future__ import annotations

import httpx
import pytest

from investing_toolbox.infrastructure.data_providers.edgar_client import (
    DataProviderError,
    EdgarClient,
    TickerCikCache,
    TickerNotFoundError,
    pad_cik,
    parse_company_facts,
)

TICKER_MAP = {
    "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
    "1": {"cik_str": 789019, "ticker": "MSFT", "title": "MICROSOFT CORP"},
    "2": {"cik_str": 1018724, "ticker": "AMZN", "title": "AMAZON COM INC"},
}


def _mk_client(handler, **kwargs):
    return EdgarClient(
        "Tests tests@example.com",
        transport=httpx.MockTransport(handler),
        backoff_seconds=0,
        **kwargs,
    )


def _router(companyfacts, calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/files/company_tickers.json":
            return httpx.Response(200, json=TICKER_MAP)
        if request.url.path == "/api/xbrl/companyfacts/CIK0000320193.json":
            return httpx.Response(200, json=companyfacts)
        return httpx.Response(404)

    return handler


def test_pad_cik():
    assert pad_cik(320193) == "0000320193"
    assert pad_cik("0000320193") == "0000320193"


def test_lookup_and_fetch_raw_facts(companyfacts_payload):
    calls = []
    with _mk_client(_router(companyfacts_payload, calls)) as client:
        ref, facts = client.fetch_raw_facts("aapl")
        client.lookup_company("MSFT")

    assert ref.ticker == "AAPL"
    assert ref.cik == "0000320193"
    assert ref.name == "Apple Inc."
    assert len(facts) == 11 * 10
    # The ticker map is downloaded once and cached.
    assert calls.count("/files/company_tickers.json") == 1


def test_unknown_ticker_raises(companyfacts_payload):
    with _mk_client(_router(companyfacts_payload, [])) as client:
        with pytest.raises(TickerNotFoundError):
            client.lookup_company("ZZZZ")


def test_server_errors_are_retried():
    attempts = []

    def handler(request):
        attempts.append(request.url.path)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"facts": {}})

    with _mk_client(handler, max_retries=3) as client:
        assert client.fetch_company_facts("1") == {"facts": {}}
    assert len(attempts) == 3


def test_rate_limit_exhausts_retries():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(429)

    with _mk_client(handler, max_retries=2) as client:
        with pytest.raises(DataProviderError):
            client.fetch_company_facts("1")
    assert len(attempts) == 2


def test_client_errors_are_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(404)

    with _mk_client(handler) as client:
        with pytest.raises(DataProviderError, match="404"):
            client.fetch_company_facts("1")
    assert len(attempts) == 1


def test_invalid_json_is_a_provider_error():
    def handler(request):
        return httpx.Response(200, content=b"<html>nope</html>")

    with _mk_client(handler) as client:
        with pytest.raises(DataProviderError, match="invalid JSON"):
            client.fetch_company_facts("1")


def test_user_agent_is_required():
    with pytest.raises(ValueError):
        EdgarClient("")


def test_ticker_cache_search():
    loads = []

    def loader():
        loads.append(1)
        return TICKER_MAP

    cache = TickerCikCache(loader)
    assert not cache.loaded
    assert [ref.ticker for ref in cache.search("micro")] == ["MSFT"]
    assert [ref.ticker for ref in cache.search("a")] == ["AAPL", "AMZN"]
    assert cache.search("a", limit=1)[0].ticker == "AAPL"
    assert cache.search("  ") == []
    assert len(cache) == 3
    assert cache.loaded
    assert len(loads) == 1


def test_parse_company_facts_skips_incomplete_entries():
    payload = {
        "facts": {
            "us-gaap": {
                "Revenues": {
                    "units": {
                        "USD": [
                            {"start": "2023-01-01", "end": "2023-12-31", "val": 10, "fy": 2023, "fp": "FY",
                             "form": "10-K", "filed": "2024-02-01"},
                            {"end": "2023-12-31", "val": 10, "fp": "FY", "form": "10-K"},
                            {"end": "2023-12-31", "fy": 2023, "fp": "FY", "form": "10-K"},
                            {"end": "not-a-date", "val": 1, "fy": 2023, "fp": "FY", "form": "10-K"},
                        ]
                    }
                }
            },
            "dei": {"EntityCommonStockSharesOutstanding": {"units": {"shares": [{"end": "2023-12-31", "val": 5}]}}},
        }
    }
    facts = parse_company_facts(payload)
    assert len(facts) == 1
    fact = facts[0]
    assert fact.concept == "Revenues"
    assert fact.value == 10.0
    assert fact.period_start.isoformat() == "2023-01-01"
    assert fact.filed.isoformat() == "2024-02-01"
    assert parse_company_facts({}) == []
