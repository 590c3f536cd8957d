"""Builders for SEC payloads shared across test modules."""
from __future__ import annotations

from typing import Any, Dict, List

# concept -> (unit, base value, is_instant)
_COMPANY_CONCEPTS = {
    "Revenues": ("USD", 1000.0, False),
    "OperatingIncomeLoss": ("USD", 200.0, False),
    "IncomeLossFromContinuingOperationsBeforeIncomeTaxesExtraordinaryItemsNoncontrollingInterest": ("USD", 200.0, False),
    "IncomeTaxExpenseBenefit": ("USD", 42.0, False),
    "NetIncomeLoss": ("USD", 158.0, False),
    "EarningsPerShareBasic": ("USD/shares", 1.58, False),
    "WeightedAverageNumberOfSharesOutstandingBasic": ("shares", 100.0, False),
    "NetCashProvidedByUsedInOperatingActivities": ("USD", 250.0, False),
    "PaymentsToAcquirePropertyPlantAndEquipment": ("USD", 50.0, False),
    "StockholdersEquity": ("USD", 800.0, True),
    "LongTermDebtNoncurrent": ("USD", 100.0, True),
}


def build_companyfacts(first_year: int = 2014, years: int = 10, growth: float = 0.12) -> Dict[str, Any]:
    """SEC companyfacts payload for a company compounding every line at ``growth``."""
    concepts: Dict[str, Any] = {}
    for concept, (unit, base, instant) in _COMPANY_CONCEPTS.items():
        entries: List[Dict[str, Any]] = []
        for i in range(years):
            year = first_year + i
            entry = {
                "end": f"{year}-12-31",
                "val": round(base * (1 + growth) ** i, 6),
                "fy": year,
                "fp": "FY",
                "form": "10-K",
                "filed": f"{year + 1}-02-15",
            }
            if not instant:
                entry["start"] = f"{year}-01-01"
            entries.append(entry)
        concepts[concept] = {"units": {unit: entries}}
    return {"cik": 320193, "entityName": "Example Corp", "facts": {"us-gaap": concepts}}
