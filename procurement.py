"""Milk procurement point (MPP) collection statistics."""

from typing import Iterable, Mapping

from aggregator import as_number


def _mean(values: list) -> float:
    return sum(values) / len(values) if values else 0.0


def collection_stats(collections: Iterable[Mapping]) -> dict:
    collections = list(collections)
    return {
        "total_quantity": sum(as_number(c.get("quantity")) for c in collections),
        "total_amount": sum(as_number(c.get("total_amount")) for c in collections),
        "avg_fat": _mean([as_number(c.get("fat")) for c in collections]),
        "avg_snf": _mean([as_number(c.get("snf")) for c in collections]),
        "avg_rate": _mean([as_number(c.get("rate")) for c in collections]),
        "record_count": len(collections),
    }


def stats_by_shift(collections: Iterable[Mapping]) -> dict:
    by_shift = {}
    for c in collections:
        by_shift.setdefault(str(c.get("shift") or "").lower(), []).append(c)

    result = {}
    for shift, rows in by_shift.items():
        stats = collection_stats(rows)
        del stats["avg_rate"]
        result[shift] = stats
    return result


def finance_total(collections: Iterable[Mapping]) -> dict:
    collections = list(collections)
    return {
        "total_amount": sum(as_number(c.get("total_amount")) for c in collections),
        "total_quantity": sum(as_number(c.get("quantity")) for c in collections),
        "count": len(collections),
        "currency": "₹",
    }
