"""Daily, weekly and monthly milk summaries computed from raw records.

Every function takes the records explicitly and returns a fresh result.
Amounts that are missing or not numbers count as 0.
"""

import calendar
import math
from datetime import date, timedelta
from typing import Iterable, Mapping, Optional

from schemas import DailyTotal, HighestDay


def as_number(value) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(amount) else amount


def _day(value) -> str:
    if isinstance(value, date):
        value = value.isoformat()
    return str(value or "")[:10]


def cattle_key(value) -> str:
    """Plain id for a cattle reference, whether stored as a string or a populated object."""
    if isinstance(value, Mapping):
        value = value.get("id") if value.get("id") is not None else value.get("_id")
    else:
        value = getattr(value, "id", value)
    return "" if value is None else str(value)


def record_total(record: Mapping) -> float:
    return as_number(record.get("morning_amount")) + as_number(record.get("evening_amount"))


def _in_range(day: str, start: Optional[str], end: str) -> bool:
    return (start is None or day >= start) and day <= end


def _window(records: Iterable[Mapping], start, end, today) -> list:
    start = _day(start) if start else None
    end = _day(end or today or date.today())
    return [r for r in records if _in_range(_day(r.get("date")), start, end)]


def group_by_day(records: Iterable[Mapping]) -> dict:
    by_day = {}
    for record in records:
        key = _day(record.get("date"))
        by_day[key] = by_day.get(key, 0.0) + record_total(record)
    return by_day


def _populated_average(by_day: dict) -> float:
    if not by_day:
        return 0.0
    return sum(by_day.values()) / len(by_day)


# ---------------- TOTALS ----------------
def daily_total(records: Iterable[Mapping], day) -> float:
    key = _day(day)
    return sum(record_total(r) for r in records if _day(r.get("date")) == key)


def period_total(records, start=None, end=None, today=None) -> float:
    return sum(record_total(r) for r in _window(records, start, end, today))


def shift_totals(records: Iterable[Mapping], day) -> dict:
    key = _day(day)
    morning = evening = 0.0
    for record in records:
        if _day(record.get("date")) != key:
            continue
        morning += as_number(record.get("morning_amount"))
        evening += as_number(record.get("evening_amount"))
    return {"morning": morning, "evening": evening}


def shift_share(records: Iterable[Mapping], day) -> dict:
    totals = shift_totals(records, day)
    day_total = totals["morning"] + totals["evening"]
    if day_total == 0:
        return {"morning": 0.0, "evening": 0.0}
    return {shift: amount / day_total * 100 for shift, amount in totals.items()}


# ---------------- AVERAGES ----------------
def daily_average(records, start=None, end=None, today=None) -> float:
    # denominator is the number of days that have records, not the calendar span
    return _populated_average(group_by_day(_window(records, start, end, today)))


def weekly_average_for_cattle(records, cattle_id, as_of=None) -> float:
    as_of = as_of or date.today()
    start = date.fromisoformat(_day(as_of)) - timedelta(days=6)
    wanted = cattle_key(cattle_id)
    own = [r for r in records if cattle_key(r.get("cattle_id")) == wanted]
    return _populated_average(group_by_day(_window(own, start, as_of, None)))


def highest_day(records, start=None, end=None, today=None) -> HighestDay:
    best = HighestDay(date=None, amount=0.0)
    for day, amount in group_by_day(_window(records, start, end, today)).items():
        # strict comparison keeps the first day seen on ties
        if best.date is None or amount > best.amount:
            best = HighestDay(date=day, amount=amount)
    return best


def trend(records: Iterable[Mapping], window_days: int = 7) -> list:
    if window_days <= 0:
        return []
    points = sorted(group_by_day(records).items())
    return [DailyTotal(date=day, total=total) for day, total in points[-window_days:]]


# ---------------- ROLLUPS ----------------
def week_summary(records, as_of=None) -> dict:
    as_of = date.fromisoformat(_day(as_of or date.today()))
    week = _window(records, as_of - timedelta(days=6), as_of, None)
    by_day = group_by_day(week)
    return {
        "start": (as_of - timedelta(days=6)).isoformat(),
        "end": as_of.isoformat(),
        "total": sum(by_day.values()),
        "daily_average": _populated_average(by_day),
        "record_count": len(week),
        "days_with_data": len(by_day),
    }


def month_summary(records, year: int, month: int) -> dict:
    days_in_month = calendar.monthrange(year, month)[1]
    start = date(year, month, 1)
    end = date(year, month, days_in_month)
    month_records = _window(records, start, end, None)
    by_day = group_by_day(month_records)
    average = _populated_average(by_day)
    return {
        "year": year,
        "month": month,
        "total": sum(by_day.values()),
        "daily_average": average,
        "projected_total": round(average * days_in_month),
        "highest_day": highest_day(month_records, start, end),
        "record_count": len(month_records),
    }
