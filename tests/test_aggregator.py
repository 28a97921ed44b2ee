from datetime import date

import pytest

import aggregator
from schemas import CattleRef


def test_daily_total_sums_every_shift_entry(records):
    assert aggregator.daily_total(records, "2024-01-01") == 23
    assert aggregator.daily_total(records, date(2024, 1, 2)) == 12
    assert aggregator.daily_total(records, "2024-02-01") == 0


def test_period_total_matches_sum_of_daily_totals(records):
    total = aggregator.period_total(records, "2024-01-01", "2024-01-02")
    assert total == 35
    assert total == sum(aggregator.daily_total(records, d) for d in ["2024-01-01", "2024-01-02"])


def test_period_total_bounds_are_inclusive_and_default_open(records):
    assert aggregator.period_total(records, "2024-01-02", "2024-01-02") == 12
    assert aggregator.period_total(records, end="2024-01-01") == 23
    assert aggregator.period_total(records, today=date(2024, 1, 1)) == 23
    assert aggregator.period_total(records, "2024-01-02", today="2024-06-30") == 12


def test_daily_average_divides_by_populated_days(records):
    assert aggregator.daily_average(records, "2024-01-01", "2024-01-02") == pytest.approx(17.5)

    sparse = [
        {"date": "2024-03-02", "morning_amount": 10},
        {"date": "2024-03-15", "morning_amount": 20},
        {"date": "2024-03-15", "evening_amount": 10},
        {"date": "2024-03-28", "evening_amount": 30},
    ]
    assert aggregator.daily_average(sparse, "2024-03-01", "2024-03-30") == pytest.approx(70 / 3)


def test_daily_average_without_records_is_zero(records):
    assert aggregator.daily_average(records, "2025-01-01", "2025-01-31") == 0.0
    assert aggregator.daily_average([], end="2025-01-31") == 0.0


def test_missing_or_bad_amounts_count_as_zero():
    rows = [
        {"date": "2024-01-01", "morning_amount": None, "evening_amount": "4.5"},
        {"date": "2024-01-01", "morning_amount": "abc", "evening_amount": float("nan")},
        {"date": "2024-01-01"},
    ]
    assert aggregator.daily_total(rows, "2024-01-01") == 4.5


@pytest.mark.parametrize("value", [
    "c1",
    {"id": "c1", "tag_id": "TAG-7"},
    {"_id": "c1", "tagId": "TAG-7"},
    CattleRef(id="c1", tag_id="TAG-7"),
])
def test_cattle_key_normalizes_references(value):
    assert aggregator.cattle_key(value) == "c1"


def test_weekly_average_for_cattle_uses_trailing_week():
    rows = [
        {"cattle_id": "c1", "date": "2024-01-10", "morning_amount": 6, "evening_amount": 4},
        {"cattle_id": {"id": "c1", "tag_id": "T1"}, "date": "2024-01-10", "evening_amount": 2},
        {"cattle_id": "c1", "date": "2024-01-04", "morning_amount": 8},
        {"cattle_id": "c1", "date": "2024-01-03", "morning_amount": 100},
        {"cattle_id": "c2", "date": "2024-01-09", "morning_amount": 50},
    ]
    # 2024-01-03 is outside the 7 days ending on 2024-01-10
    assert aggregator.weekly_average_for_cattle(rows, "c1", "2024-01-10") == pytest.approx(10)
    assert aggregator.weekly_average_for_cattle(rows, CattleRef(id="c2"), date(2024, 1, 10)) == 50
    assert aggregator.weekly_average_for_cattle(rows, "c3", "2024-01-10") == 0.0


def test_highest_day_keeps_first_day_on_tie():
    rows = [
        {"date": "2024-01-03", "morning_amount": 10},
        {"date": "2024-01-01", "morning_amount": 4},
        {"date": "2024-01-01", "evening_amount": 6},
        {"date": "2024-01-02", "morning_amount": 9},
    ]
    best = aggregator.highest_day(rows, "2024-01-01", "2024-01-31")
    assert best.date == "2024-01-03"
    assert best.amount == 10


def test_highest_day_empty_period():
    best = aggregator.highest_day([], "2024-01-01", "2024-01-31")
    assert best.date is None
    assert best.amount == 0.0


def test_trend_returns_last_days_in_order():
    rows = [{"date": f"2024-01-{day:02d}", "morning_amount": day} for day in range(10, 0, -1)]
    rows.append({"date": "2024-01-10", "evening_amount": 1})

    points = aggregator.trend(rows)
    assert [p.date for p in points] == [f"2024-01-{day:02d}" for day in range(4, 11)]
    assert points[-1].total == 11
    assert len({p.date for p in points}) == len(points)

    assert len(aggregator.trend(rows, window_days=3)) == 3
    assert aggregator.trend(rows, window_days=0) == []


def test_shift_share_percentages():
    rows = [
        {"date": "2024-01-01", "morning_amount": 6},
        {"date": "2024-01-01", "morning_amount": 0, "evening_amount": 4},
    ]
    assert aggregator.shift_totals(rows, "2024-01-01") == {"morning": 6, "evening": 4}
    share = aggregator.shift_share(rows, "2024-01-01")
    assert share["morning"] == pytest.approx(60)
    assert share["evening"] == pytest.approx(40)
    assert aggregator.shift_share(rows, "2024-01-02") == {"morning": 0.0, "evening": 0.0}


def test_week_summary():
    rows = [
        {"date": "2024-01-10", "morning_amount": 10},
        {"date": "2024-01-10", "evening_amount": 5},
        {"date": "2024-01-05", "morning_amount": 15},
        {"date": "2024-01-01", "morning_amount": 99},
    ]
    summary = aggregator.week_summary(rows, "2024-01-10")
    assert summary["start"] == "2024-01-04"
    assert summary["total"] == 30
    assert summary["daily_average"] == 15
    assert summary["record_count"] == 3
    assert summary["days_with_data"] == 2


def test_month_summary():
    rows = [
        {"date": "2024-02-01", "morning_amount": 10, "evening_amount": 10},
        {"date": "2024-02-14", "morning_amount": 30},
        {"date": "2024-03-01", "morning_amount": 500},
    ]
    summary = aggregator.month_summary(rows, 2024, 2)
    assert summary["total"] == 50
    assert summary["daily_average"] == 25
    assert summary["projected_total"] == 25 * 29
    assert summary["highest_day"].date == "2024-02-14"
    assert summary["record_count"] == 2


def test_cattle_key_keeps_falsy_ids():
    assert aggregator.cattle_key({"id": 0, "_id": "other"}) == "0"
    assert aggregator.cattle_key({"_id": 0}) == "0"
    assert aggregator.cattle_key(0) == "0"
    assert aggregator.cattle_key(None) == ""
