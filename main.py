import calendar
import logging
from datetime import date, timedelta
from io import BytesIO
from typing import Optional

import pandas as pd
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

import aggregator
import procurement
import rates
from database import LOG_LEVEL, RATE_CHART_PATH
from database import milk_production_collection
from database import mpp_collection
from schemas import (
    CattleRef,
    MilkCollectionCreate,
    MilkCollectionUpdate,
    MilkRecordBulkCreate,
    MilkRecordCreate,
    MilkRecordUpdate,
    RateQuote,
)

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# replaced as a whole on reload, never mutated in place
rate_chart = rates.load_rate_chart(RATE_CHART_PATH)


def _object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid record ID format")


def _public(e: dict) -> dict:
    e["id"] = str(e["_id"])
    del e["_id"]
    return e


def _find(collection, query: dict, sort_field: str, direction: int = -1) -> list:
    return [_public(e) for e in collection.find(query).sort(sort_field, direction)]


def _date_filter(start_date: Optional[date], end_date: Optional[date]) -> dict:
    bounds = {}
    if start_date:
        bounds["$gte"] = start_date.isoformat()
    if end_date:
        bounds["$lte"] = end_date.isoformat()
    return bounds


def _records(start_date: Optional[date] = None, end_date: Optional[date] = None, cattle_id: Optional[str] = None) -> list:
    query = {}
    if cattle_id:
        query["cattle_id"] = cattle_id
    bounds = _date_filter(start_date, end_date)
    if bounds:
        query["date"] = bounds
    return _find(milk_production_collection, query, "date")


def _save_production(entry: MilkRecordCreate) -> tuple:
    """Insert a record, or add the shift amount into the existing one for that cattle and day."""
    cattle_id = aggregator.cattle_key(entry.cattle_id)
    day = entry.date.isoformat()
    field = f"{entry.shift}_amount"
    tag = entry.cattle_id.tag_id if isinstance(entry.cattle_id, CattleRef) else None

    existing = milk_production_collection.find_one({"cattle_id": cattle_id, "date": day})
    if existing:
        changes = {}
        if entry.notes:
            changes["notes"] = entry.notes
        if tag:
            changes["cattle_tag"] = tag
        update = {"$inc": {field: entry.amount}}
        if changes:
            update["$set"] = changes
        milk_production_collection.update_one({"_id": existing["_id"]}, update)
        logger.info(f"Added {entry.amount}L {entry.shift} milk to {cattle_id} on {day}")
        return str(existing["_id"]), True

    record = {
        "cattle_id": cattle_id,
        "date": day,
        "shift": entry.shift,
        "morning_amount": entry.amount if entry.shift == "morning" else 0.0,
        "evening_amount": entry.amount if entry.shift == "evening" else 0.0,
        "notes": entry.notes,
    }
    if tag:
        record["cattle_tag"] = tag

    result = milk_production_collection.insert_one(record)
    return str(result.inserted_id), False


# ---------------- MILK PRODUCTION ----------------
@app.post("/milk-production", status_code=201)
def create_milk_production(entry: MilkRecordCreate):
    record_id, updated = _save_production(entry)
    message = "Milk production updated" if updated else "Milk production added"
    return {"message": message, "id": record_id, "updated": updated}


@app.post("/milk-production/bulk")
def create_bulk_milk_production(payload: MilkRecordBulkCreate):
    ids = []
    updated = 0
    for entry in payload.records:
        record_id, merged = _save_production(entry)
        ids.append(record_id)
        updated += merged
    return {
        "message": "Milk production saved",
        "count": len(ids),
        "created": len(ids) - updated,
        "updated": updated,
        "ids": ids,
    }


@app.get("/milk-production")
def get_milk_production(
    cattle_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return _records(start_date, end_date, cattle_id)


@app.get("/milk-production/cattle/{cattle_id}")
def get_milk_production_by_cattle(
    cattle_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(30, ge=1),
):
    return _records(start_date, end_date, cattle_id)[:limit]


@app.get("/milk-production/{record_id}")
def get_milk_production_record(record_id: str):
    record = milk_production_collection.find_one({"_id": _object_id(record_id)})
    if not record:
        raise HTTPException(status_code=404, detail="Milk production record not found")
    return _public(record)


@app.put("/milk-production/{record_id}")
def update_milk_production(record_id: str, entry: MilkRecordUpdate):
    changes = entry.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No fields to update")

    if "cattle_id" in changes:
        changes["cattle_id"] = aggregator.cattle_key(entry.cattle_id)
        if isinstance(entry.cattle_id, CattleRef) and entry.cattle_id.tag_id:
            changes["cattle_tag"] = entry.cattle_id.tag_id
    if "date" in changes:
        changes["date"] = entry.date.isoformat()

    result = milk_production_collection.update_one(
        {"_id": _object_id(record_id)},
        {"$set": changes}
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Milk production record not found")
    return {"message": "Milk production updated"}


@app.delete("/milk-production/{record_id}")
def delete_milk_production(record_id: str):
    result = milk_production_collection.delete_one({"_id": _object_id(record_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Milk production record not found")
    return {"message": "Deleted"}


@app.post("/milk-production/bulk-delete")
def bulk_delete_milk_production(ids: list[str]):
    result = milk_production_collection.delete_many({
        "_id": {"$in": [_object_id(i) for i in ids]}
    })
    return {"message": "Deleted", "count": result.deleted_count}


# ---------------- REPORTS ----------------
@app.get("/reports/daily-total/{day}")
def daily_total(day: date):
    return {
        "date": day.isoformat(),
        "total": round(aggregator.daily_total(_records(day, day), day), 2),
    }


@app.get("/reports/shift-share/{day}")
def shift_share(day: date):
    records = _records(day, day)
    totals = aggregator.shift_totals(records, day)
    share = aggregator.shift_share(records, day)
    return {
        "date": day.isoformat(),
        "morning": round(totals["morning"], 2),
        "evening": round(totals["evening"], 2),
        "morning_pct": round(share["morning"], 1),
        "evening_pct": round(share["evening"], 1),
    }


@app.get("/reports/period")
def period_report(
    start_date: Optional[date] = Query(None, description="Start date YYYY-MM-DD"),
    end_date: Optional[date] = Query(None, description="End date YYYY-MM-DD, defaults to today"),
):
    end_date = end_date or date.today()
    records = _records(start_date, end_date)
    best = aggregator.highest_day(records, start_date, end_date)
    return {
        "start_date": start_date.isoformat() if start_date else None,
        "end_date": end_date.isoformat(),
        "total": round(aggregator.period_total(records, start_date, end_date), 2),
        "daily_average": round(aggregator.daily_average(records, start_date, end_date), 2),
        "highest_day": {"date": best.date, "amount": round(best.amount, 2)},
    }


@app.get("/reports/weekly-summary")
def weekly_summary(as_of: Optional[date] = None):
    as_of = as_of or date.today()
    records = _records(as_of - timedelta(days=6), as_of)
    summary = aggregator.week_summary(records, as_of)
    summary["total"] = round(summary["total"], 2)
    summary["daily_average"] = round(summary["daily_average"], 2)
    return summary


@app.get("/reports/monthly-summary")
def monthly_summary(
    year: Optional[int] = Query(None, ge=1, example=2026),
    month: Optional[int] = Query(None, ge=1, le=12, example=1),
):
    today = date.today()
    year, month = year or today.year, month or today.month
    last_day = calendar.monthrange(year, month)[1]
    records = _records(date(year, month, 1), date(year, month, last_day))

    summary = aggregator.month_summary(records, year, month)
    best = summary["highest_day"]
    summary["total"] = round(summary["total"], 2)
    summary["daily_average"] = round(summary["daily_average"], 2)
    summary["highest_day"] = {"date": best.date, "amount": round(best.amount, 2)}
    return summary


@app.get("/reports/cattle/{cattle_id}/weekly-average")
def cattle_weekly_average(cattle_id: str, as_of: Optional[date] = None):
    as_of = as_of or date.today()
    records = _records(as_of - timedelta(days=6), as_of, cattle_id)
    average = aggregator.weekly_average_for_cattle(records, cattle_id, as_of)
    return {"cattle_id": cattle_id, "weekly_average": round(average, 2)}


# ---------------- TREND CHART ----------------
@app.get("/charts/trend")
def trend_chart(days: int = Query(7, ge=1, le=366)):
    # the last populated days can be anywhere in history, so no date bound here
    return [
        {"date": point.date, "total": round(point.total, 2)}
        for point in aggregator.trend(_records(), days)
    ]


@app.get("/reports/export-excel-range")
def export_excel_range(
    from_date: date = Query(..., description="Start date YYYY-MM-DD"),
    to_date: date = Query(..., description="End date YYYY-MM-DD"),
):
    data = []

    for e in milk_production_collection.find({
        "date": _date_filter(from_date, to_date)
    }).sort("date", 1):
        data.append({
            "Date": e.get("date"),
            "Cattle": e.get("cattle_tag") or e.get("cattle_id"),
            "Morning": round(aggregator.as_number(e.get("morning_amount")), 2),
            "Evening": round(aggregator.as_number(e.get("evening_amount")), 2),
            "Total": round(aggregator.record_total(e), 2),
            "Notes": e.get("notes") or "",
        })

    df = pd.DataFrame(data, columns=["Date", "Cattle", "Morning", "Evening", "Total", "Notes"])

    output = BytesIO()
    df.to_excel(output, index=False, engine="openpyxl")
    output.seek(0)

    filename = f"milk_production_{from_date}_to_{to_date}.xlsx"

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition": f"attachment; filename={filename}"
        }
    )


# ---------------- RATE CHART ----------------
@app.get("/rates", response_model=RateQuote)
def get_rate(
    fat: float = Query(..., gt=0),
    snf: float = Query(..., gt=0),
    nearest: bool = False,
):
    if nearest:
        rate = rates.nearest_rate(rate_chart, fat, snf)
    else:
        rate = rates.rate_for(rate_chart, fat, snf)
    return RateQuote(fat=fat, snf=snf, rate=rate)


@app.get("/rates/values")
def get_rate_values():
    if not rate_chart:
        raise HTTPException(status_code=503, detail="Rate chart data is not available")
    return rates.available_values(rate_chart)


@app.post("/rates/reload")
def reload_rates():
    global rate_chart

    table = rates.load_rate_chart(RATE_CHART_PATH)
    if not table:
        raise HTTPException(status_code=503, detail="Rate chart could not be loaded, current chart kept")
    rate_chart = table
    return {"message": "Rate chart reloaded", "entries": len(table)}


# ---------------- PROCUREMENT (MPP) ----------------
@app.post("/mpp/collection", status_code=201)
def create_milk_collection(entry: MilkCollectionCreate):
    priced = rates.price_collection(rate_chart, entry.quantity, entry.fat, entry.snf)
    if priced["rate"] == 0:
        logger.warning(f"No rate for FAT={entry.fat} SNF={entry.snf}, storing collection unpriced")

    doc = {
        "farmer_id": entry.farmer_id,
        "collection_date": entry.collection_date.isoformat(),
        "shift": entry.shift,
        "milk_type": entry.milk_type,
        "fat": entry.fat,
        "snf": entry.snf,
        "quantity": entry.quantity,
        **priced,
    }
    mpp_collection.insert_one(doc)
    return _public(doc)


def _collection_query(farmer_id, start_date, end_date, shift=None, milk_type=None) -> dict:
    query = {}
    if farmer_id:
        query["farmer_id"] = farmer_id
    if shift:
        query["shift"] = shift.lower()
    if milk_type:
        query["milk_type"] = milk_type.upper()
    bounds = _date_filter(start_date, end_date)
    if bounds:
        query["collection_date"] = bounds
    return query


@app.get("/mpp/collection")
def get_milk_collections(
    farmer_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    shift: Optional[str] = None,
    milk_type: Optional[str] = None,
):
    query = _collection_query(farmer_id, start_date, end_date, shift, milk_type)
    return _find(mpp_collection, query, "collection_date")


@app.get("/mpp/collection/stats")
def get_milk_collection_stats(
    farmer_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    rows = mpp_collection.find(_collection_query(farmer_id, start_date, end_date))
    stats = procurement.collection_stats(rows)
    return {k: round(v, 2) if isinstance(v, float) else v for k, v in stats.items()}


@app.get("/mpp/collection/by-shift")
def get_milk_collection_by_shift(
    farmer_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    rows = mpp_collection.find(_collection_query(farmer_id, start_date, end_date))
    return procurement.stats_by_shift(rows)


@app.get("/mpp/collection/{collection_id}")
def get_milk_collection(collection_id: str):
    doc = mpp_collection.find_one({"_id": _object_id(collection_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Milk collection record not found")
    return _public(doc)


@app.put("/mpp/collection/{collection_id}")
def update_milk_collection(collection_id: str, entry: MilkCollectionUpdate):
    oid = _object_id(collection_id)
    existing = mpp_collection.find_one({"_id": oid})
    if not existing:
        raise HTTPException(status_code=404, detail="Milk collection record not found")

    changes = entry.model_dump(exclude_none=True)
    if "collection_date" in changes:
        changes["collection_date"] = entry.collection_date.isoformat()

    # fat, snf or quantity changes reprice the collection
    if changes.keys() & {"fat", "snf", "quantity"}:
        changes.update(rates.price_collection(
            rate_chart,
            changes.get("quantity", existing.get("quantity")),
            changes.get("fat", existing.get("fat")),
            changes.get("snf", existing.get("snf")),
        ))

    if changes:
        mpp_collection.update_one({"_id": oid}, {"$set": changes})
    return _public(mpp_collection.find_one({"_id": oid}))


@app.delete("/mpp/collection/{collection_id}")
def delete_milk_collection(collection_id: str):
    result = mpp_collection.delete_one({"_id": _object_id(collection_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Milk collection record not found")
    return {"message": "Milk collection record deleted"}


@app.get("/mpp/finance/total")
def get_mpp_finance_total(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    rows = mpp_collection.find(_collection_query(None, start_date, end_date))
    total = procurement.finance_total(rows)
    total["total_amount"] = round(total["total_amount"], 2)
    total["total_quantity"] = round(total["total_quantity"], 2)
    return total
