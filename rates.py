"""Fat/SNF rate chart: loading from Excel and price lookups."""

import logging
import zipfile
from typing import Dict, Mapping, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

RateTable = Dict[Tuple[float, float], float]


def _key(fat, snf) -> Tuple[float, float]:
    return round(float(fat), 2), round(float(snf), 2)


def rates_from_frame(df: pd.DataFrame) -> RateTable:
    """Convert a rate grid (SNF values across the first row, fat values down the first column)."""
    table: RateTable = {}
    if df.empty or df.shape[0] < 2 or df.shape[1] < 2:
        return table

    snf_values = pd.to_numeric(df.iloc[0, 1:], errors="coerce")
    fat_values = pd.to_numeric(df.iloc[1:, 0], errors="coerce")
    prices = df.iloc[1:, 1:].apply(pd.to_numeric, errors="coerce")

    for fat, row in zip(fat_values, prices.itertuples(index=False)):
        if pd.isna(fat):
            continue
        for snf, price in zip(snf_values, row):
            if pd.isna(snf) or pd.isna(price):
                continue
            table[_key(fat, snf)] = float(price)
    return table


def load_rate_chart(path) -> RateTable:
    try:
        df = pd.read_excel(path, header=None, engine="openpyxl")
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        logger.error(f"Could not load rate chart from {path}: {e}")
        return {}

    table = rates_from_frame(df)
    logger.info(f"Loaded rate chart with {len(table)} entries from {path}")
    return table


def rate_for(table: Mapping, fat, snf) -> float:
    # 0 means "no rate", milk is never priced at zero
    return float(table.get(_key(fat, snf), 0.0))


def nearest_rate(table: Mapping, fat, snf) -> float:
    """Rate at the closest fat row, then the closest SNF column within that row."""
    if not table:
        return 0.0
    fat, snf = float(fat), float(snf)
    fats = sorted({f for f, _ in table})
    row_fat = min(fats, key=lambda f: abs(f - fat))
    row_snfs = sorted(s for f, s in table if f == row_fat)
    col_snf = min(row_snfs, key=lambda s: abs(s - snf))
    return float(table[(row_fat, col_snf)])


def available_values(table: Mapping) -> dict:
    return {
        "fat": sorted({fat for fat, _ in table}),
        "snf": sorted({snf for _, snf in table}),
    }


def price_collection(table: Mapping, quantity, fat, snf) -> dict:
    rate = nearest_rate(table, fat, snf)
    return {"rate": rate, "total_amount": round(float(quantity) * rate, 2)}
