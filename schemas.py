import datetime
from datetime import date
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field


class CattleRef(BaseModel):
    id: str
    tag_id: Optional[str] = None
    name: Optional[str] = None


class MilkRecordCreate(BaseModel):
    cattle_id: Union[str, CattleRef]
    date: date
    shift: Literal["morning", "evening"]
    amount: float = Field(..., ge=0)
    notes: Optional[str] = None


class DailyTotal(BaseModel):
    date: str
    total: float


class HighestDay(BaseModel):
    date: Optional[str] = None
    amount: float = 0.0


class RateQuote(BaseModel):
    fat: float
    snf: float
    rate: float


class MilkCollectionCreate(BaseModel):
    farmer_id: str
    collection_date: date
    shift: Literal["morning", "evening"]
    milk_type: Literal["C", "B", "M"]  # cow, buffalo, mix
    fat: float = Field(..., gt=0)
    snf: float = Field(..., gt=0)
    quantity: float = Field(..., gt=0)


class MilkRecordBulkCreate(BaseModel):
    records: list[MilkRecordCreate] = Field(..., min_length=1)


class MilkRecordUpdate(BaseModel):
    cattle_id: Optional[Union[str, CattleRef]] = None
    morning_amount: Optional[float] = Field(None, ge=0)
    evening_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    date: Optional[datetime.date] = None


class MilkCollectionUpdate(BaseModel):
    farmer_id: Optional[str] = None
    shift: Optional[Literal["morning", "evening"]] = None
    milk_type: Optional[Literal["C", "B", "M"]] = None
    fat: Optional[float] = Field(None, gt=0)
    snf: Optional[float] = Field(None, gt=0)
    quantity: Optional[float] = Field(None, gt=0)
    collection_date: Optional[date] = None
