"""
Database Schemas for the Chuira mill dashboard (MongoDB collections)

Each Pydantic model represents a collection in your database.
Model name is converted to lowercase and pluralised for the collection name:
- DhaanRecord -> "dhaanrecords"
- ChuiraRecord -> "chuirarecords"
- SalaryRecord -> "salaryrecords"
- ExpenseRecord -> "expenserecords"
- SalesRecord -> "salesrecords"

Server-managed fields (_id, createdAt, updatedAt) are not part of the models.
Monetary fields are in NPR, quantities in kg. Dates accept ISO strings or
Unix time (seconds or milliseconds) and are stored as naive UTC.
"""

import math
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Literal, Optional
from datetime import datetime, timezone

MAX_ORDER_ID = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RecordModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", allow_inf_nan=False)

    @field_validator("*", mode="after")
    @classmethod
    def naive_utc(cls, value):
        # pymongo hands back naive UTC datetimes, so store them the same way
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value


class DhaanRecord(RecordModel):
    quantity: float = Field(ge=0)
    farmer: str = Field(min_length=1)
    location: str = Field(min_length=1)
    date: datetime = Field(default_factory=utcnow)


class ChuiraRecord(RecordModel):
    batchId: str = Field(min_length=1)
    produced: float = Field(ge=0)
    bhuss: float = Field(ge=0)
    operatorName: str = Field(min_length=1)
    status: Literal["In Progress", "Completed", "Failed"] = "In Progress"
    date: datetime


class SalaryRecord(RecordModel):
    employeeName: str = Field(min_length=1)
    salaryAmount: float = Field(ge=0)
    paidDate: datetime


class ExpenseRecord(RecordModel):
    date: datetime
    category: str = Field(min_length=1)
    description: str = ""
    amount: float = Field(ge=0)
    status: Literal["Pending", "Approved", "Rejected"] = "Pending"


class SalesRecord(RecordModel):
    orderId: int = Field(ge=1, le=MAX_ORDER_ID)
    date: datetime
    quantity: float = Field(ge=0)
    pricePerKg: float = Field(ge=0)
    # client-computed, stored as sent; only filled in when omitted
    totalPrice: Optional[float] = Field(default=None, ge=0)
    customerName: str = Field(min_length=1)
    status: Literal["Pending", "Completed", "Canceled"] = "Pending"

    @model_validator(mode="after")
    def fill_total_price(self):
        if self.totalPrice is None:
            total = self.quantity * self.pricePerKg
            if not math.isfinite(total):
                raise ValueError("totalPrice is out of range")
            self.totalPrice = total
        return self
