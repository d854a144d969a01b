# app/schemas.py
# Role: Request/response bodies for the JSON API.

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---- SMS ----

class SmsIn(BaseModel):
    body: str
    sender: str
    # epoch milliseconds, as delivered by the phone
    timestamp: Optional[int] = None
    suppress_side_effects: bool = False


class NewMerchantOut(BaseModel):
    raw_name: str
    suggested_name: str
    amount: float
    transaction_id: int
    category_id: Optional[int] = None


class ProcessResultOut(BaseModel):
    success: bool
    transaction_id: Optional[int] = None
    needs_naming: bool = False
    new_merchant: Optional[NewMerchantOut] = None
    error: Optional[str] = None


class ScanSummaryOut(BaseModel):
    total: int
    imported: int
    rejected: int
    failed: int
    needs_naming: int


# ---- Merchants ----

class MerchantSaveIn(BaseModel):
    raw_name: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    category_id: Optional[int] = None


class MappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    sms_name: str
    display_name: str
    category_id: Optional[int] = None


class MerchantSaveOut(BaseModel):
    mapping: MappingOut
    updated_transactions: int


class UnnamedMerchantOut(BaseModel):
    raw_name: str
    count: int
    last_amount: float


# ---- Transactions ----

class TransactionCreate(BaseModel):
    amount: float = Field(..., gt=0)
    direction: str = Field("debit", pattern="^(debit|credit)$")
    merchant: str = Field(..., min_length=1)
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    direction: Optional[str] = Field(None, pattern="^(debit|credit)$")
    merchant: Optional[str] = None
    category_id: Optional[int] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None


class RelabelIn(BaseModel):
    display_name: str = Field(..., min_length=1)
    category_id: Optional[int] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    amount: float
    direction: str
    merchant: str
    original_merchant: Optional[str] = None
    category_id: Optional[int] = None
    account_id: Optional[int] = None
    date: dt.date
    notes: Optional[str] = None


# ---- Categories ----

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    icon: str = "tag"
    color: str = "#6366f1"
    budget_limit: Optional[float] = Field(None, ge=0)


class BudgetIn(BaseModel):
    budget_limit: Optional[float] = Field(None, ge=0)


class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    icon: str
    color: str
    budget_limit: Optional[float] = None


# ---- Subscriptions ----

class SubscriptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    merchant: str
    amount: float
    frequency: str
    confidence: float
    next_date: dt.date
    is_active: bool


class DetectOut(BaseModel):
    detected: int
    subscriptions: List[SubscriptionOut]
    monthly_cost: float
