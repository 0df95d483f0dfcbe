"""Pydantic schemas for raw loan, payment, expense and settings records"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _coerce_day(value):
    """Accept ISO dates, ISO datetimes and date/datetime objects; keep only the day"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and value.strip():
        return isoparse(value.strip()).date()
    if isinstance(value, str):
        return None
    return value


def _coerce_moment(value):
    """Moments are kept as naive UTC so records with and without offsets compare"""
    if isinstance(value, str) and value.strip():
        value = isoparse(value.strip())
    elif isinstance(value, str):
        return None
    elif isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class RecordModel(BaseModel):
    """Documents arrive in camelCase; unknown fields are ignored"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class LoanRecord(RecordModel):
    id: str = Field(..., min_length=1)
    borrower_id: Optional[str] = Field(None, alias="borrowerId")
    principal: Decimal = Field(..., ge=0)
    interest: Decimal = Field(Decimal("0"), ge=0)
    repaid_amount: Decimal = Field(Decimal("0"), ge=0, alias="repaidAmount")
    start_date: Optional[date] = Field(None, alias="startDate")
    due_date: Optional[date] = Field(None, alias="dueDate")
    interest_duration: Optional[int] = Field(None, ge=1, le=4, alias="interestDuration")
    manual_interest_rate: Optional[Decimal] = Field(None, ge=0, alias="manualInterestRate")
    status: Optional[str] = None
    refinanced_from_id: Optional[str] = Field(None, alias="refinancedFromId")
    refinanced_to_id: Optional[str] = Field(None, alias="refinancedToId")
    defaulted_at: Optional[datetime] = Field(None, alias="defaultedAt")
    last_payment_date: Optional[datetime] = Field(None, alias="lastPaymentDate")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    @field_validator("start_date", "due_date", mode="before")
    @classmethod
    def parse_day(cls, value):
        return _coerce_day(value)

    @field_validator("defaulted_at", "last_payment_date", "updated_at", "created_at", mode="before")
    @classmethod
    def parse_moment(cls, value):
        return _coerce_moment(value)

    @field_validator("interest", "repaid_amount", mode="before")
    @classmethod
    def missing_amount_is_zero(cls, value):
        return Decimal("0") if value is None or value == "" else value


class PaymentRecord(RecordModel):
    id: str = Field(..., min_length=1)
    loan_id: str = Field(..., min_length=1, alias="loanId")
    amount: Decimal = Field(..., gt=0)
    date: datetime

    @field_validator("date", mode="before")
    @classmethod
    def parse_moment(cls, value):
        return _coerce_moment(value)


class ExpenseRecord(RecordModel):
    id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    date: date
    description: str = ""
    category: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def parse_day(cls, value):
        return _coerce_day(value)


class BorrowerRecord(RecordModel):
    id: str = Field(..., min_length=1)
    name: str = ""
    phone: str = ""


class MonthlySettingsRecord(RecordModel):
    interest_rates: Optional[Dict[int, Decimal]] = Field(None, alias="interestRates")
    capital: Optional[Decimal] = None


class SettingsRecord(RecordModel):
    interest_rates: Optional[Dict[int, Decimal]] = Field(None, alias="interestRates")
    monthly_settings: Dict[str, MonthlySettingsRecord] = Field(default_factory=dict, alias="monthlySettings")
