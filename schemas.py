from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models import TransactionType


class UserSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    currency: str = Field("USD", min_length=3, max_length=3)
    base_currency: str = Field("USD", min_length=3, max_length=3)
    email_notifications: bool = True
    push_notifications: bool = False
    language: str = "English (US)"


class ProfileIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    phone: Optional[str] = Field(None, max_length=40)
    bio: Optional[str] = None


class TransactionIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    type: TransactionType
    date: date
    category: str = Field(..., min_length=1, max_length=100)
    recurring: bool = False
    avatar: Optional[str] = Field(None, max_length=255)


class BudgetIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    maximum: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    theme: str = Field("primary", max_length=40)


class PotIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    total: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    theme: str = Field("cyan", max_length=40)


class PotMoveIn(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class RecurringBillIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    due_date: int = Field(..., ge=1, le=31)
    avatar: Optional[str] = Field(None, max_length=255)


BillSort = Literal["name", "amount", "due_date"]
