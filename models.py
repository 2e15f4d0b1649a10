from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class BillStatus(str, Enum):
    paid = "paid"
    due = "due"
    upcoming = "upcoming"


MONEY = Numeric(12, 2)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    bio: Mapped[Optional[str]] = mapped_column(Text)
    settings_json: Mapped[Optional[str]] = mapped_column(Text)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(255))

    @property
    def type(self) -> TransactionType:
        return TransactionType.income if self.amount > 0 else TransactionType.expense

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_user_category_date", "user_id", "category", "date"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    maximum: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    theme: Mapped[str] = mapped_column(String(40), nullable=False, default="primary")

    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
        CheckConstraint("maximum > 0", name="ck_budget_maximum_positive"),
    )


class Pot(Base, TimestampMixin):
    __tablename__ = "pots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    target: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    theme: Mapped[str] = mapped_column(String(40), nullable=False, default="cyan")

    __table_args__ = (
        Index("ix_pots_user", "user_id"),
        CheckConstraint("target > 0", name="ck_pot_target_positive"),
        CheckConstraint("total >= 0", name="ck_pot_total_non_negative"),
    )


class RecurringBill(Base, TimestampMixin):
    __tablename__ = "recurring_bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    due_date: Mapped[int] = mapped_column(Integer, nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(255))

    __table_args__ = (
        Index("ix_recurring_bills_user", "user_id"),
        CheckConstraint(
            "due_date >= 1 AND due_date <= 31", name="ck_bill_due_date_day_of_month"
        ),
    )
