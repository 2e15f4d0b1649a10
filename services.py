from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import metrics
from categories import normalize
from config import get_settings
from fx_rates import format_date, format_for_settings
from models import (
    BillStatus,
    Budget,
    Pot,
    Profile,
    RecurringBill,
    Transaction,
    TransactionType,
)
from periods import Period, filter_by_month, filter_by_range
from schemas import (
    BillSort,
    BudgetIn,
    PotIn,
    ProfileIn,
    RecurringBillIn,
    TransactionIn,
    UserSettings,
)

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Wall-clock time in the configured timezone, without tzinfo."""
    settings = get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).replace(tzinfo=None)


def _signed_amount(data: TransactionIn):
    return -data.amount if data.type == TransactionType.expense else data.amount


@dataclass
class TransactionFilters:
    query: Optional[str] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = None


class ProfileService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def ensure_profile(
        self, email: Optional[str] = None, name: Optional[str] = None
    ) -> Profile:
        profile = self.session.get(Profile, self.user_id)
        if profile:
            return profile
        email = email or ""
        profile = Profile(
            id=self.user_id,
            email=email,
            name=name or (email.split("@")[0] if email else "") or "User",
        )
        self.session.add(profile)
        self.session.commit()
        logger.info(f"profile_created: user_id={self.user_id}")
        return profile

    def get(self) -> Profile:
        profile = self.session.get(Profile, self.user_id)
        if not profile:
            raise ValueError("Profile not found")
        return profile

    def update(self, data: ProfileIn) -> Profile:
        profile = self.get()
        profile.name = data.name
        profile.phone = data.phone
        profile.bio = data.bio
        self.session.commit()
        return profile

    def get_settings(self) -> UserSettings:
        profile = self.session.get(Profile, self.user_id)
        if not profile or not profile.settings_json:
            return UserSettings()
        try:
            return UserSettings.model_validate(json.loads(profile.settings_json))
        except ValueError:
            logger.warning(f"settings_unreadable: user_id={self.user_id}")
            return UserSettings()

    def update_settings(self, data: UserSettings) -> UserSettings:
        profile = self.get()
        profile.settings_json = data.model_dump_json()
        self.session.commit()
        return data

    def delete(self) -> None:
        """Remove the profile together with every row the user owns."""
        profile = self.get()
        for model in (Transaction, Budget, Pot, RecurringBill):
            self.session.execute(delete(model).where(model.user_id == self.user_id))
        self.session.delete(profile)
        self.session.commit()
        logger.info(f"profile_deleted: user_id={self.user_id}")


class TransactionService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            user_id=self.user_id,
            name=data.name.strip(),
            amount=_signed_amount(data),
            date=data.date,
            category=normalize(data.category.strip()),
            recurring=data.recurring,
            avatar=data.avatar,
        )
        self.session.add(txn)
        self.session.commit()
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn or txn.user_id != self.user_id:
            raise ValueError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        txn.name = data.name.strip()
        txn.amount = _signed_amount(data)
        txn.date = data.date
        txn.category = normalize(data.category.strip())
        txn.recurring = data.recurring
        txn.avatar = data.avatar
        self.session.commit()
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = select(Transaction).where(Transaction.user_id == self.user_id)
        if filters.query:
            pattern = f"%{filters.query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Transaction.name).like(pattern),
                    func.lower(Transaction.category).like(pattern),
                )
            )
        if filters.type == TransactionType.income:
            stmt = stmt.where(Transaction.amount > 0)
        elif filters.type == TransactionType.expense:
            stmt = stmt.where(Transaction.amount < 0)
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        stmt = stmt.order_by(Transaction.date.desc(), Transaction.id.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).all())

    def all(self) -> list[Transaction]:
        return self.list()

    def recent(self, limit: int = 5) -> list[Transaction]:
        return self.list(limit=limit)

    def categories_in_use(self) -> list[str]:
        stmt = (
            select(Transaction.category)
            .where(Transaction.user_id == self.user_id)
            .distinct()
            .order_by(Transaction.category)
        )
        return list(self.session.scalars(stmt).all())

    def month_summary(self, now: Optional[datetime] = None) -> dict[str, object]:
        now = now or local_now()
        rows = self.all()
        current = metrics.income_expense_totals(filter_by_month(rows, 0, now=now))
        previous = metrics.income_expense_totals(filter_by_month(rows, 1, now=now))
        return {
            "income": current.income,
            "expense": current.expense,
            "net": current.net,
            "income_change": metrics.percentage_change(current.income, previous.income),
            "expense_change": metrics.percentage_change(
                current.expense, previous.expense
            ),
            "net_change": metrics.percentage_change(current.net, previous.net),
        }


class BudgetService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(
        self, *, search: Optional[str] = None, category: Optional[str] = None
    ) -> list[Budget]:
        stmt = select(Budget).where(Budget.user_id == self.user_id)
        if search:
            stmt = stmt.where(func.lower(Budget.category).like(f"%{search.lower()}%"))
        if category:
            stmt = stmt.where(Budget.category == category)
        stmt = stmt.order_by(Budget.created_at.asc(), Budget.id.asc())
        return list(self.session.scalars(stmt).all())

    def categories_in_use(self) -> list[str]:
        stmt = (
            select(Budget.category)
            .where(Budget.user_id == self.user_id)
            .distinct()
            .order_by(Budget.category)
        )
        return list(self.session.scalars(stmt).all())

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise ValueError("Budget not found")
        return budget

    def _ensure_unique(self, category: str, exclude_id: Optional[int] = None) -> None:
        stmt = select(Budget.id).where(
            Budget.user_id == self.user_id, Budget.category == category
        )
        if exclude_id is not None:
            stmt = stmt.where(Budget.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise ValueError(f"A budget for {category} already exists")

    def create(self, data: BudgetIn) -> Budget:
        category = normalize(data.category.strip())
        self._ensure_unique(category)
        budget = Budget(
            user_id=self.user_id,
            category=category,
            maximum=data.maximum,
            theme=data.theme,
        )
        self.session.add(budget)
        self.session.commit()
        return budget

    def update(self, budget_id: int, data: BudgetIn) -> Budget:
        budget = self.get(budget_id)
        category = normalize(data.category.strip())
        self._ensure_unique(category, exclude_id=budget.id)
        budget.category = category
        budget.maximum = data.maximum
        budget.theme = data.theme
        self.session.commit()
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()

    def _current_month_transactions(self, now: datetime) -> list[Transaction]:
        return filter_by_month(TransactionService(self.session, self.user_id).all(), 0, now=now)

    def progress(
        self,
        now: Optional[datetime] = None,
        *,
        search: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[metrics.BudgetProgress]:
        current = self._current_month_transactions(now or local_now())
        budgets = self.list(search=search, category=category)
        return [metrics.budget_progress(budget, current) for budget in budgets]

    def summary(self, now: Optional[datetime] = None) -> metrics.BudgetsSummary:
        current = self._current_month_transactions(now or local_now())
        return metrics.budgets_summary(self.list(), current)


class PotService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def list(self) -> list[Pot]:
        stmt = (
            select(Pot)
            .where(Pot.user_id == self.user_id)
            .order_by(Pot.created_at.asc(), Pot.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, pot_id: int) -> Pot:
        pot = self.session.get(Pot, pot_id)
        if not pot or pot.user_id != self.user_id:
            raise ValueError("Pot not found")
        return pot

    def create(self, data: PotIn) -> Pot:
        pot = Pot(
            user_id=self.user_id,
            name=data.name.strip(),
            target=data.target,
            total=data.total,
            theme=data.theme,
        )
        self.session.add(pot)
        self.session.commit()
        return pot

    def update(self, pot_id: int, data: PotIn) -> Pot:
        pot = self.get(pot_id)
        pot.name = data.name.strip()
        pot.target = data.target
        pot.total = data.total
        pot.theme = data.theme
        self.session.commit()
        return pot

    def delete(self, pot_id: int) -> None:
        pot = self.get(pot_id)
        self.session.delete(pot)
        self.session.commit()

    def add_money(self, pot_id: int, amount) -> Pot:
        if amount <= 0:
            raise ValueError("Amount must be positive")
        pot = self.get(pot_id)
        pot.total = pot.total + amount
        self.session.commit()
        return pot

    def withdraw(self, pot_id: int, amount) -> Pot:
        if amount <= 0:
            raise ValueError("Amount must be positive")
        pot = self.get(pot_id)
        if amount > pot.total:
            raise ValueError("Cannot withdraw more than the saved total")
        pot.total = pot.total - amount
        self.session.commit()
        return pot

    def summary(self) -> metrics.PotsSummary:
        return metrics.pots_summary(self.list())


@dataclass(frozen=True)
class BillView:
    bill: RecurringBill
    status: BillStatus


class RecurringBillService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def all(self) -> list[RecurringBill]:
        stmt = select(RecurringBill).where(RecurringBill.user_id == self.user_id)
        return list(self.session.scalars(stmt).all())

    def get(self, bill_id: int) -> RecurringBill:
        bill = self.session.get(RecurringBill, bill_id)
        if not bill or bill.user_id != self.user_id:
            raise ValueError("Recurring bill not found")
        return bill

    def list(
        self,
        *,
        search: Optional[str] = None,
        sort_by: BillSort = "due_date",
        now: Optional[datetime] = None,
        transactions: Optional[Sequence[Transaction]] = None,
    ) -> list[BillView]:
        now = now or local_now()
        bills = self.all()
        if search:
            needle = search.lower()
            bills = [b for b in bills if needle in b.name.lower()]
        if sort_by == "name":
            bills.sort(key=lambda b: b.name.lower())
        elif sort_by == "amount":
            bills.sort(key=lambda b: b.amount, reverse=True)
        else:
            bills.sort(key=lambda b: b.due_date)
        return [
            BillView(bill=b, status=metrics.derive_bill_status(b, now, transactions))
            for b in bills
        ]

    def create(self, data: RecurringBillIn) -> RecurringBill:
        bill = RecurringBill(
            user_id=self.user_id,
            name=data.name.strip(),
            amount=data.amount,
            due_date=data.due_date,
            avatar=data.avatar,
        )
        self.session.add(bill)
        self.session.commit()
        return bill

    def update(self, bill_id: int, data: RecurringBillIn) -> RecurringBill:
        bill = self.get(bill_id)
        bill.name = data.name.strip()
        bill.amount = data.amount
        bill.due_date = data.due_date
        bill.avatar = data.avatar
        self.session.commit()
        return bill

    def delete(self, bill_id: int) -> None:
        bill = self.get(bill_id)
        self.session.delete(bill)
        self.session.commit()

    def summary(self, now: Optional[datetime] = None) -> metrics.BillsSummary:
        return metrics.bills_summary(self.all(), now or local_now())


def transaction_dict(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "name": txn.name,
        "amount": txn.amount,
        "date": txn.date.isoformat(),
        "category": txn.category,
        "recurring": txn.recurring,
        "avatar": txn.avatar,
        "type": txn.type.value,
    }


def budget_dict(budget: Budget) -> dict[str, object]:
    return {
        "id": budget.id,
        "category": budget.category,
        "maximum": budget.maximum,
        "theme": budget.theme,
    }


def pot_dict(pot: Pot) -> dict[str, object]:
    return {
        "id": pot.id,
        "name": pot.name,
        "target": pot.target,
        "total": pot.total,
        "theme": pot.theme,
    }


def bill_dict(bill: RecurringBill, status: Optional[BillStatus] = None) -> dict[str, object]:
    out: dict[str, object] = {
        "id": bill.id,
        "name": bill.name,
        "amount": bill.amount,
        "due_date": bill.due_date,
        "avatar": bill.avatar,
    }
    if status is not None:
        out["status"] = status.value
    return out


class DashboardService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def _fetch(self, what: str, loader) -> list:
        try:
            return loader()
        except SQLAlchemyError:
            logger.exception(f"dashboard_fetch_failed: user_id={self.user_id} {what}")
            self.session.rollback()
            return []

    def overview(
        self,
        *,
        now: Optional[datetime] = None,
        settings: Optional[UserSettings] = None,
        rates: Optional[Mapping[str, float]] = None,
        trend_months: Optional[int] = None,
    ) -> dict[str, object]:
        now = now or local_now()
        settings = settings or UserSettings()
        trend_months = trend_months or get_settings().trend_months

        transactions = self._fetch(
            "transactions", TransactionService(self.session, self.user_id).all
        )
        budgets = self._fetch("budgets", BudgetService(self.session, self.user_id).list)
        pots = self._fetch("pots", PotService(self.session, self.user_id).list)
        bills = self._fetch(
            "recurring_bills", RecurringBillService(self.session, self.user_id).all
        )

        current = filter_by_month(transactions, 0, now=now)
        previous = filter_by_month(transactions, 1, now=now)
        totals = metrics.income_expense_totals(current)
        previous_totals = metrics.income_expense_totals(previous)
        alerts = metrics.detect_alerts(budgets, pots, bills, transactions, now)

        def money(value) -> str:
            return format_for_settings(value, settings, rates)

        return {
            "totals": {
                "income": totals.income,
                "expense": totals.expense,
                "net": totals.net,
                "income_change": metrics.percentage_change(
                    totals.income, previous_totals.income
                ),
                "expense_change": metrics.percentage_change(
                    totals.expense, previous_totals.expense
                ),
                "net_change": metrics.percentage_change(totals.net, previous_totals.net),
                "total_budget": sum((b.maximum for b in budgets), 0),
            },
            "display": {
                "income": money(totals.income),
                "expense": money(totals.expense),
                "net": money(totals.net),
                "currency": settings.currency,
            },
            "budgets": [
                {
                    **budget_dict(p.budget),
                    "spent": p.spent,
                    "remaining": p.remaining,
                    "percentage": p.percentage,
                    "is_over_budget": p.is_over_budget,
                }
                for p in (metrics.budget_progress(b, current) for b in budgets[:3])
            ],
            "pots": [
                {
                    **pot_dict(p.pot),
                    "percentage": p.percentage,
                    "is_completed": p.is_completed,
                    "is_near_target": p.is_near_target,
                }
                for p in (metrics.pot_progress(pot) for pot in pots[:3])
            ],
            "alerts": {
                "total": alerts.total,
                "over_budget": {
                    "count": alerts.over_budget_count,
                    "items": [asdict(a) for a in alerts.over_budget],
                },
                "bills_due": {
                    "count": alerts.bills_due_count,
                    "items": [asdict(a) for a in alerts.bills_due],
                },
                "near_target": {
                    "count": alerts.near_target_count,
                    "items": [asdict(a) for a in alerts.near_target],
                },
            },
            "recent_transactions": [
                {**transaction_dict(t), "display_date": format_date(t.date)}
                for t in transactions[:5]
            ],
            "spending_by_category": [
                asdict(s) for s in metrics.spending_by_category(current)
            ],
            "trend": [
                asdict(b)
                for b in metrics.monthly_trend(transactions, trend_months, now=now)
            ],
        }


class ReportService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self.transactions = TransactionService(session, user_id)

    def spending(self, period: Period) -> dict[str, object]:
        rows = filter_by_range(self.transactions.all(), period.start, period.end)
        totals = metrics.income_expense_totals(rows)
        return {
            "period": {
                "slug": period.slug,
                "start": period.start.isoformat(),
                "end": period.end.isoformat(),
            },
            "income": totals.income,
            "expense": totals.expense,
            "net": totals.net,
            "categories": [asdict(s) for s in metrics.spending_by_category(rows)],
        }

    def trend(self, months: int, now: Optional[datetime] = None) -> list[dict[str, object]]:
        rows = self.transactions.all()
        return [
            asdict(b)
            for b in metrics.monthly_trend(rows, months, now=now or local_now())
        ]


class ExportService:
    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id

    def export_all(self) -> dict[str, object]:
        profile = ProfileService(self.session, self.user_id).get()
        bills = RecurringBillService(self.session, self.user_id).all()
        return {
            "user": {
                "email": profile.email,
                "name": profile.name,
                "created_at": profile.created_at.isoformat(),
            },
            "budgets": [
                budget_dict(b) for b in BudgetService(self.session, self.user_id).list()
            ],
            "savings_goals": [
                pot_dict(p) for p in PotService(self.session, self.user_id).list()
            ],
            "transactions": [
                transaction_dict(t)
                for t in TransactionService(self.session, self.user_id).all()
            ],
            "recurring_bills": [bill_dict(b) for b in bills],
            "exported_at": datetime.now(timezone.utc).isoformat(),
        }
