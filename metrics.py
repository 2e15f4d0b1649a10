"""Aggregates, alerts and classifications derived from already-fetched rows.

Every function here is pure: rows go in, plain dataclasses come out, nothing is
written back. Rows only need the attributes the models define, so unsaved model
instances work as well as rows loaded from a session.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence, Union

from categories import color_of
from models import BillStatus, Budget, Pot, RecurringBill, Transaction
from periods import as_datetime, filter_by_month, trailing_months

Number = Union[int, float, Decimal]

NEAR_TARGET_PERCENT = 90.0
BREAKDOWN_LIMIT = 8


def _ratio_percent(part: Number, whole: Number) -> float:
    if not whole or whole <= 0:
        return 0.0
    return float(part) / float(whole) * 100


@dataclass(frozen=True)
class Totals:
    income: Number
    expense: Number
    net: Number


def income_expense_totals(transactions: Iterable[Transaction]) -> Totals:
    income: Number = 0
    expense: Number = 0
    for txn in transactions:
        if txn.amount > 0:
            income += txn.amount
        elif txn.amount < 0:
            expense += abs(txn.amount)
    return Totals(income=income, expense=expense, net=income - expense)


def percentage_change(current: Number, previous: Number) -> str:
    """Signed change with one decimal, e.g. ``"+12.5"`` or ``"-3.0"``.

    A zero baseline reads as ``"+100.0"`` when there is something now and
    ``"0.0"`` otherwise.
    """
    if previous == 0:
        return "+100.0" if current > 0 else "0.0"
    change = (float(current) - float(previous)) / float(previous) * 100
    # ties round away from zero
    rounded = Decimal(change).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return f"+{rounded}" if change >= 0 else f"{rounded}"


# Budgets


@dataclass(frozen=True)
class BudgetProgress:
    budget: Budget
    spent: Number
    remaining: Number
    percentage: float
    is_over_budget: bool


def spent_in_category(category: str, transactions: Iterable[Transaction]) -> Number:
    spent: Number = 0
    for txn in transactions:
        if txn.category == category and txn.amount < 0:
            spent += abs(txn.amount)
    return spent


def budget_progress(
    budget: Budget, transactions: Iterable[Transaction]
) -> BudgetProgress:
    spent = spent_in_category(budget.category, transactions)
    return BudgetProgress(
        budget=budget,
        spent=spent,
        remaining=budget.maximum - spent,
        percentage=_ratio_percent(spent, budget.maximum),
        is_over_budget=spent > budget.maximum,
    )


@dataclass(frozen=True)
class BudgetsSummary:
    budget_count: int
    total_budget: Number
    total_spent: Number
    remaining: Number
    over_budget_count: int


def budgets_summary(
    budgets: Sequence[Budget], transactions: Sequence[Transaction]
) -> BudgetsSummary:
    progress = [budget_progress(b, transactions) for b in budgets]
    total_budget = sum((b.maximum for b in budgets), 0)
    total_spent = sum((p.spent for p in progress), 0)
    return BudgetsSummary(
        budget_count=len(budgets),
        total_budget=total_budget,
        total_spent=total_spent,
        remaining=total_budget - total_spent,
        over_budget_count=sum(1 for p in progress if p.is_over_budget),
    )


# Savings goals


@dataclass(frozen=True)
class PotProgress:
    pot: Pot
    percentage: float
    is_completed: bool
    is_near_target: bool
    remaining: Number


def pot_progress(pot: Pot) -> PotProgress:
    percentage = _ratio_percent(pot.total, pot.target)
    return PotProgress(
        pot=pot,
        percentage=percentage,
        is_completed=pot.total >= pot.target,
        is_near_target=NEAR_TARGET_PERCENT <= percentage < 100,
        remaining=max(pot.target - pot.total, 0),
    )


@dataclass(frozen=True)
class PotsSummary:
    total_saved: Number
    active: int
    completed: int
    completion_rate: float
    in_progress: int
    near_target: int


def pots_summary(pots: Sequence[Pot]) -> PotsSummary:
    progress = [pot_progress(p) for p in pots]
    completed = sum(1 for p in progress if p.is_completed)
    return PotsSummary(
        total_saved=sum((p.total for p in pots), 0),
        active=len(pots) - completed,
        completed=completed,
        completion_rate=_ratio_percent(completed, len(pots)),
        in_progress=sum(1 for p in progress if 0 < p.percentage < 100),
        near_target=sum(1 for p in progress if p.is_near_target),
    )


# Recurring bills


def bill_status(due_date: int, today: int) -> BillStatus:
    """Date-only status: ``today`` and ``due_date`` are days of the month."""
    if today == due_date:
        return BillStatus.due
    if today > due_date:
        return BillStatus.paid
    return BillStatus.upcoming


def _money(value: Number) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def is_bill_paid_this_month(
    bill: RecurringBill,
    transactions: Iterable[Transaction],
    today: Union[date, datetime],
) -> bool:
    needle = bill.name.lower()
    amount = abs(_money(bill.amount))
    for txn in filter_by_month(transactions, 0, now=as_datetime(today)):
        if needle in txn.name.lower() and abs(_money(txn.amount)) == amount:
            return True
    return False


def derive_bill_status(
    bill: RecurringBill,
    today: Union[date, datetime],
    transactions: Optional[Iterable[Transaction]] = None,
) -> BillStatus:
    """A matched payment this month wins; otherwise the date decides."""
    if transactions is not None and is_bill_paid_this_month(bill, transactions, today):
        return BillStatus.paid
    return bill_status(bill.due_date, today.day)


@dataclass(frozen=True)
class BillsSummary:
    total_paid: Number
    total_due: Number
    total_upcoming: Number


def bills_summary(
    bills: Iterable[RecurringBill],
    today: Union[date, datetime],
    transactions: Optional[Sequence[Transaction]] = None,
) -> BillsSummary:
    totals: dict[BillStatus, Number] = {status: 0 for status in BillStatus}
    for bill in bills:
        totals[derive_bill_status(bill, today, transactions)] += bill.amount
    return BillsSummary(
        total_paid=totals[BillStatus.paid],
        total_due=totals[BillStatus.due],
        total_upcoming=totals[BillStatus.upcoming],
    )


# Alerts


@dataclass(frozen=True)
class OverBudgetAlert:
    budget_id: Optional[int]
    category: str
    spent: Number
    maximum: Number
    over_by: Number


@dataclass(frozen=True)
class BillDueAlert:
    bill_id: Optional[int]
    name: str
    amount: Number
    due_date: int


@dataclass(frozen=True)
class NearTargetAlert:
    pot_id: Optional[int]
    name: str
    total: Number
    target: Number
    remaining: Number
    percentage: float


@dataclass(frozen=True)
class Alerts:
    over_budget: list[OverBudgetAlert] = field(default_factory=list)
    bills_due: list[BillDueAlert] = field(default_factory=list)
    near_target: list[NearTargetAlert] = field(default_factory=list)

    @property
    def over_budget_count(self) -> int:
        return len(self.over_budget)

    @property
    def bills_due_count(self) -> int:
        return len(self.bills_due)

    @property
    def near_target_count(self) -> int:
        return len(self.near_target)

    @property
    def total(self) -> int:
        return self.over_budget_count + self.bills_due_count + self.near_target_count


def detect_alerts(
    budgets: Iterable[Budget],
    pots: Iterable[Pot],
    bills: Iterable[RecurringBill],
    transactions: Iterable[Transaction],
    today: Union[date, datetime],
) -> Alerts:
    current = filter_by_month(transactions, 0, now=as_datetime(today))

    over_budget = []
    for budget in budgets:
        progress = budget_progress(budget, current)
        if progress.is_over_budget:
            over_budget.append(
                OverBudgetAlert(
                    budget_id=budget.id,
                    category=budget.category,
                    spent=progress.spent,
                    maximum=budget.maximum,
                    over_by=progress.spent - budget.maximum,
                )
            )

    bills_due = [
        BillDueAlert(
            bill_id=bill.id, name=bill.name, amount=bill.amount, due_date=bill.due_date
        )
        for bill in bills
        if derive_bill_status(bill, today, current) == BillStatus.due
    ]

    near_target = []
    for pot in pots:
        progress = pot_progress(pot)
        if progress.is_near_target:
            near_target.append(
                NearTargetAlert(
                    pot_id=pot.id,
                    name=pot.name,
                    total=pot.total,
                    target=pot.target,
                    remaining=progress.remaining,
                    percentage=progress.percentage,
                )
            )

    return Alerts(over_budget=over_budget, bills_due=bills_due, near_target=near_target)


# Charts


@dataclass(frozen=True)
class CategorySpending:
    category: str
    amount: Number
    percentage: float
    color: str


def spending_by_category(
    transactions: Iterable[Transaction], limit: int = BREAKDOWN_LIMIT
) -> list[CategorySpending]:
    """Expense share per category, largest first; only the top ``limit`` are kept."""
    by_category: dict[str, Number] = defaultdict(int)
    for txn in transactions:
        if txn.amount < 0:
            by_category[txn.category] += abs(txn.amount)

    total = sum(by_category.values(), 0)
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)
    return [
        CategorySpending(
            category=category,
            amount=amount,
            percentage=_ratio_percent(amount, total),
            color=color_of(category),
        )
        for category, amount in ranked[:limit]
    ]


@dataclass(frozen=True)
class MonthBucket:
    year: int
    month: int
    label: str
    income: Number
    expense: Number
    net: Number


def monthly_trend(
    transactions: Iterable[Transaction],
    months: int = 6,
    *,
    now: Optional[datetime] = None,
) -> list[MonthBucket]:
    keys = trailing_months(months, now=now)
    income: dict[tuple[int, int], Number] = {key: 0 for key in keys}
    expense: dict[tuple[int, int], Number] = {key: 0 for key in keys}
    for txn in transactions:
        key = (txn.date.year, txn.date.month)
        if key not in income:
            continue
        if txn.amount > 0:
            income[key] += txn.amount
        elif txn.amount < 0:
            expense[key] += abs(txn.amount)

    return [
        MonthBucket(
            year=year,
            month=month,
            label=date(year, month, 1).strftime("%b %Y"),
            income=income[(year, month)],
            expense=expense[(year, month)],
            net=income[(year, month)] - expense[(year, month)],
        )
        for year, month in keys
    ]
