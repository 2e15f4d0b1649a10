from datetime import date, datetime
from decimal import Decimal

import metrics
from models import BillStatus, Budget, Pot, RecurringBill, Transaction

NOW = datetime(2026, 10, 19, 12, 0)


def _txn(amount, category="Food", when=date(2026, 10, 5), name="Item") -> Transaction:
    return Transaction(
        user_id="u1",
        name=name,
        amount=Decimal(str(amount)),
        date=when,
        category=category,
        recurring=False,
    )


def _bill(due_date=15, amount="15.99", name="Netflix") -> RecurringBill:
    return RecurringBill(user_id="u1", name=name, amount=Decimal(amount), due_date=due_date)


def test_income_expense_totals_split_by_sign():
    totals = metrics.income_expense_totals(
        [_txn(1000, "Salary"), _txn(-250), _txn(-50, "Travel")]
    )
    assert totals.income == 1000
    assert totals.expense == 300
    assert totals.net == 700


def test_totals_of_empty_input_are_zero():
    totals = metrics.income_expense_totals([])
    assert (totals.income, totals.expense, totals.net) == (0, 0, 0)


def test_percentage_change_zero_baseline():
    assert metrics.percentage_change(250, 0) == "+100.0"
    assert metrics.percentage_change(0, 0) == "0.0"
    assert metrics.percentage_change(-10, 0) == "0.0"


def test_percentage_change_formats_one_decimal_with_sign():
    assert metrics.percentage_change(80, 80) == "+0.0"
    assert metrics.percentage_change(150, 100) == "+50.0"
    assert metrics.percentage_change(75, 100) == "-25.0"
    assert metrics.percentage_change(Decimal("110.50"), Decimal("100")) == "+10.5"


def test_percentage_change_rounds_ties_away_from_zero():
    assert metrics.percentage_change(17, 16) == "+6.3"
    assert metrics.percentage_change(15, 16) == "-6.3"
    assert metrics.percentage_change(100.25, 100) == "+0.3"
    assert metrics.percentage_change(99.75, 100) == "-0.3"


def test_budget_over_limit_scenario():
    budget = Budget(user_id="u1", category="Food", maximum=Decimal("40"))
    progress = metrics.budget_progress(budget, [_txn(-50, "Food")])

    assert progress.spent == 50
    assert progress.remaining == -10
    assert progress.percentage == 125
    assert progress.is_over_budget is True


def test_budget_matches_category_exactly_and_ignores_income():
    budget = Budget(user_id="u1", category="Food", maximum=Decimal("100"))
    rows = [_txn(-20, "Food"), _txn(-30, "food"), _txn(40, "Food")]
    progress = metrics.budget_progress(budget, rows)

    assert progress.spent == 20
    assert progress.is_over_budget is False


def test_budget_at_exact_limit_is_not_over():
    budget = Budget(user_id="u1", category="Food", maximum=Decimal("50"))
    progress = metrics.budget_progress(budget, [_txn(-50, "Food")])
    assert progress.percentage == 100
    assert progress.is_over_budget is False


def test_budgets_summary_counts_over_budget():
    budgets = [
        Budget(user_id="u1", category="Food", maximum=Decimal("40")),
        Budget(user_id="u1", category="Travel", maximum=Decimal("500")),
    ]
    summary = metrics.budgets_summary(budgets, [_txn(-50, "Food"), _txn(-100, "Travel")])
    assert summary.budget_count == 2
    assert summary.total_budget == 540
    assert summary.total_spent == 150
    assert summary.remaining == 390
    assert summary.over_budget_count == 1


def test_pot_near_target_scenario():
    progress = metrics.pot_progress(
        Pot(user_id="u1", name="Holiday", target=Decimal("100"), total=Decimal("90"))
    )
    assert progress.percentage == 90
    assert progress.is_near_target is True
    assert progress.is_completed is False
    assert progress.remaining == 10


def test_pot_completed_and_over_saved():
    exact = metrics.pot_progress(Pot(name="A", target=Decimal("100"), total=Decimal("100")))
    over = metrics.pot_progress(Pot(name="B", target=Decimal("100"), total=Decimal("130")))
    assert exact.is_completed and not exact.is_near_target
    assert over.is_completed
    assert over.percentage == 130
    assert over.remaining == 0


def test_pots_summary():
    pots = [
        Pot(name="A", target=Decimal("100"), total=Decimal("100")),
        Pot(name="B", target=Decimal("100"), total=Decimal("95")),
        Pot(name="C", target=Decimal("100"), total=Decimal("0")),
        Pot(name="D", target=Decimal("200"), total=Decimal("50")),
    ]
    summary = metrics.pots_summary(pots)
    assert summary.total_saved == 245
    assert summary.completed == 1
    assert summary.active == 3
    assert summary.completion_rate == 25
    assert summary.in_progress == 2
    assert summary.near_target == 1


def test_bill_status_by_day_of_month():
    assert metrics.bill_status(15, 15) == BillStatus.due
    assert metrics.bill_status(15, 20) == BillStatus.paid
    assert metrics.bill_status(15, 5) == BillStatus.upcoming


def test_bill_paid_when_matching_transaction_this_month():
    bill = _bill(due_date=25)
    payment = _txn(-15.99, "Entertainment", date(2026, 10, 3), name="NETFLIX subscription")
    today = date(2026, 10, 19)

    assert metrics.is_bill_paid_this_month(bill, [payment], today) is True
    assert metrics.derive_bill_status(bill, today, [payment]) == BillStatus.paid
    assert metrics.derive_bill_status(bill, today) == BillStatus.upcoming


def test_bill_payment_requires_same_month_and_amount():
    bill = _bill(due_date=25)
    today = date(2026, 10, 19)
    last_month = _txn(-15.99, "Entertainment", date(2026, 9, 25), name="Netflix")
    wrong_amount = _txn(-19.99, "Entertainment", date(2026, 10, 2), name="Netflix")

    assert metrics.is_bill_paid_this_month(bill, [last_month, wrong_amount], today) is False
    assert (
        metrics.derive_bill_status(bill, today, [last_month, wrong_amount])
        == BillStatus.upcoming
    )


def test_bills_summary_totals_by_status():
    bills = [_bill(5, "10"), _bill(19, "20", "Gym"), _bill(28, "30", "Rent")]
    summary = metrics.bills_summary(bills, date(2026, 10, 19))
    assert summary.total_paid == 10
    assert summary.total_due == 20
    assert summary.total_upcoming == 30


def test_detect_alerts_collects_each_kind():
    budgets = [
        Budget(id=1, category="Food", maximum=Decimal("40")),
        Budget(id=2, category="Travel", maximum=Decimal("400")),
    ]
    pots = [
        Pot(id=1, name="Holiday", target=Decimal("100"), total=Decimal("92")),
        Pot(id=2, name="Car", target=Decimal("1000"), total=Decimal("10")),
    ]
    bills = [_bill(19, "12.50", "Gym"), _bill(3, "900", "Rent")]
    rows = [
        _txn(-50, "Food", date(2026, 10, 2)),
        _txn(-80, "Food", date(2026, 9, 30)),
        _txn(-100, "Travel", date(2026, 10, 4)),
    ]

    alerts = metrics.detect_alerts(budgets, pots, bills, rows, NOW)

    assert alerts.over_budget_count == 1
    assert alerts.over_budget[0].category == "Food"
    assert alerts.over_budget[0].over_by == 10
    assert alerts.bills_due_count == 1
    assert alerts.bills_due[0].name == "Gym"
    assert alerts.bills_due[0].amount == Decimal("12.50")
    assert alerts.near_target_count == 1
    assert alerts.near_target[0].remaining == 8
    assert alerts.total == 3


def test_detect_alerts_on_empty_input():
    alerts = metrics.detect_alerts([], [], [], [], NOW)
    assert alerts.total == 0


def test_bill_paid_today_is_not_alerted():
    bill = _bill(19, "12.50", "Gym")
    paid = _txn(-12.5, "Fitness", date(2026, 10, 19), name="Gym membership")
    alerts = metrics.detect_alerts([], [], [bill], [paid], NOW)
    assert alerts.bills_due == []


def test_spending_breakdown_scenario():
    rows = [_txn(-60, "A"), _txn(-40, "B"), _txn(500, "Salary")]
    breakdown = metrics.spending_by_category(rows)

    assert [(s.category, s.amount, s.percentage) for s in breakdown] == [
        ("A", 60, 60.0),
        ("B", 40, 40.0),
    ]


def test_spending_breakdown_keeps_top_eight_only():
    rows = [_txn(-(i + 1) * 10, f"C{i}") for i in range(10)]
    breakdown = metrics.spending_by_category(rows)

    assert len(breakdown) == 8
    assert breakdown[0].category == "C9"
    assert breakdown[-1].category == "C2"
    # percentages are relative to all ten categories
    assert round(sum(s.percentage for s in breakdown), 6) < 100


def test_spending_breakdown_uses_registry_color():
    breakdown = metrics.spending_by_category([_txn(-10, "Groceries"), _txn(-5, "Misc")])
    assert breakdown[0].color == "#F2C94C"
    assert breakdown[1].color == "#97A0AC"


def test_monthly_trend_is_fixed_width():
    rows = [
        _txn(1000, "Salary", date(2026, 10, 1)),
        _txn(-200, "Food", date(2026, 10, 2)),
        _txn(-50, "Food", date(2026, 7, 14)),
        _txn(-999, "Food", date(2025, 1, 1)),
    ]
    trend = metrics.monthly_trend(rows, 6, now=NOW)

    assert [(b.year, b.month) for b in trend] == [
        (2026, 5),
        (2026, 6),
        (2026, 7),
        (2026, 8),
        (2026, 9),
        (2026, 10),
    ]
    assert trend[0].income == 0 and trend[0].expense == 0
    assert trend[2].expense == 50
    assert trend[-1].income == 1000
    assert trend[-1].net == 800
    assert trend[-1].label == "Oct 2026"


def test_monthly_trend_crosses_year_boundary():
    trend = metrics.monthly_trend([], 3, now=datetime(2026, 1, 10))
    assert [(b.year, b.month) for b in trend] == [(2025, 11), (2025, 12), (2026, 1)]
